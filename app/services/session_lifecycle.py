"""
Session Lifecycle

State machine for a consulting session from intake to feedback.

    pending_payment -> scheduled -> completed
    pending_payment | scheduled -> cancelled

completed and cancelled are terminal. Every transition is a conditional
UPDATE guarded by the expected current status, so two callers racing on the
same session see exactly one success. Booking writes the price split,
expert, time and status in that single statement, guarded on the expert
still being approved.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import AsyncSessionLocal
from app.exceptions import (
    DuplicateFeedback,
    ExpertUnavailable,
    InvalidTransition,
    SessionNotFound,
    ValidationError,
)
from app.models.expert import EXPERT_APPROVED, Expert
from app.models.session import (
    SESSION_CANCELLED,
    SESSION_COMPLETED,
    SESSION_DURATIONS,
    SESSION_PENDING_PAYMENT,
    SESSION_SCHEDULED,
    SESSION_STATUSES,
    URGENCY_LEVELS,
    Session,
)
from app.services.payout_calculator import quote
from app.services.problem_structurer import ProblemStructurer, get_problem_structurer
from app.services.rating_aggregator import RatingAggregator, get_rating_aggregator
from app.services.vetting_gate import VettingGate
from app.utils.date_utils import as_utc, utcnow

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = (SESSION_PENDING_PAYMENT, SESSION_SCHEDULED)

RESOLVED_RATING_THRESHOLD = 4


@dataclass
class ProblemDetails:
    """Buyer's problem as submitted for a new session"""
    title: str
    duration_minutes: int
    description: str = ""
    category: str = "other"
    structured: Dict[str, Any] = field(default_factory=dict)
    urgency: str = "this_week"


def validate_duration(duration_minutes: Any) -> None:
    if isinstance(duration_minutes, bool) or duration_minutes not in SESSION_DURATIONS:
        raise ValidationError(
            f"Invalid duration: {duration_minutes}. Must be one of: {list(SESSION_DURATIONS)}"
        )


def validate_urgency(urgency: str) -> None:
    if urgency not in URGENCY_LEVELS:
        raise ValidationError(f"Invalid urgency: {urgency}. Must be one of: {list(URGENCY_LEVELS)}")


def validate_rating(rating: Any) -> None:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError(f"Rating must be an integer from 1 to 5, got {rating!r}")


class SessionLifecycle:
    """Owns every status transition of a Session"""

    def __init__(
        self,
        session_factory: async_sessionmaker = AsyncSessionLocal,
        vetting_gate: Optional[VettingGate] = None,
        rating_aggregator: Optional[RatingAggregator] = None,
        structurer: Optional[ProblemStructurer] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.vetting_gate = vetting_gate or VettingGate(session_factory)
        self.rating_aggregator = rating_aggregator or RatingAggregator(session_factory)
        self.structurer = structurer or ProblemStructurer()
        self.clock = clock

    async def _load(self, db: AsyncSession, session_id: uuid.UUID) -> Session:
        session = await db.get(Session, session_id, populate_existing=True)
        if session is None:
            raise SessionNotFound(f"Session {session_id} not found")
        return session

    async def get(self, session_id: uuid.UUID) -> Session:
        async with self.session_factory() as db:
            return await self._load(db, session_id)

    async def create(self, buyer_id: str, problem: ProblemDetails) -> Session:
        """
        Create a session awaiting payment.

        Raises:
            ValidationError: On bad duration, urgency, buyer or title
        """
        validate_duration(problem.duration_minutes)
        validate_urgency(problem.urgency)
        if not buyer_id or not str(buyer_id).strip():
            raise ValidationError("buyer_id is required")
        if not problem.title or not problem.title.strip():
            raise ValidationError("Problem title is required")

        session = Session(
            buyer_id=buyer_id,
            problem_title=problem.title.strip(),
            problem_description=problem.description or "",
            problem_category=problem.category or "other",
            problem_structured=problem.structured or {},
            duration_minutes=problem.duration_minutes,
            urgency=problem.urgency,
            status=SESSION_PENDING_PAYMENT,
            action_items=[],
            problem_resolved=False,
        )
        async with self.session_factory() as db:
            db.add(session)
            await db.commit()
            await db.refresh(session)

        logger.info(
            f"Session {session.id} created for buyer {buyer_id}: "
            f"{session.duration_minutes}min, category={session.problem_category}, urgency={session.urgency}"
        )
        return session

    async def intake(self, buyer_id: str, raw_problem_text: str, duration_minutes: int, urgency: str) -> Session:
        """
        Structure a raw problem with the text-analysis service, then create the session.

        Raises:
            ValidationError: On bad duration, urgency, buyer or empty text
        """
        validate_duration(duration_minutes)
        validate_urgency(urgency)
        if not raw_problem_text or not raw_problem_text.strip():
            raise ValidationError("Problem description is required")

        structured = await self.structurer.structure(raw_problem_text.strip())
        return await self.create(
            buyer_id,
            ProblemDetails(
                title=structured.title,
                description=raw_problem_text.strip(),
                category=structured.category,
                structured=structured.context,
                duration_minutes=duration_minutes,
                urgency=urgency,
            ),
        )

    async def match_and_book(self, session_id: uuid.UUID, expert_id: uuid.UUID, scheduled_time: datetime) -> Session:
        """
        Book an approved expert for a pending session and fix its price split.

        Raises:
            SessionNotFound: If the session does not exist
            InvalidTransition: If the session is not pending payment, including
                when a concurrent booking committed first
            ExpertUnavailable: If the expert is not approved
            ValidationError: If scheduled_time is not in the future
            PricingError: If the expert's rate is not positive
        """
        current = await self.get(session_id)
        if current.status != SESSION_PENDING_PAYMENT:
            raise InvalidTransition(f"Cannot book session {session_id} in status '{current.status}'")

        scheduled_time = as_utc(scheduled_time)
        if scheduled_time is None or scheduled_time <= self.clock():
            raise ValidationError("scheduled_time must be in the future")

        expert = await self.vetting_gate.require_matchable(expert_id)
        split = quote(expert, current.duration_minutes)

        # Vetting is re-checked in the same statement as the booking
        expert_approved = (
            select(Expert.id)
            .where(Expert.id == expert.id, Expert.status == EXPERT_APPROVED)
            .exists()
        )

        async with self.session_factory() as db:
            result = await db.execute(
                update(Session)
                .where(
                    Session.id == session_id,
                    Session.status == SESSION_PENDING_PAYMENT,
                    expert_approved,
                )
                .values(
                    expert_id=expert.id,
                    scheduled_time=scheduled_time,
                    status=SESSION_SCHEDULED,
                    **split.as_update_values(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await db.rollback()
                latest = await self._load(db, session_id)
                if latest.status != SESSION_PENDING_PAYMENT:
                    raise InvalidTransition(f"Session {session_id} is no longer pending payment")
                raise ExpertUnavailable(f"Expert {expert_id} is no longer available for booking")
            await db.commit()
            session = await self._load(db, session_id)

        logger.info(
            f"Session {session_id} booked with expert {expert.id} at {scheduled_time.isoformat()}: "
            f"price={split.price_gbp}, fee={split.platform_fee_gbp}, payout={split.expert_payout_gbp}"
        )
        return session

    async def mark_completed(self, session_id: uuid.UUID) -> Session:
        """
        Complete a scheduled session whose start time has passed.

        Increments the expert's total_sessions in the same transaction.

        Raises:
            SessionNotFound: If the session does not exist
            InvalidTransition: If not scheduled or the start time is still ahead
        """
        now = self.clock()
        async with self.session_factory() as db:
            current = await self._load(db, session_id)
            if current.status != SESSION_SCHEDULED:
                raise InvalidTransition(f"Cannot complete session {session_id} in status '{current.status}'")
            if as_utc(current.scheduled_time) >= now:
                raise InvalidTransition(f"Session {session_id} has not started yet")

            result = await db.execute(
                update(Session)
                .where(Session.id == session_id, Session.status == SESSION_SCHEDULED)
                .values(status=SESSION_COMPLETED, completed_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await db.rollback()
                raise InvalidTransition(f"Session {session_id} is no longer scheduled")

            await db.execute(
                update(Expert)
                .where(Expert.id == current.expert_id)
                .values(total_sessions=Expert.total_sessions + 1)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            session = await self._load(db, session_id)

        logger.info(f"Session {session_id} completed (expert {session.expert_id})")
        return session

    async def cancel(self, session_id: uuid.UUID) -> Session:
        """
        Cancel a pending or scheduled session. Cancelling twice is a no-op.

        Raises:
            SessionNotFound: If the session does not exist
            InvalidTransition: If the session is completed
        """
        async with self.session_factory() as db:
            current = await self._load(db, session_id)
            if current.status == SESSION_CANCELLED:
                return current
            if current.status not in CANCELLABLE_STATUSES:
                raise InvalidTransition(f"Cannot cancel session {session_id} in status '{current.status}'")

            result = await db.execute(
                update(Session)
                .where(Session.id == session_id, Session.status.in_(CANCELLABLE_STATUSES))
                .values(status=SESSION_CANCELLED, cancelled_at=self.clock())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await db.rollback()
                # Lost a race: fine if the winner also cancelled
                session = await self._load(db, session_id)
                if session.status != SESSION_CANCELLED:
                    raise InvalidTransition(f"Cannot cancel session {session_id} in status '{session.status}'")
                return session
            await db.commit()
            session = await self._load(db, session_id)

        logger.info(f"Session {session_id} cancelled from '{current.status}'")
        return session

    async def submit_feedback(self, session_id: uuid.UUID, rating: int, feedback_text: Optional[str] = None) -> Session:
        """
        Record the buyer's rating once and refresh the expert's reputation.

        Raises:
            ValidationError: If rating is not an integer 1-5
            SessionNotFound: If the session does not exist
            InvalidTransition: If the session is not completed
            DuplicateFeedback: If the session was already rated
            LockTimeout: If the expert's rating lock is busy; nothing is written
        """
        validate_rating(rating)

        current = await self.get(session_id)
        if current.status != SESSION_COMPLETED:
            raise InvalidTransition(
                f"Cannot rate session {session_id} in status '{current.status}'"
            )
        if current.buyer_rating is not None:
            raise DuplicateFeedback(f"Session {session_id} has already been rated")

        # Rating and reputation commit in one transaction under the expert lock
        async with self.rating_aggregator.exclusive(current.expert_id):
            async with self.session_factory() as db:
                result = await db.execute(
                    update(Session)
                    .where(
                        Session.id == session_id,
                        Session.status == SESSION_COMPLETED,
                        Session.buyer_rating.is_(None),
                    )
                    .values(
                        buyer_rating=rating,
                        buyer_feedback=feedback_text,
                        problem_resolved=rating >= RESOLVED_RATING_THRESHOLD,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    await db.rollback()
                    raise DuplicateFeedback(f"Session {session_id} has already been rated")
                await self.rating_aggregator.refresh(db, current.expert_id)
                await db.commit()
                session = await self._load(db, session_id)

        logger.info(f"Feedback recorded for session {session_id}: rating={rating}")
        return session

    async def record_outcome(self, session_id: uuid.UUID, ai_summary: Optional[str], action_items: List[str]) -> Session:
        """
        Attach the post-session summary and action items.

        Raises:
            SessionNotFound: If the session does not exist
            InvalidTransition: If the session is not completed
        """
        items = [item.strip() for item in action_items or [] if item and item.strip()]
        async with self.session_factory() as db:
            result = await db.execute(
                update(Session)
                .where(Session.id == session_id, Session.status == SESSION_COMPLETED)
                .values(ai_summary=ai_summary, action_items=items)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await db.rollback()
                current = await self._load(db, session_id)
                raise InvalidTransition(
                    f"Cannot record outcome for session {session_id} in status '{current.status}'"
                )
            await db.commit()
            return await self._load(db, session_id)

    async def list_by_status(self, status: Optional[str] = None) -> List[Session]:
        """List sessions, newest first, optionally filtered by status"""
        query = select(Session).order_by(Session.created_at.desc(), Session.id.asc())
        if status is not None:
            if status not in SESSION_STATUSES:
                raise ValidationError(f"Invalid session status: {status}. Must be one of: {list(SESSION_STATUSES)}")
            query = query.where(Session.status == status)
        async with self.session_factory() as db:
            result = await db.execute(query)
            return list(result.scalars().all())

    async def list_for_buyer(self, buyer_id: str) -> List[Session]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Session)
                .where(Session.buyer_id == buyer_id)
                .order_by(Session.created_at.desc(), Session.id.asc())
            )
            return list(result.scalars().all())

    async def list_for_expert(self, expert_id: uuid.UUID) -> List[Session]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Session)
                .where(Session.expert_id == expert_id)
                .order_by(Session.scheduled_time.desc(), Session.id.asc())
            )
            return list(result.scalars().all())


# Global lifecycle instance
_lifecycle: Optional[SessionLifecycle] = None


def get_session_lifecycle() -> SessionLifecycle:
    """Get or create global SessionLifecycle instance."""
    global _lifecycle
    if _lifecycle is None:
        _lifecycle = SessionLifecycle(
            rating_aggregator=get_rating_aggregator(),
            structurer=get_problem_structurer(),
        )
    return _lifecycle
