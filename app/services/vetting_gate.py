"""
Vetting Gate

Owns Expert.status and therefore whether an expert can be matched or booked.

Status machine:
    pending   -> approved | rejected
    approved  -> suspended
    suspended -> approved (reinstate)
    rejected is terminal

Status changes are conditional single-row updates with no side effects on
existing sessions: suspending an expert does not cancel bookings already
scheduled with them.
"""

import logging
import re
import uuid
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.database import AsyncSessionLocal
from app.exceptions import ExpertNotFound, ExpertUnavailable, InvalidTransition, ValidationError
from app.models.expert import (
    EXPERT_APPROVED,
    EXPERT_PENDING,
    EXPERT_REJECTED,
    EXPERT_STATUSES,
    EXPERT_SUSPENDED,
    Expert,
)
from app.services.payout_calculator import DEFAULT_RATES_GBP, to_money

logger = logging.getLogger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def is_matchable(expert: Optional[Expert]) -> bool:
    """Only approved experts can be matched or booked"""
    return expert is not None and expert.status == EXPERT_APPROVED


def normalize_tags(tags: Iterable[str]) -> List[str]:
    """Lower-case, strip and de-duplicate tags, keeping first-seen order"""
    seen = []
    for tag in tags or []:
        cleaned = str(tag).strip().lower()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


def validate_availability_slots(slots: Iterable[Dict[str, Any]]) -> List[Dict[str, str]]:
    """
    Validate weekly availability windows.

    Each slot needs a weekday name and HH:MM start/end times with start < end.

    Returns:
        Normalized slots (lower-case day names)

    Raises:
        ValidationError: On the first malformed slot
    """
    normalized = []
    for index, slot in enumerate(slots or []):
        day = str(slot.get("day", "")).strip().lower()
        start_time = str(slot.get("start_time", "")).strip()
        end_time = str(slot.get("end_time", "")).strip()

        if day not in WEEKDAYS:
            raise ValidationError(f"Slot {index}: invalid day '{slot.get('day')}'")
        if not _TIME_PATTERN.match(start_time) or not _TIME_PATTERN.match(end_time):
            raise ValidationError(f"Slot {index}: times must be HH:MM")
        # Zero-padded HH:MM strings compare chronologically
        if start_time >= end_time:
            raise ValidationError(f"Slot {index}: start_time must be before end_time")

        normalized.append({"day": day, "start_time": start_time, "end_time": end_time})
    return normalized


class VettingGate:
    """Expert applications, admin vetting decisions and availability settings"""

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory

    async def submit_application(
        self,
        user_id: str,
        positioning: str,
        expertise_areas: Iterable[str],
        bio: Optional[str] = None,
        example_problems: Optional[Iterable[str]] = None,
        years_experience: int = 0,
        rate_10min: Optional[Any] = None,
        rate_20min: Optional[Any] = None,
        linkedin_url: Optional[str] = None,
        portfolio_url: Optional[str] = None,
        timezone: str = "Europe/London",
    ) -> Expert:
        """
        Create a pending expert profile for a user.

        Missing rates default to the platform's 10/20 minute defaults.

        Raises:
            ValidationError: On malformed input or if the user already applied
        """
        if not user_id or not str(user_id).strip():
            raise ValidationError("user_id is required")
        if not positioning or not positioning.strip():
            raise ValidationError("positioning is required")

        tags = normalize_tags(expertise_areas)
        if not tags:
            raise ValidationError("At least one expertise area is required")
        if years_experience is None or years_experience < 0:
            raise ValidationError("years_experience must be zero or more")

        rates = {}
        for duration, value in ((10, rate_10min), (20, rate_20min)):
            rate = DEFAULT_RATES_GBP[duration] if value is None else to_money(value)
            if rate <= 0:
                raise ValidationError(f"rate_{duration}min must be positive")
            rates[duration] = rate

        problems = [p.strip() for p in (example_problems or []) if p and p.strip()]

        async with self.session_factory() as db:
            existing = await db.execute(select(Expert.id).where(Expert.user_id == user_id))
            if existing.scalar_one_or_none() is not None:
                raise ValidationError(f"User {user_id} already has an expert profile")

            expert = Expert(
                user_id=user_id,
                status=EXPERT_PENDING,
                positioning=positioning.strip(),
                bio=bio,
                expertise_areas=tags,
                example_problems=problems,
                years_experience=years_experience,
                rate_10min=rates[10],
                rate_20min=rates[20],
                linkedin_url=linkedin_url,
                portfolio_url=portfolio_url,
                availability_slots=[],
                accept_asap_calls=False,
                timezone=timezone or "Europe/London",
            )
            db.add(expert)
            try:
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                raise ValidationError(f"User {user_id} already has an expert profile") from e
            await db.refresh(expert)

        logger.info(f"Expert application submitted: expert={expert.id}, user={user_id}, areas={tags}")
        return expert

    async def get(self, expert_id: uuid.UUID) -> Expert:
        async with self.session_factory() as db:
            expert = await db.get(Expert, expert_id)
        if expert is None:
            raise ExpertNotFound(f"Expert {expert_id} not found")
        return expert

    async def get_by_user(self, user_id: str) -> Expert:
        async with self.session_factory() as db:
            result = await db.execute(select(Expert).where(Expert.user_id == user_id))
            expert = result.scalar_one_or_none()
        if expert is None:
            raise ExpertNotFound(f"No expert profile for user {user_id}")
        return expert

    async def list_by_status(self, status: str) -> List[Expert]:
        """List experts in a vetting status, newest application first"""
        if status not in EXPERT_STATUSES:
            raise ValidationError(f"Invalid expert status: {status}. Must be one of: {EXPERT_STATUSES}")
        async with self.session_factory() as db:
            result = await db.execute(
                select(Expert)
                .where(Expert.status == status)
                .order_by(Expert.created_at.desc(), Expert.id.asc())
            )
            return list(result.scalars().all())

    async def require_matchable(self, expert_id: uuid.UUID) -> Expert:
        """
        Load an expert that may be booked.

        Raises:
            ExpertNotFound: If the expert does not exist
            ExpertUnavailable: If the expert is not approved
        """
        expert = await self.get(expert_id)
        if not is_matchable(expert):
            raise ExpertUnavailable(f"Expert {expert_id} is not available for booking (status: {expert.status})")
        return expert

    async def approve(self, expert_id: uuid.UUID) -> Expert:
        return await self._transition(expert_id, EXPERT_APPROVED, (EXPERT_PENDING,), "approve")

    async def reject(self, expert_id: uuid.UUID) -> Expert:
        return await self._transition(expert_id, EXPERT_REJECTED, (EXPERT_PENDING,), "reject")

    async def suspend(self, expert_id: uuid.UUID) -> Expert:
        return await self._transition(expert_id, EXPERT_SUSPENDED, (EXPERT_APPROVED,), "suspend")

    async def reinstate(self, expert_id: uuid.UUID) -> Expert:
        return await self._transition(expert_id, EXPERT_APPROVED, (EXPERT_SUSPENDED,), "reinstate")

    async def _transition(self, expert_id: uuid.UUID, target: str, allowed_from: tuple, action: str) -> Expert:
        async with self.session_factory() as db:
            result = await db.execute(
                update(Expert)
                .where(Expert.id == expert_id, Expert.status.in_(allowed_from))
                .values(status=target)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await db.rollback()
                current = await db.get(Expert, expert_id)
                if current is None:
                    raise ExpertNotFound(f"Expert {expert_id} not found")
                raise InvalidTransition(f"Cannot {action} expert in status '{current.status}'")
            await db.commit()
            expert = await db.get(Expert, expert_id, populate_existing=True)

        logger.info(f"Expert {expert_id} {action}: -> {target}")
        return expert

    async def update_availability(
        self,
        expert_id: uuid.UUID,
        availability_slots: Optional[Iterable[Dict[str, Any]]] = None,
        accept_asap_calls: Optional[bool] = None,
        timezone: Optional[str] = None,
    ) -> Expert:
        """
        Update availability settings only; other profile fields are untouched.

        Raises:
            ValidationError: On malformed slots or blank timezone
            ExpertNotFound: If the expert does not exist
        """
        values: Dict[str, Any] = {}
        if availability_slots is not None:
            values["availability_slots"] = validate_availability_slots(availability_slots)
        if accept_asap_calls is not None:
            values["accept_asap_calls"] = bool(accept_asap_calls)
        if timezone is not None:
            if not timezone.strip():
                raise ValidationError("timezone must not be blank")
            values["timezone"] = timezone.strip()

        async with self.session_factory() as db:
            if values:
                result = await db.execute(
                    update(Expert)
                    .where(Expert.id == expert_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    await db.rollback()
                    raise ExpertNotFound(f"Expert {expert_id} not found")
                await db.commit()
            expert = await db.get(Expert, expert_id, populate_existing=True)

        if expert is None:
            raise ExpertNotFound(f"Expert {expert_id} not found")
        logger.info(f"Expert {expert_id} availability updated: {sorted(values)}")
        return expert


# Global gate instance
_gate: Optional[VettingGate] = None


def get_vetting_gate() -> VettingGate:
    """Get or create global VettingGate instance."""
    global _gate
    if _gate is None:
        _gate = VettingGate()
    return _gate
