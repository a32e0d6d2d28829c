"""
Rating Aggregator

Recomputes an expert's reputation from every rated session.

Full recomputation (not an incremental running mean) under an exclusive
per-expert lock, so concurrent feedback submissions for the same expert
cannot lose each other's ratings.
"""

import logging
import uuid
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import RATING_LOCK_TIMEOUT_SECONDS
from app.database import AsyncSessionLocal, get_redis
from app.exceptions import ExpertNotFound
from app.models.expert import Expert
from app.models.session import Session
from app.services.keyed_lock import InProcessKeyedLock, build_keyed_lock

logger = logging.getLogger(__name__)

PROMOTER_RATING = 5
DETRACTOR_MAX_RATING = 3


def mean_rating(ratings: Sequence[int]) -> float:
    """Arithmetic mean of ratings, 0.0 when there are none"""
    if not ratings:
        return 0.0
    return sum(ratings) / len(ratings)


def net_promoter_score(ratings: Sequence[int]) -> float:
    """
    NPS on the 1-5 scale.

    5 counts as promoter, 4 as passive, 1-3 as detractor.
    Returns a whole number in [-100, 100], 0.0 when there are no ratings.
    """
    if not ratings:
        return 0.0
    promoters = sum(1 for r in ratings if r >= PROMOTER_RATING)
    detractors = sum(1 for r in ratings if r <= DETRACTOR_MAX_RATING)
    return float(round(100 * (promoters - detractors) / len(ratings)))


class RatingAggregator:
    """Sole writer of Expert.average_rating and Expert.nps_score"""

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal, lock=None):
        self.session_factory = session_factory
        self.lock = lock or InProcessKeyedLock(timeout=RATING_LOCK_TIMEOUT_SECONDS)

    def exclusive(self, expert_id: uuid.UUID):
        """Per-expert lock; rating writes and refresh() must run inside it"""
        return self.lock.hold(str(expert_id))

    async def refresh(self, db: AsyncSession, expert_id: uuid.UUID) -> float:
        """
        Write the expert's average rating and NPS within the caller's transaction.

        Must be called while holding exclusive(expert_id). Does not commit.

        Raises:
            ExpertNotFound: If the expert does not exist
        """
        result = await db.execute(
            select(Session.buyer_rating).where(
                Session.expert_id == expert_id,
                Session.buyer_rating.is_not(None),
            )
        )
        ratings = list(result.scalars().all())

        average = mean_rating(ratings)
        nps = net_promoter_score(ratings)

        result = await db.execute(
            update(Expert)
            .where(Expert.id == expert_id)
            .values(average_rating=average, nps_score=nps)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ExpertNotFound(f"Expert {expert_id} not found")

        logger.info(
            f"Recomputed rating for expert {expert_id}: "
            f"average={average:.2f} over {len(ratings)} ratings, nps={nps:.0f}"
        )
        return average

    async def recompute(self, expert_id: uuid.UUID) -> float:
        """
        Recompute average rating and NPS for an expert.

        Args:
            expert_id: Expert to recompute

        Returns:
            The new average rating

        Raises:
            ExpertNotFound: If the expert does not exist
            LockTimeout: If another writer holds the expert lock too long
        """
        async with self.exclusive(expert_id):
            async with self.session_factory() as db:
                average = await self.refresh(db, expert_id)
                await db.commit()
        return average


# Global aggregator instance
_aggregator: Optional[RatingAggregator] = None


def get_rating_aggregator() -> RatingAggregator:
    """Get or create global RatingAggregator instance."""
    global _aggregator
    if _aggregator is None:
        lock = build_keyed_lock(get_redis(), timeout=RATING_LOCK_TIMEOUT_SECONDS, prefix="rating-lock")
        _aggregator = RatingAggregator(lock=lock)
    return _aggregator
