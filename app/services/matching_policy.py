"""
Matching Policy

Selects candidate experts for a structured problem.

Candidates must be approved, share at least one expertise tag with the
problem and, for ASAP requests, accept ASAP calls. Ordering is
average_rating desc, total_sessions desc, id asc.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.config import MATCH_CANDIDATE_LIMIT
from app.database import AsyncSessionLocal
from app.exceptions import ValidationError
from app.models.expert import EXPERT_APPROVED, Expert
from app.models.session import URGENCY_LEVELS
from app.services.vetting_gate import is_matchable, normalize_tags

logger = logging.getLogger(__name__)


def rank_key(expert: Expert):
    return (-(expert.average_rating or 0.0), -(expert.total_sessions or 0), expert.id)


def effective_tags(problem_category: Optional[str], expertise_tags: Iterable[str]) -> List[str]:
    """Requested tags, or the problem category when no tags were given"""
    tags = normalize_tags(expertise_tags)
    if not tags and problem_category:
        tags = normalize_tags([problem_category])
    return tags


def select_candidates(
    experts: Iterable[Expert],
    tags: Iterable[str],
    urgency: str,
    limit: int,
) -> List[Expert]:
    """Filter and rank an in-memory pool of experts"""
    wanted = set(tags)
    matches = []
    for expert in experts:
        if not is_matchable(expert):
            continue
        if urgency == "asap" and not expert.accept_asap_calls:
            continue
        if wanted.isdisjoint(normalize_tags(expert.expertise_areas)):
            continue
        matches.append(expert)

    matches.sort(key=rank_key)
    return matches[:limit]


class MatchingPolicy:
    """Finds approved experts for a problem"""

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal, limit: int = MATCH_CANDIDATE_LIMIT):
        self.session_factory = session_factory
        self.limit = limit

    async def find_candidates(
        self,
        problem_category: Optional[str],
        expertise_tags: Iterable[str],
        urgency: str,
        limit: Optional[int] = None,
    ) -> List[Expert]:
        """
        Find candidate experts for a problem.

        Args:
            problem_category: Structured problem category
            expertise_tags: Tags the expert must share (any one suffices)
            urgency: "asap", "today" or "this_week"
            limit: Maximum candidates, defaults to the configured limit

        Returns:
            Ranked experts; an empty list means no match

        Raises:
            ValidationError: If urgency or limit is invalid
        """
        if urgency not in URGENCY_LEVELS:
            raise ValidationError(f"Invalid urgency: {urgency}. Must be one of: {URGENCY_LEVELS}")
        limit = self.limit if limit is None else limit
        if limit < 1:
            raise ValidationError("limit must be at least 1")

        tags = effective_tags(problem_category, expertise_tags)
        if not tags:
            return []

        query = select(Expert).where(Expert.status == EXPERT_APPROVED)
        if urgency == "asap":
            query = query.where(Expert.accept_asap_calls.is_(True))

        async with self.session_factory() as db:
            result = await db.execute(query)
            pool = list(result.scalars().all())

        candidates = select_candidates(pool, tags, urgency, limit)
        logger.info(
            f"Matching {problem_category}/{tags} urgency={urgency}: "
            f"{len(candidates)} of {len(pool)} approved experts selected"
        )
        return candidates


# Global policy instance
_policy: Optional[MatchingPolicy] = None


def get_matching_policy() -> MatchingPolicy:
    """Get or create global MatchingPolicy instance."""
    global _policy
    if _policy is None:
        _policy = MatchingPolicy()
    return _policy
