"""
Marketplace Reporting

Read-only aggregates for the admin session overview and expert earnings.
"""

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.config import MIN_PAYOUT_THRESHOLD_GBP
from app.database import AsyncSessionLocal
from app.exceptions import ExpertNotFound
from app.models.expert import Expert
from app.models.session import SESSION_COMPLETED, SESSION_SCHEDULED, SESSION_STATUSES, Session
from app.utils.date_utils import as_utc, utcnow

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

# Sessions whose price has been fixed and not cancelled
BOOKED_STATUSES = (SESSION_SCHEDULED, SESSION_COMPLETED)


def summarize_sessions(sessions: Iterable[Session]) -> Dict[str, Any]:
    """Totals by status plus revenue and platform fees over booked sessions"""
    status_counts = {status: 0 for status in SESSION_STATUSES}
    total_revenue = ZERO
    platform_fees = ZERO
    expert_payouts = ZERO
    total = 0

    for session in sessions:
        total += 1
        status_counts[session.status] = status_counts.get(session.status, 0) + 1
        if session.status in BOOKED_STATUSES and session.price_gbp is not None:
            total_revenue += session.price_gbp
            platform_fees += session.platform_fee_gbp
            expert_payouts += session.expert_payout_gbp

    return {
        "total_sessions": total,
        "status_counts": status_counts,
        "total_revenue_gbp": total_revenue,
        "platform_fees_gbp": platform_fees,
        "expert_payouts_gbp": expert_payouts,
    }


def summarize_earnings(
    sessions: Iterable[Session],
    now: datetime,
    threshold: Decimal = MIN_PAYOUT_THRESHOLD_GBP,
) -> Dict[str, Any]:
    """Payout totals over completed sessions, all-time and in now's calendar month"""
    total = ZERO
    this_month = ZERO
    completed = 0

    for session in sessions:
        if session.status != SESSION_COMPLETED or session.expert_payout_gbp is None:
            continue
        completed += 1
        total += session.expert_payout_gbp
        scheduled = as_utc(session.scheduled_time)
        if scheduled is not None and (scheduled.year, scheduled.month) == (now.year, now.month):
            this_month += session.expert_payout_gbp

    return {
        "completed_sessions": completed,
        "total_earnings_gbp": total,
        "this_month_earnings_gbp": this_month,
        "minimum_payout_gbp": threshold,
        "payout_eligible": total >= threshold,
    }


class MarketplaceReport:
    """Aggregates over sessions for admins and experts"""

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory

    async def session_overview(self) -> Dict[str, Any]:
        async with self.session_factory() as db:
            result = await db.execute(select(Session))
            overview = summarize_sessions(result.scalars().all())

        logger.debug(f"Session overview: {overview['total_sessions']} sessions")
        return overview

    async def expert_earnings(self, expert_id: uuid.UUID, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Earnings for an expert.

        Raises:
            ExpertNotFound: If the expert does not exist
        """
        now = as_utc(now) if now is not None else utcnow()
        async with self.session_factory() as db:
            expert = await db.get(Expert, expert_id)
            if expert is None:
                raise ExpertNotFound(f"Expert {expert_id} not found")
            result = await db.execute(
                select(Session).where(
                    Session.expert_id == expert_id,
                    Session.status == SESSION_COMPLETED,
                )
            )
            earnings = summarize_earnings(result.scalars().all(), now)

        earnings["expert_id"] = str(expert_id)
        return earnings


# Global report instance
_report: Optional[MarketplaceReport] = None


def get_marketplace_report() -> MarketplaceReport:
    """Get or create global MarketplaceReport instance."""
    global _report
    if _report is None:
        _report = MarketplaceReport()
    return _report
