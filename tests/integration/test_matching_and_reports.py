"""
Integration tests for matching and marketplace reports

Tests candidate queries against stored experts, the admin session overview
and expert earnings.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
import uuid

import pytest

from app.exceptions import ExpertNotFound, ValidationError

pytestmark = pytest.mark.integration


class TestFindCandidates:
    """Test candidate selection over the expert table"""

    async def test_only_approved_experts_returned(self, matching, gate, make_expert):
        approved = await make_expert()
        await make_expert(approve=False)
        rejected = await make_expert(approve=False)
        await gate.reject(rejected.id)
        suspended = await make_expert()
        await gate.suspend(suspended.id)

        candidates = await matching.find_candidates("pricing", ["pricing"], "this_week")

        assert [e.id for e in candidates] == [approved.id]

    async def test_asap_needs_opt_in(self, matching, make_expert):
        asap = await make_expert(accept_asap_calls=True)
        await make_expert()

        candidates = await matching.find_candidates("pricing", [], "asap")

        assert [e.id for e in candidates] == [asap.id]

    async def test_ranked_and_limited(self, matching, lifecycle, make_expert, completed_session):
        ratings = {}
        for rating in (2, 5, 4, 3):
            expert = await make_expert()
            session = await completed_session(expert)
            await lifecycle.submit_feedback(session.id, rating)
            ratings[expert.id] = rating

        candidates = await matching.find_candidates(None, ["pricing"], "today")

        assert len(candidates) == 3
        assert [ratings[e.id] for e in candidates] == [5, 4, 3]

    async def test_sessions_break_rating_ties(self, matching, make_expert, completed_session):
        quiet = await make_expert()
        busy = await make_expert()
        await completed_session(busy)

        candidates = await matching.find_candidates("pricing", [], "today")

        assert [e.id for e in candidates] == [busy.id, quiet.id]

    async def test_category_fallback_and_no_match(self, matching, make_expert):
        await make_expert(expertise_areas=["hiring"])

        assert len(await matching.find_candidates("hiring", [], "today")) == 1
        assert await matching.find_candidates("legal", [], "today") == []
        assert await matching.find_candidates(None, [], "today") == []

    async def test_invalid_arguments(self, matching):
        with pytest.raises(ValidationError):
            await matching.find_candidates("pricing", [], "whenever")
        with pytest.raises(ValidationError):
            await matching.find_candidates("pricing", [], "today", limit=0)


class TestMarketplaceReport:
    """Test admin overview and expert earnings"""

    async def test_session_overview(self, report, lifecycle, make_expert, make_problem, completed_session, clock):
        expert = await make_expert(rate_10min=30, rate_20min=50)
        await completed_session(expert)
        scheduled = await lifecycle.create("buyer_2", make_problem(duration_minutes=10))
        await lifecycle.match_and_book(scheduled.id, expert.id, clock() + timedelta(hours=1))
        await lifecycle.create("buyer_3", make_problem())
        cancelled = await lifecycle.create("buyer_4", make_problem())
        await lifecycle.match_and_book(cancelled.id, expert.id, clock() + timedelta(hours=1))
        await lifecycle.cancel(cancelled.id)

        overview = await report.session_overview()

        assert overview["total_sessions"] == 4
        assert overview["status_counts"] == {
            "pending_payment": 1,
            "scheduled": 1,
            "completed": 1,
            "cancelled": 1,
        }
        assert overview["total_revenue_gbp"] == Decimal("80.00")
        assert overview["platform_fees_gbp"] == Decimal("20.00")
        assert overview["expert_payouts_gbp"] == Decimal("60.00")

    async def test_expert_earnings_threshold(self, report, make_expert, completed_session, clock):
        expert = await make_expert(rate_20min=50)
        await completed_session(expert)

        earnings = await report.expert_earnings(expert.id, now=clock())
        assert earnings["completed_sessions"] == 1
        assert earnings["total_earnings_gbp"] == Decimal("37.50")
        assert earnings["payout_eligible"] is False

        await completed_session(expert)

        earnings = await report.expert_earnings(expert.id, now=clock())
        assert earnings["total_earnings_gbp"] == Decimal("75.00")
        assert earnings["payout_eligible"] is True
        assert earnings["expert_id"] == str(expert.id)

    async def test_this_month_excludes_earlier_months(self, report, make_expert, completed_session, clock):
        expert = await make_expert(rate_20min=50)
        await completed_session(expert)

        next_month = datetime(clock().year + 1, 1, 15, tzinfo=timezone.utc)
        earnings = await report.expert_earnings(expert.id, now=next_month)

        assert earnings["this_month_earnings_gbp"] == Decimal("0.00")
        assert earnings["total_earnings_gbp"] == Decimal("37.50")

    async def test_unknown_expert(self, report):
        with pytest.raises(ExpertNotFound):
            await report.expert_earnings(uuid.uuid4())
