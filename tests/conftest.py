"""
Shared pytest fixtures

Provides:
  - session_factory: async session factory over a temporary SQLite file
  - clock: controllable UTC clock injected into SessionLifecycle
  - gate, aggregator, lifecycle, matching, report: services bound to the test database
  - make_expert: submits (and by default approves) an expert application

The text-analysis service is never called: the structurer is built without a URL.
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.pool import NullPool

import app.models  # noqa: F401  registers tables on Base.metadata
from app.database import Base, build_engine, build_session_factory
from app.services.marketplace_report import MarketplaceReport
from app.services.matching_policy import MatchingPolicy
from app.services.problem_structurer import ProblemStructurer
from app.services.rating_aggregator import RatingAggregator
from app.services.session_lifecycle import ProblemDetails, SessionLifecycle
from app.services.vetting_gate import VettingGate


class FakeClock:
    """Mutable clock; starts at a fixed instant"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
async def session_factory(tmp_path):
    """File-backed SQLite so concurrent sessions use separate connections"""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'marketplace.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield build_session_factory(engine)

    await engine.dispose()


@pytest.fixture
def clock():
    return FakeClock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest.fixture
def gate(session_factory):
    return VettingGate(session_factory)


@pytest.fixture
def aggregator(session_factory):
    return RatingAggregator(session_factory)


@pytest.fixture
def structurer():
    return ProblemStructurer(base_url="")


@pytest.fixture
def lifecycle(session_factory, gate, aggregator, structurer, clock):
    return SessionLifecycle(
        session_factory,
        vetting_gate=gate,
        rating_aggregator=aggregator,
        structurer=structurer,
        clock=clock,
    )


@pytest.fixture
def matching(session_factory):
    return MatchingPolicy(session_factory)


@pytest.fixture
def report(session_factory):
    return MarketplaceReport(session_factory)


@pytest.fixture
def make_expert(gate):
    """Factory: create an expert, approved unless approve=False"""
    counter = {"n": 0}

    async def _make(approve: bool = True, accept_asap_calls: bool = False, **overrides):
        counter["n"] += 1
        fields = {
            "user_id": f"user_{counter['n']}",
            "positioning": "Operator turned advisor",
            "expertise_areas": ["pricing"],
            "rate_10min": 30,
            "rate_20min": 50,
        }
        fields.update(overrides)
        expert = await gate.submit_application(**fields)
        if accept_asap_calls:
            expert = await gate.update_availability(expert.id, accept_asap_calls=True)
        if approve:
            expert = await gate.approve(expert.id)
        return expert

    return _make


@pytest.fixture
def make_problem():
    def _make(duration_minutes: int = 20, urgency: str = "this_week", category: str = "pricing"):
        return ProblemDetails(
            title="Should we raise prices?",
            description="Churn is flat and we have not raised prices in two years.",
            category=category,
            duration_minutes=duration_minutes,
            urgency=urgency,
        )

    return _make


@pytest.fixture
def completed_session(lifecycle, clock, make_problem):
    """Factory: book a session with the expert and complete it"""

    async def _complete(expert, buyer_id: str = "buyer_1"):
        session = await lifecycle.create(buyer_id, make_problem())
        await lifecycle.match_and_book(session.id, expert.id, clock() + timedelta(hours=1))
        clock.advance(hours=2)
        return await lifecycle.mark_completed(session.id)

    return _complete
