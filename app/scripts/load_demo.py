"""
Demo Data Loader

Seeds experts in every vetting status plus sessions across the lifecycle.
Usage: python -m app.scripts.load_demo --create-tables
"""
import asyncio
import argparse
from datetime import timedelta
from sqlalchemy import text

from app.database import AsyncSessionLocal, Base, engine
from app.services.session_lifecycle import ProblemDetails, SessionLifecycle
from app.services.vetting_gate import VettingGate
from app.utils.date_utils import utcnow

DEMO_EXPERTS = [
    {
        "user_id": "demo_user_pricing",
        "positioning": "Former Head of Pricing at a B2B SaaS scale-up",
        "expertise_areas": ["pricing", "sales"],
        "example_problems": ["Should I move from per-seat to usage pricing?"],
        "years_experience": 12,
        "rate_10min": 40,
        "rate_20min": 70,
        "accept_asap_calls": True,
        "decision": "approve",
    },
    {
        "user_id": "demo_user_growth",
        "positioning": "Growth lead for three consumer apps",
        "expertise_areas": ["growth", "marketing"],
        "example_problems": ["Which acquisition channel should I test first?"],
        "years_experience": 8,
        "rate_10min": None,
        "rate_20min": None,
        "accept_asap_calls": False,
        "decision": "approve",
    },
    {
        "user_id": "demo_user_hiring",
        "positioning": "Recruiter for early-stage engineering teams",
        "expertise_areas": ["hiring"],
        "example_problems": ["How do I structure my first engineering interview loop?"],
        "years_experience": 6,
        "rate_10min": 25,
        "rate_20min": 45,
        "accept_asap_calls": True,
        "decision": None,
    },
    {
        "user_id": "demo_user_legal",
        "positioning": "Startup lawyer",
        "expertise_areas": ["legal", "fundraising"],
        "example_problems": ["Is a SAFE right for my pre-seed round?"],
        "years_experience": 15,
        "rate_10min": 60,
        "rate_20min": 100,
        "accept_asap_calls": False,
        "decision": "reject",
    },
]


async def create_tables():
    """Create tables directly (use Alembic migrations in production)"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("✓ Tables created")


async def clear_demo_data():
    """Clear all existing data"""
    async with AsyncSessionLocal() as session:
        for table in ["sessions", "experts"]:
            await session.execute(text(f"DELETE FROM {table}"))
        await session.commit()
    print("✓ Cleared existing data")


async def load_experts(gate: VettingGate) -> dict:
    experts = {}
    for spec in DEMO_EXPERTS:
        spec = dict(spec)
        decision = spec.pop("decision")
        accept_asap = spec.pop("accept_asap_calls")

        expert = await gate.submit_application(**spec)
        await gate.update_availability(
            expert.id,
            availability_slots=[{"day": "tuesday", "start_time": "09:00", "end_time": "12:00"}],
            accept_asap_calls=accept_asap,
        )
        if decision == "approve":
            expert = await gate.approve(expert.id)
        elif decision == "reject":
            expert = await gate.reject(expert.id)
        experts[spec["user_id"]] = expert

    print(f"  Created {len(experts)} experts")
    return experts


async def load_sessions(lifecycle: SessionLifecycle, experts: dict):
    pricing = experts["demo_user_pricing"]
    growth = experts["demo_user_growth"]

    asap = await lifecycle.create(
        "demo_buyer_1",
        ProblemDetails(
            title="Usage-based pricing switch",
            description="We charge per seat and churn is rising among small teams.",
            category="pricing",
            duration_minutes=20,
            urgency="asap",
        ),
    )
    await lifecycle.create(
        "demo_buyer_2",
        ProblemDetails(
            title="First growth channel",
            description="Pre-launch consumer app with a small waitlist.",
            category="growth",
            duration_minutes=10,
            urgency="this_week",
        ),
    )
    booked = await lifecycle.create(
        "demo_buyer_2",
        ProblemDetails(
            title="Referral programme design",
            category="growth",
            duration_minutes=10,
            urgency="today",
        ),
    )

    await lifecycle.match_and_book(asap.id, pricing.id, utcnow() + timedelta(days=2))
    await lifecycle.match_and_book(booked.id, growth.id, utcnow() + timedelta(days=1))

    print("  Created 3 sessions (1 pending payment, 2 scheduled)")


async def load_demo(create: bool):
    if create:
        await create_tables()

    await clear_demo_data()

    gate = VettingGate()
    lifecycle = SessionLifecycle(vetting_gate=gate)

    print("\nLoading demo marketplace...")
    experts = await load_experts(gate)
    await load_sessions(lifecycle, experts)

    print("\n✅ Demo data loaded successfully!")
    await engine.dispose()


def main():
    """CLI entry point"""
    parser = argparse.ArgumentParser(description="Load demo marketplace data")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create tables before loading (no Alembic)"
    )

    args = parser.parse_args()
    asyncio.run(load_demo(args.create_tables))


if __name__ == "__main__":
    main()
