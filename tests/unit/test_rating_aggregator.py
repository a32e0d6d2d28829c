"""
Unit tests for rating aggregation formulas and per-key locks

Tests mean/NPS formulas and that the keyed lock serializes callers per key.
"""

import asyncio

import pytest

from app.exceptions import LockTimeout
from app.services.keyed_lock import InProcessKeyedLock, build_keyed_lock
from app.services.rating_aggregator import mean_rating, net_promoter_score


class TestMeanRating:
    """Test average rating formula"""

    def test_mean_of_five_three_four(self):
        assert mean_rating([5, 3, 4]) == 4.0

    def test_no_ratings_is_zero(self):
        assert mean_rating([]) == 0.0

    def test_single_rating(self):
        assert mean_rating([2]) == 2.0

    def test_order_does_not_matter(self):
        assert mean_rating([1, 5, 4, 4]) == mean_rating([4, 4, 5, 1]) == 3.5


class TestNetPromoterScore:
    """Test NPS on the 1-5 scale (5 promoter, 4 passive, 1-3 detractor)"""

    def test_all_promoters(self):
        assert net_promoter_score([5, 5, 5]) == 100.0

    def test_all_detractors(self):
        assert net_promoter_score([1, 2, 3]) == -100.0

    def test_passives_only(self):
        assert net_promoter_score([4, 4]) == 0.0

    def test_mixed(self):
        """2 promoters, 1 passive, 1 detractor -> (2 - 1) / 4 = 25"""
        assert net_promoter_score([5, 5, 4, 2]) == 25.0

    def test_no_ratings_is_zero(self):
        assert net_promoter_score([]) == 0.0


class TestInProcessKeyedLock:
    """Test per-key serialization"""

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        lock = InProcessKeyedLock(timeout=1.0)
        events = []

        async def critical(name):
            async with lock.hold("expert-1"):
                events.append(f"{name}-start")
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")

        await asyncio.gather(critical("a"), critical("b"))

        # Each start is immediately followed by its own end
        assert events[0].split("-")[0] == events[1].split("-")[0]
        assert events[2].split("-")[0] == events[3].split("-")[0]

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self):
        lock = InProcessKeyedLock(timeout=1.0)
        inside = asyncio.Event()

        async def first():
            async with lock.hold("expert-1"):
                await asyncio.wait_for(inside.wait(), timeout=1.0)

        async def second():
            async with lock.hold("expert-2"):
                inside.set()

        await asyncio.gather(first(), second())

    @pytest.mark.asyncio
    async def test_timeout_raises_lock_timeout(self):
        lock = InProcessKeyedLock(timeout=0.05)

        async with lock.hold("expert-1"):
            with pytest.raises(LockTimeout):
                async with lock.hold("expert-1"):
                    pass

    @pytest.mark.asyncio
    async def test_released_keys_are_dropped(self):
        lock = InProcessKeyedLock(timeout=1.0)

        async with lock.hold("expert-1"):
            assert lock.is_tracked("expert-1")

        assert not lock.is_tracked("expert-1")

    def test_without_redis_falls_back_to_process_lock(self):
        assert isinstance(build_keyed_lock(None, timeout=1.0, prefix="rating-lock"), InProcessKeyedLock)
