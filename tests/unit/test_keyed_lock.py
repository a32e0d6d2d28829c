"""
Unit tests for the Redis-backed keyed lock

Tests key naming, acquire timeouts, release behaviour and per-key
serialization against stand-in redis.asyncio clients.
"""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import LockError

from app.exceptions import LockTimeout
from app.services.keyed_lock import RedisKeyedLock, build_keyed_lock


def redis_with_lock(acquired=True, release_error=None):
    lock = MagicMock()
    lock.acquire = AsyncMock(return_value=acquired)
    lock.release = AsyncMock(side_effect=release_error)
    client = MagicMock()
    client.lock.return_value = lock
    return client, lock


class FakeRedisLock:
    """Named lock shared through its client, honouring blocking_timeout"""

    def __init__(self, registry, name, blocking_timeout):
        self.registry = registry
        self.name = name
        self.blocking_timeout = blocking_timeout

    async def acquire(self):
        lock = self.registry.setdefault(self.name, asyncio.Lock())
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.blocking_timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def release(self):
        self.registry[self.name].release()


class FakeRedis:
    def __init__(self):
        self.locks = {}

    def lock(self, name, timeout=None, blocking_timeout=None):
        return FakeRedisLock(self.locks, name, blocking_timeout)


class TestRedisKeyedLock:
    """Test RedisKeyedLock acquire/release handling"""

    @pytest.mark.asyncio
    async def test_lock_name_and_timeouts(self):
        client, lock = redis_with_lock()
        keyed = RedisKeyedLock(client, timeout=2.0, lease_seconds=30.0, prefix="rating-lock")

        async with keyed.hold("expert-1"):
            pass

        client.lock.assert_called_once_with("rating-lock:expert-1", timeout=30.0, blocking_timeout=2.0)
        lock.acquire.assert_awaited_once()
        lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_not_acquired_raises_lock_timeout(self):
        client, lock = redis_with_lock(acquired=False)
        keyed = RedisKeyedLock(client, timeout=0.1, prefix="rating-lock")
        entered = False

        with pytest.raises(LockTimeout, match="rating-lock:expert-1"):
            async with keyed.hold("expert-1"):
                entered = True

        assert not entered
        lock.release.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expired_lease_on_release_is_logged(self, caplog):
        client, lock = redis_with_lock(release_error=LockError("Cannot release an unlocked lock"))
        keyed = RedisKeyedLock(client, timeout=1.0, prefix="rating-lock")
        entered = False

        with caplog.at_level(logging.WARNING, logger="app.services.keyed_lock"):
            async with keyed.hold("expert-1"):
                entered = True

        assert entered
        assert "expired before release" in caplog.text

    @pytest.mark.asyncio
    async def test_released_when_body_raises(self):
        client, lock = redis_with_lock()
        keyed = RedisKeyedLock(client, timeout=1.0)

        with pytest.raises(ValueError):
            async with keyed.hold("expert-1"):
                raise ValueError("write failed")

        lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self):
        keyed = RedisKeyedLock(FakeRedis(), timeout=1.0, prefix="rating-lock")
        events = []

        async def critical(name):
            async with keyed.hold("expert-1"):
                events.append(f"{name}-start")
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")

        await asyncio.gather(critical("a"), critical("b"))

        assert events[0].split("-")[0] == events[1].split("-")[0]
        assert events[2].split("-")[0] == events[3].split("-")[0]

    @pytest.mark.asyncio
    async def test_held_key_times_out_for_second_worker(self):
        client = FakeRedis()
        first_worker = RedisKeyedLock(client, timeout=1.0, prefix="rating-lock")
        second_worker = RedisKeyedLock(client, timeout=0.05, prefix="rating-lock")

        async with first_worker.hold("expert-1"):
            with pytest.raises(LockTimeout):
                async with second_worker.hold("expert-1"):
                    pass
            async with second_worker.hold("expert-2"):
                pass

    def test_redis_client_selects_redis_lock(self):
        client, _ = redis_with_lock()

        keyed = build_keyed_lock(client, timeout=1.0, prefix="rating-lock")

        assert isinstance(keyed, RedisKeyedLock)
        assert keyed.prefix == "rating-lock"
