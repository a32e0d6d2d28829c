"""
Per-key exclusive locks

Serialize read-then-write sequences scoped to a single key (an expert id).
The in-process variant guards a single worker; the Redis variant guards
every worker sharing the same Redis instance.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from redis import asyncio as aioredis
from redis.exceptions import LockError

from app.exceptions import LockTimeout

logger = logging.getLogger(__name__)


class InProcessKeyedLock:
    """asyncio.Lock per key, dropped once no caller holds or waits on it"""

    def __init__(self, timeout: float):
        self.timeout = timeout
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
            except asyncio.TimeoutError as e:
                raise LockTimeout(f"Timed out waiting for lock '{key}'") from e
            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def is_tracked(self, key: str) -> bool:
        return key in self._locks


class RedisKeyedLock:
    """Redis lock per key, shared across processes"""

    def __init__(self, client: aioredis.Redis, timeout: float, lease_seconds: float = 30.0, prefix: str = "lock"):
        self.client = client
        self.timeout = timeout
        self.lease_seconds = lease_seconds
        self.prefix = prefix

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self.client.lock(
            f"{self.prefix}:{key}",
            timeout=self.lease_seconds,
            blocking_timeout=self.timeout,
        )
        if not await lock.acquire():
            raise LockTimeout(f"Timed out waiting for lock '{self.prefix}:{key}'")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError as e:
                # Lease expired before release; the write already committed
                logger.warning(f"Lock '{self.prefix}:{key}' expired before release: {e}")


def build_keyed_lock(redis: Optional[aioredis.Redis], timeout: float, prefix: str):
    """Redis-backed lock when a client is available, process-local otherwise"""
    if redis is not None:
        return RedisKeyedLock(redis, timeout=timeout, prefix=prefix)
    return InProcessKeyedLock(timeout=timeout)
