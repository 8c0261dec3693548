"""
Serialisation points for booking creation.

The active-booking and vehicle-availability checks must run atomically
with the insert of the new booking.  Creation therefore holds one lock
per customer and one per vehicle while it checks, prices and inserts.

* ``DistributedLock`` -- Redis SET NX EX for acquire and a Lua script for
  atomic check-and-delete on release.  Works across API processes.
* ``LocalLockManager`` -- per-key ``asyncio.Lock``; single-process
  deployments and tests.

Both managers expose ``lock(key)`` returning an async context manager.
"""

from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis


class LockNotAcquired(RuntimeError):
    pass


class DistributedLock:
    def __init__(
        self,
        client: aioredis.Redis,
        key: str,
        ttl_seconds: int = 30,
        wait_seconds: float = 0.0,
        poll_interval: float = 0.05,
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.wait_seconds = wait_seconds
        self.poll_interval = poll_interval
        self.token = str(uuid.uuid4())

    async def acquire(self) -> bool:
        """Try to acquire, polling for up to ``wait_seconds``."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.wait_seconds
        while True:
            if await self.redis.set(self.key, self.token, nx=True, ex=self.ttl):
                return True
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(self.poll_interval)

    async def release(self) -> None:
        """Release only if we still own the lock (atomic via Lua)."""
        lua = """
        if redis.call("get", KEYS[1]) == ARGV[1] then
            return redis.call("del", KEYS[1])
        else
            return 0
        end
        """
        await self.redis.eval(lua, 1, self.key, self.token)

    # context-manager support
    async def __aenter__(self):
        acquired = await self.acquire()
        if not acquired:
            raise LockNotAcquired(f"Could not acquire lock: {self.key}")
        return self

    async def __aexit__(self, *args):
        await self.release()


class RedisLockManager:
    def __init__(
        self, client: aioredis.Redis, ttl_seconds: int = 30, wait_seconds: float = 10.0
    ):
        self.redis = client
        self.ttl = ttl_seconds
        self.wait_seconds = wait_seconds

    def lock(self, key: str) -> DistributedLock:
        return DistributedLock(
            self.redis, key, ttl_seconds=self.ttl, wait_seconds=self.wait_seconds
        )


class LocalLockManager:
    """Per-key asyncio locks, dropped once no task holds or waits on them."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]
