"""
Distance cache backends.

Routing calls are billed per request, so measured distances are cached for
a TTL (24 h by default) under a key built from coordinates rounded to three
decimals (~111 m at the equator).  Entries are immutable once written;
slightly stale reads around expiry are acceptable.

* ``InMemoryDistanceCache`` -- dict + ``asyncio.Lock``, per process.
* ``RedisDistanceCache``    -- shared across processes, TTL via ``SET EX``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

import redis.asyncio as aioredis

from navigator.domain.distance import Coordinates, DistanceResult
from navigator.domain.enums import DistanceMethod

logger = logging.getLogger(__name__)


def cache_key(origin: Coordinates, destination: Coordinates) -> str:
    return (
        f"distance:{origin.lat:.3f}:{origin.lng:.3f}:"
        f"{destination.lat:.3f}:{destination.lng:.3f}"
    )


class DistanceCache(ABC):
    @abstractmethod
    async def get(self, key: str) -> Optional[DistanceResult]: ...

    @abstractmethod
    async def set(self, key: str, result: DistanceResult, ttl_seconds: int) -> None: ...

    @abstractmethod
    async def expire(self, key: str) -> None: ...


class InMemoryDistanceCache(DistanceCache):
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[DistanceResult, float]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[DistanceResult]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            result, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return result

    async def set(self, key: str, result: DistanceResult, ttl_seconds: int) -> None:
        async with self._lock:
            self._entries[key] = (result, self._clock() + ttl_seconds)

    async def expire(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    async def clear_expired(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        async with self._lock:
            stale = [k for k, (_, exp) in self._entries.items() if now >= exp]
            for k in stale:
                del self._entries[k]
        if stale:
            logger.info("Cleared %d expired distance cache entries", len(stale))
        return len(stale)

    def stats(self) -> dict:
        return {"size": len(self._entries)}


class RedisDistanceCache(DistanceCache):
    def __init__(self, client: aioredis.Redis):
        self.redis = client

    async def get(self, key: str) -> Optional[DistanceResult]:
        raw = await self.redis.get(key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            return DistanceResult(
                distance_km=float(data["distance_km"]),
                duration_seconds=int(data["duration_seconds"]),
                method=DistanceMethod(data["method"]),
            )
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding malformed distance cache entry %s", key)
            await self.redis.delete(key)
            return None

    async def set(self, key: str, result: DistanceResult, ttl_seconds: int) -> None:
        payload = json.dumps(
            {
                "distance_km": result.distance_km,
                "duration_seconds": result.duration_seconds,
                "method": result.method.value,
            }
        )
        await self.redis.set(key, payload, ex=ttl_seconds)

    async def expire(self, key: str) -> None:
        await self.redis.delete(key)
