"""Key/value caches with per-key TTL.

The token manager and the playlist search share one cache instance. Two
backends exist: an in-process dictionary for single-worker runs and tests,
and Redis when several workers must see the same token.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Callable, Protocol

import orjson
import redis.asyncio as redis

from beer_machine.logging import get_logger

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from beer_machine.config import Settings

logger = get_logger(__name__)


class Cache(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl: float) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def ttl(self, key: str) -> float | None: ...


class MemoryCache:
    """Dictionary-backed cache; expired entries are dropped on access."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def _live_entry(self, key: str) -> tuple[Any, float] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry[1]:
            del self._entries[key]
            return None
        return entry

    async def get(self, key: str) -> Any | None:
        entry = self._live_entry(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: Any, ttl: float) -> None:
        if ttl <= 0:
            self._entries.pop(key, None)
            return
        self._entries[key] = (value, self._clock() + ttl)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def ttl(self, key: str) -> float | None:
        entry = self._live_entry(key)
        if entry is None:
            return None
        return entry[1] - self._clock()

    def __len__(self) -> int:
        return sum(1 for key in list(self._entries) if self._live_entry(key) is not None)


class RedisCache:
    """Redis-backed cache; values are stored as JSON."""

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisCache:
        return cls(redis.Redis.from_url(url, decode_responses=False))

    async def get(self, key: str) -> Any | None:
        raw = await self._client.get(key)
        if raw is None:
            return None
        return orjson.loads(raw)

    async def set(self, key: str, value: Any, ttl: float) -> None:
        seconds = int(ttl)
        if seconds <= 0:
            await self._client.delete(key)
            return
        await self._client.set(key, orjson.dumps(value), ex=seconds)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def ttl(self, key: str) -> float | None:
        remaining = await self._client.ttl(key)
        # -2: no such key, -1: key without expiry
        if remaining is None or remaining == -2:
            return None
        if remaining == -1:
            return float("inf")
        return float(remaining)

    async def close(self) -> None:
        await self._client.aclose()


def build_cache(settings: Settings) -> Cache:
    if settings.redis_url:
        logger.info("Using Redis cache")
        return RedisCache.from_url(settings.redis_url)
    logger.info("Using in-memory cache")
    return MemoryCache()
