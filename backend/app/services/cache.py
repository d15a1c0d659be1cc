"""Injected cache for catalog responses.

Call sites only see ``CacheBackend``; the in-process ``MemoryCache`` and the
shared ``RedisCache`` are interchangeable. A cache failure is never an
application failure: reads degrade to a miss and writes are dropped.
"""
from __future__ import annotations
import json
import logging
import time
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, Awaitable, Callable, TypeVar

from app.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# TTLs in seconds
CACHE_DURATIONS = {
    "movies": 60 * 60,
    "tv_shows": 60 * 60,
    "movie_details": 120 * 60,
    "tv_details": 120 * 60,
    "search_results": 30 * 60,
    "trending": 15 * 60,
    "genres": 24 * 60 * 60,
}


class CacheBackend(ABC):
    @abstractmethod
    async def get(self, key: str) -> Any | None: ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: float) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    async def purge_expired(self) -> int:
        """Drop expired entries; backends with native expiry have nothing to do."""
        return 0

    async def close(self) -> None:
        pass


class MemoryCache(CacheBackend):
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: Any, ttl: float) -> None:
        self._entries[key] = (value, self._clock() + ttl)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


class RedisCache(CacheBackend):
    """JSON values in Redis with native TTLs."""

    def __init__(self, url: str, prefix: str = "cinestream:"):
        import redis.asyncio as redis

        self.prefix = prefix
        self._client = redis.from_url(url, decode_responses=True)

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._client.get(self.prefix + key)
        except Exception as e:
            logger.warning(f"Cache get error for {key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry {key}")
            return None

    async def set(self, key: str, value: Any, ttl: float) -> None:
        try:
            await self._client.setex(self.prefix + key, max(1, int(ttl)), json.dumps(value))
        except Exception as e:
            logger.warning(f"Cache set error for {key}: {e}")

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(self.prefix + key)
        except Exception as e:
            logger.warning(f"Cache delete error for {key}: {e}")

    async def close(self) -> None:
        await self._client.aclose()


async def cached(cache: CacheBackend, key: str, fetcher: Callable[[], Awaitable[T]], ttl: float) -> T:
    """Read-through: serve from cache, else fetch and store."""
    try:
        hit = await cache.get(key)
    except Exception as e:
        logger.warning(f"Cache read failed for {key}, fetching fresh data: {e}")
        hit = None
    if hit is not None:
        return hit

    data = await fetcher()
    try:
        await cache.set(key, data, ttl)
    except Exception as e:
        logger.warning(f"Cache write failed for {key}: {e}")
    return data


@lru_cache
def get_cache() -> CacheBackend:
    settings = get_settings()
    if settings.cache_backend == "redis":
        logger.info(f"Using Redis cache at {settings.redis_url}")
        return RedisCache(settings.redis_url)
    return MemoryCache()
