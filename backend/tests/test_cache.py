"""
Tests for the catalog response cache
"""
from unittest.mock import AsyncMock

from app.services.cache import CACHE_DURATIONS, MemoryCache, cached
from conftest import FakeClock


class TestMemoryCache:
    """Tests for the in-process TTL cache"""

    async def test_entry_expires(self):
        clock = FakeClock(0)
        cache = MemoryCache(clock=clock)
        await cache.set("trending_movie_week", {"page": 1}, ttl=CACHE_DURATIONS["trending"])

        clock.advance(CACHE_DURATIONS["trending"] - 1)
        assert await cache.get("trending_movie_week") == {"page": 1}

        clock.advance(1)
        assert await cache.get("trending_movie_week") is None

    async def test_purge_expired(self):
        clock = FakeClock(0)
        cache = MemoryCache(clock=clock)
        await cache.set("a", 1, ttl=10)
        await cache.set("b", 2, ttl=100)

        clock.advance(50)

        assert await cache.purge_expired() == 1
        assert len(cache) == 1

    async def test_delete(self):
        cache = MemoryCache()
        await cache.set("a", 1, ttl=10)
        await cache.delete("a")
        assert await cache.get("a") is None


class TestCachedHelper:
    """Tests for the read-through helper"""

    async def test_fetches_once(self):
        cache = MemoryCache()
        fetcher = AsyncMock(return_value={"results": []})

        first = await cached(cache, "k", fetcher, 60)
        second = await cached(cache, "k", fetcher, 60)

        assert first == second == {"results": []}
        fetcher.assert_awaited_once()

    async def test_cache_failure_still_fetches(self):
        cache = MemoryCache()
        cache.get = AsyncMock(side_effect=ConnectionError("redis down"))
        cache.set = AsyncMock(side_effect=ConnectionError("redis down"))
        fetcher = AsyncMock(return_value={"id": 1})

        assert await cached(cache, "k", fetcher, 60) == {"id": 1}
        fetcher.assert_awaited_once()
