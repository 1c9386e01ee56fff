"""MemoryCache: LRU bound, TTL expiry and key helpers."""

from __future__ import annotations

import pytest

from blocklayout import MemoryCache
from blocklayout.cache import html_key, render_key, script_key


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestMemoryCache:
    @pytest.mark.asyncio
    async def test_get_set_delete(self):
        cache = MemoryCache()
        assert await cache.get("k") is None
        await cache.set("k", "v")
        assert await cache.get("k") == "v"
        await cache.delete("k")
        assert await cache.get("k") is None
        await cache.delete("k")

    @pytest.mark.asyncio
    async def test_counters(self):
        cache = MemoryCache()
        await cache.get("missing")
        await cache.set("k", 1)
        await cache.get("k")
        await cache.get("k")
        assert (cache.hits, cache.misses) == (2, 1)

    @pytest.mark.asyncio
    async def test_ttl_expires_lazily(self):
        clock = FakeClock()
        cache = MemoryCache(clock=clock)
        await cache.set("k", "v", ttl=5)
        clock.now += 4
        assert await cache.get("k") == "v"
        clock.now += 1
        assert await cache.get("k") is None
        assert "k" not in cache

    @pytest.mark.asyncio
    async def test_default_ttl(self):
        clock = FakeClock()
        cache = MemoryCache(default_ttl=1, clock=clock)
        await cache.set("a", 1)
        await cache.set("b", 2, ttl=10)
        clock.now += 2
        assert await cache.get("a") is None
        assert await cache.get("b") == 2

    @pytest.mark.asyncio
    async def test_lru_eviction(self):
        cache = MemoryCache(maxsize=2)
        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.get("a")
        await cache.set("c", 3)
        assert "a" in cache
        assert "b" not in cache
        assert len(cache) == 2

    @pytest.mark.asyncio
    async def test_unbounded(self):
        cache = MemoryCache(maxsize=None)
        for i in range(2000):
            await cache.set(str(i), i)
        assert len(cache) == 2000
        cache.clear()
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_overwrite_refreshes_expiry(self):
        clock = FakeClock()
        cache = MemoryCache(clock=clock)
        await cache.set("k", "old", ttl=1)
        clock.now += 0.5
        await cache.set("k", "new", ttl=1)
        clock.now += 0.8
        assert await cache.get("k") == "new"


class TestKeys:
    def test_default_prefix(self):
        assert render_key("nav.html") == "layout:block.render:nav.html"
        assert html_key("blocks/nav.html") == "layout:blocks/nav.html.html"
        assert script_key("blocks/nav.html") == "layout:blocks/nav.html.py"

    def test_custom_prefix(self):
        assert render_key("x", "app:") == "app:block.render:x"
