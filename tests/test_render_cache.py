"""Per-block render cache."""

from __future__ import annotations

import pytest

from blocklayout import Block, CacheKeyError, Container, MemoryCache

TEMPLATES = {
    "main.tpl": "<template>unused</template>",
    "nav.tpl": "<template>nav for {{ user }}</template>",
}

NAV_BODY = "nav for {{ user }}"


class CountingBeforeRender(Block):
    render_cache = True
    calls = 0

    async def before_render(self):
        type(self).calls += 1


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def tree(nav: dict) -> dict:
    return {"script": Container, "blocks": [{"name": "nav", "template": "nav.tpl", **nav}]}


# ─────────────────────────────────────────────────────────────────────────────
# Opt-in and round trip
# ─────────────────────────────────────────────────────────────────────────────


class TestRoundTrip:
    @pytest.mark.asyncio
    async def test_second_render_served_from_cache(self, make_layout, engine, cache):
        for user in ("ann", "bob"):
            layout = make_layout(TEMPLATES, render_page=False, cache=cache)
            await layout.load_template("main.tpl", tree({"cache": True, "data": {"user": user}}))
            assert await layout.render() == "nav for ann"
        assert engine.calls.count(NAV_BODY) == 1
        assert "layout:block.render:nav.tpl" in cache

    @pytest.mark.asyncio
    async def test_not_cached_without_opt_in(self, make_layout, engine, cache):
        for _ in range(2):
            layout = make_layout(TEMPLATES, render_page=False, cache=cache)
            await layout.load_template("main.tpl", tree({"data": {"user": "ann"}}))
            await layout.render()
        assert engine.calls.count(NAV_BODY) == 2
        assert "layout:block.render:nav.tpl" not in cache

    @pytest.mark.asyncio
    async def test_opt_in_without_store_is_inert(self, make_layout, engine):
        layout = make_layout(TEMPLATES, render_page=False)
        await layout.load_template("main.tpl", tree({"cache": True, "data": {"user": "ann"}}))
        nav = layout.get_block("nav")
        assert not nav.caching_enabled
        assert not await nav.is_cached()
        assert await layout.render() == "nav for ann"

    @pytest.mark.asyncio
    async def test_is_cached_on_next_load(self, make_layout, cache):
        layout = make_layout(TEMPLATES, render_page=False, cache=cache)
        await layout.load_template("main.tpl", tree({"cache": True, "data": {"user": "ann"}}))
        assert not await layout.get_block("nav").is_cached()
        await layout.render()

        layout = make_layout(TEMPLATES, render_page=False, cache=cache)
        await layout.load_template("main.tpl", tree({"cache": True}))
        assert await layout.get_block("nav").is_cached()

    @pytest.mark.asyncio
    async def test_class_level_opt_in_skips_before_render(self, make_layout, cache):
        CountingBeforeRender.calls = 0
        for _ in range(3):
            layout = make_layout(TEMPLATES, render_page=False, cache=cache)
            await layout.load_template(
                "main.tpl", tree({"script": CountingBeforeRender, "data": {"user": "ann"}})
            )
            assert await layout.render() == "nav for ann"
        assert CountingBeforeRender.calls == 1


# ─────────────────────────────────────────────────────────────────────────────
# Keys
# ─────────────────────────────────────────────────────────────────────────────


class TestKeys:
    @pytest.mark.asyncio
    async def test_explicit_key(self, make_layout, cache):
        layout = make_layout(TEMPLATES, render_page=False, cache=cache)
        await layout.load_template("main.tpl", tree({"cache": {"key": "shared-nav"}, "data": {"user": "ann"}}))
        await layout.render()
        assert await cache.get("layout:block.render:shared-nav") == "nav for ann"

    @pytest.mark.asyncio
    async def test_custom_prefix(self, make_layout, cache):
        layout = make_layout(TEMPLATES, render_page=False, cache=cache, cache_prefix="site1:")
        await layout.load_template("main.tpl", tree({"cache": True, "data": {"user": "ann"}}))
        await layout.render()
        assert "site1:block.render:nav.tpl" in cache
        assert "site1:nav.tpl.html" in cache

    @pytest.mark.asyncio
    async def test_key_from_html_digest(self, make_layout, cache):
        layout = make_layout(TEMPLATES, render_page=False, cache=cache)
        await layout.load_template("main.tpl", tree({}))
        nav = layout.get_block("nav")
        nav.template = None
        assert nav.cache_key.startswith("layout:block.render:nav:")

    @pytest.mark.asyncio
    async def test_missing_key_is_fatal(self, make_layout, cache):
        layout = make_layout(TEMPLATES, render_page=False, cache=cache)
        await layout.load_template(
            "main.tpl",
            {"script": Container, "blocks": [{"name": "bare", "script": Block, "cache": True}]},
        )
        with pytest.raises(CacheKeyError) as exc_info:
            await layout.render()
        assert exc_info.value.block == "bare"

    @pytest.mark.asyncio
    async def test_key_setter_resets_lookup(self, make_layout, cache):
        await cache.set("layout:block.render:other", "from other")
        layout = make_layout(TEMPLATES, render_page=False, cache=cache)
        await layout.load_template("main.tpl", tree({"cache": True}))
        nav = layout.get_block("nav")
        assert not await nav.is_cached()
        nav.cache_key = "other"
        assert await nav.get_cached() == "from other"


# ─────────────────────────────────────────────────────────────────────────────
# Expiry and invalidation
# ─────────────────────────────────────────────────────────────────────────────


class TestExpiry:
    @pytest.mark.asyncio
    async def test_ttl(self, make_layout, engine):
        clock = FakeClock()
        cache = MemoryCache(clock=clock)

        async def render(user: str) -> str:
            layout = make_layout(TEMPLATES, render_page=False, cache=cache)
            await layout.load_template("main.tpl", tree({"cache": {"ttl": 10}, "data": {"user": user}}))
            return await layout.render()

        assert await render("ann") == "nav for ann"
        clock.now = 5
        assert await render("bob") == "nav for ann"
        clock.now = 11
        assert await render("bob") == "nav for bob"
        assert engine.calls.count(NAV_BODY) == 2

    @pytest.mark.asyncio
    async def test_invalidate(self, make_layout, engine, cache):
        layout = make_layout(TEMPLATES, render_page=False, cache=cache)
        await layout.load_template("main.tpl", tree({"cache": True, "data": {"user": "ann"}}))
        await layout.render()
        await layout.get_block("nav").invalidate_cache()
        assert "layout:block.render:nav.tpl" not in cache

        layout = make_layout(TEMPLATES, render_page=False, cache=cache)
        await layout.load_template("main.tpl", tree({"cache": True, "data": {"user": "bob"}}))
        assert await layout.render() == "nav for bob"
        assert engine.calls.count(NAV_BODY) == 2

    @pytest.mark.asyncio
    async def test_failed_render_not_cached(self, make_layout, errors, cache):
        templates = dict(TEMPLATES, **{"nav.tpl": "<template>{{ nothing.attr.deeper }}</template>"})
        layout = make_layout(templates, render_page=False, cache=cache)
        await layout.load_template("main.tpl", tree({"cache": True}))
        assert await layout.render() == ""
        assert "layout:block.render:nav.tpl" not in cache
        assert len(errors) == 1
