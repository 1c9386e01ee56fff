"""Declarative actions from block configuration."""

from __future__ import annotations

import pytest

from blocklayout import Block, BlockNotFoundError, LayoutConfigError, UnknownActionError, action

TEMPLATES = {
    "home.tpl": "<template>{{ blocks.nav }}</template>",
    "nav.tpl": "<template>active={{ active }}</template>",
}


class NavBlock(Block):
    @action("highlight")
    def highlight(self, slug):
        self.data["active"] = slug

    @action()
    async def reset(self, *, to="none"):
        self.data["active"] = to

    @action("explode")
    def explode(self):
        raise RuntimeError("handler failed")

    def not_an_action(self):
        raise AssertionError("must not be reachable")


class SubNav(NavBlock):
    @action("highlight")
    def highlight_twice(self, slug):
        self.data["active"] = slug * 2


def nav(actions: list[dict], script: type[Block] = NavBlock) -> dict:
    return {"blocks": [{"name": "nav", "template": "nav.tpl", "script": script}], "actions": actions}


# ─────────────────────────────────────────────────────────────────────────────
# Registry
# ─────────────────────────────────────────────────────────────────────────────


class TestRegistry:
    def test_decorated_methods_only(self):
        assert dict(NavBlock.actions) == {
            "highlight": "highlight",
            "reset": "reset",
            "explode": "explode",
        }

    def test_base_block_has_none(self):
        assert dict(Block.actions) == {}

    def test_subclass_inherits_and_overrides(self):
        assert SubNav.actions["highlight"] == "highlight_twice"
        assert SubNav.actions["reset"] == "reset"

    def test_registry_is_read_only(self):
        with pytest.raises(TypeError):
            NavBlock.actions["x"] = "y"  # type: ignore[index]


# ─────────────────────────────────────────────────────────────────────────────
# Dispatch
# ─────────────────────────────────────────────────────────────────────────────


class TestDispatch:
    @pytest.mark.asyncio
    async def test_args(self, make_layout):
        layout = make_layout(TEMPLATES, render_page=False)
        await layout.load_template("home.tpl", nav([{"block": "nav", "action": "highlight", "args": ["blog"]}]))
        assert await layout.render() == "active=blog"

    @pytest.mark.asyncio
    async def test_async_handler_with_kwargs(self, make_layout):
        layout = make_layout(TEMPLATES, render_page=False)
        await layout.load_template("home.tpl", nav([{"block": "nav", "action": "reset", "kwargs": {"to": "home"}}]))
        assert layout.get_block("nav").data["active"] == "home"

    @pytest.mark.asyncio
    async def test_entries_run_in_order(self, make_layout):
        layout = make_layout(TEMPLATES, render_page=False)
        await layout.load_template(
            "home.tpl",
            nav(
                [
                    {"block": "nav", "action": "highlight", "args": ["a"]},
                    {"block": "nav", "action": "highlight", "args": ["b"]},
                ]
            ),
        )
        assert layout.get_block("nav").data["active"] == "b"

    @pytest.mark.asyncio
    async def test_target_defaults_to_declaring_block(self, make_layout):
        layout = make_layout(TEMPLATES, render_page=False)
        await layout.load_template(
            "home.tpl",
            {
                "blocks": [
                    {
                        "name": "nav",
                        "template": "nav.tpl",
                        "script": NavBlock,
                        "actions": [{"action": "highlight", "args": ["self"]}],
                    }
                ]
            },
        )
        assert layout.get_block("nav").data["active"] == "self"

    @pytest.mark.asyncio
    async def test_override_in_subclass(self, make_layout):
        layout = make_layout(TEMPLATES, render_page=False)
        await layout.load_template(
            "home.tpl", nav([{"block": "nav", "action": "highlight", "args": ["x"]}], script=SubNav)
        )
        assert layout.get_block("nav").data["active"] == "xx"


# ─────────────────────────────────────────────────────────────────────────────
# Failures
# ─────────────────────────────────────────────────────────────────────────────


class TestFailures:
    @pytest.mark.asyncio
    async def test_unknown_action_is_fatal(self, make_layout):
        layout = make_layout(TEMPLATES, render_page=False)
        with pytest.raises(UnknownActionError) as exc_info:
            await layout.load_template("home.tpl", nav([{"block": "nav", "action": "not_an_action"}]))
        assert exc_info.value.action == "not_an_action"
        assert "highlight" in exc_info.value.suggestion

    @pytest.mark.asyncio
    async def test_unknown_target_block(self, make_layout):
        layout = make_layout(TEMPLATES, render_page=False)
        with pytest.raises(BlockNotFoundError):
            await layout.load_template("home.tpl", nav([{"block": "footer", "action": "highlight"}]))

    @pytest.mark.asyncio
    async def test_entry_without_action_name(self, make_layout):
        layout = make_layout(TEMPLATES, render_page=False)
        with pytest.raises(LayoutConfigError):
            await layout.load_template("home.tpl", nav([{"block": "nav"}]))

    @pytest.mark.asyncio
    async def test_handler_exception_is_isolated(self, make_layout, errors):
        layout = make_layout(TEMPLATES, render_page=False)
        await layout.load_template(
            "home.tpl",
            nav(
                [
                    {"block": "nav", "action": "explode"},
                    {"block": "nav", "action": "highlight", "args": ["after"]},
                ]
            ),
        )
        assert [e.block for e in errors] == ["nav"]
        assert layout.get_block("nav").data["active"] == "after"
