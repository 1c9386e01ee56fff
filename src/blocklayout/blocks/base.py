"""Block — one node of the layout tree.

A block owns a template body (`html`), a data mapping handed to the
template engine, and a list of pending child specs. The Layout drives its
lifecycle; behavior classes override the hooks they need:

    ```
    constructed ─► init() ─► children built ─► after_init_children()
        ─► registered ─► after_load() ─► before_render() ─► render()
    ```

Every hook is a coroutine, awaited individually by the Layout. A hook that
raises is reported to the layout's error sink with the block's context;
only an `init()` failure drops the block from the tree.

Render Cache:
A block opts in with ``config["cache"]`` (``True`` or
``{"key": ..., "ttl": ...}``) or the class attribute ``render_cache = True``.
It is active only when the layout has a cache store. The key is, in order,
the explicit key, the template path, or a digest of the block's html; a
block with none of them raises `CacheKeyError`.

Example:
    ```python
    class NavBlock(Block):
        async def init(self):
            self.data["items"] = await load_menu()

        @action("highlight")
        def highlight(self, slug):
            self.data["active"] = slug
    ```

"""

from __future__ import annotations

import types
from collections.abc import Callable, Iterable, Mapping
from hashlib import sha1
from typing import TYPE_CHECKING, Any, ClassVar

from blocklayout.cache import Cache, render_key
from blocklayout.exceptions import CacheKeyError, LayoutConfigError, UnknownActionError

if TYPE_CHECKING:
    from blocklayout.layout import Layout

#: Parent name given to top-level blocks (the template block and the page block).
ROOT_PARENT = "root"

ChildSpec = Mapping[str, Any]


def action(name: str | None = None) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Register a method as a declarative action handler.

    Actions are invoked from configuration after the tree is loaded:

        {"actions": [{"block": "nav", "action": "highlight", "args": ["blog"]}]}

    Only decorated methods are reachable, so configuration cannot call
    arbitrary attributes of a block.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        func._layout_action = name or func.__name__  # type: ignore[attr-defined]
        return func

    return decorator


class Block:
    """Default block: renders its html with its data through the layout engine.

    Attributes:
        layout: Owning Layout
        name: Unique name within the loaded tree
        parent: Parent block name, or `ROOT_PARENT`
        html: Template body (may be None for script-only blocks)
        template: Source template path, if any
        config: Raw block configuration
        data: Template data; ``data["block"]`` is the block itself and
            ``data["blocks"]`` holds rendered children at render time
        page: Page template path declared by this block's config
        cache: Cache store, or None
        cache_ttl: Render cache TTL in seconds, or None

    """

    #: Action name -> method name, built per subclass from ``@action`` methods.
    actions: ClassVar[Mapping[str, str]] = types.MappingProxyType({})

    #: Opt every instance of a class into render caching.
    render_cache: ClassVar[bool] = False

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        registry: dict[str, str] = {}
        for klass in reversed(cls.__mro__):
            for attr, value in vars(klass).items():
                action_name = getattr(value, "_layout_action", None)
                if action_name:
                    registry[action_name] = attr
        cls.actions = types.MappingProxyType(registry)

    def __init__(
        self,
        layout: Layout,
        *,
        name: str,
        html: str | None = None,
        config: Mapping[str, Any] | None = None,
        parent: str | None = None,
        data: Mapping[str, Any] | None = None,
        template: str | None = None,
        cache: Cache | None = None,
    ):
        self.layout = layout
        self.config: dict[str, Any] = dict(config or {})
        self.name = name
        self.parent = self.config.get("parent") or parent
        self.html = html
        self.template = template
        self.page: str | None = self.config.get("page")
        self.cache = cache

        cache_config = self.config.get("cache")
        if isinstance(cache_config, Mapping):
            self._cache_key: str | None = cache_config.get("key")
            self.cache_ttl: float | None = cache_config.get("ttl")
        else:
            self._cache_key = self.config.get("cache_key")
            self.cache_ttl = self.config.get("cache_ttl")
        self._use_render_cache = bool(cache_config) or type(self).render_cache
        self._cached: str | None = None
        self._cache_resolved = False

        self._children: list[dict[str, Any]] = []
        self.data: dict[str, Any] = dict(layout.options.extend_template)
        self.data.update(data or {})
        self.data["block"] = self
        self._extend(layout.options.extend_block)

        for key in ("blocks", "children"):
            if self.config.get(key):
                self.add_blocks(self.config[key])

    def _extend(self, extend: Mapping[str, Any]) -> None:
        """Attach layout-wide helpers; callables become bound methods."""
        for attr, value in extend.items():
            if callable(value) and not isinstance(value, type):
                value = types.MethodType(value, self)
            setattr(self, attr, value)

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle hooks
    # ─────────────────────────────────────────────────────────────────────

    async def init(self) -> None:
        """Called once, right after construction."""

    async def after_init_children(self) -> None:
        """Called once all declared children are built."""

    async def after_load(self) -> None:
        """Called once the whole tree is loaded."""

    async def before_render(self) -> None:
        """Called before rendering, unless the render cache already holds this block."""

    # ─────────────────────────────────────────────────────────────────────
    # Children
    # ─────────────────────────────────────────────────────────────────────

    def add_blocks(self, specs: Iterable[ChildSpec] | Mapping[str, ChildSpec]) -> None:
        """Queue child specs; a mapping is read as ``{name: spec}``."""
        if isinstance(specs, Mapping):
            for name, spec in specs.items():
                self.add_block({"name": name, **spec})
        else:
            for spec in specs:
                self.add_block(spec)

    def add_block(self, spec: ChildSpec) -> None:
        """Queue one child spec. The Layout builds it after `init()`."""
        self._children.append(dict(spec))

    def get_children_block(self) -> list[dict[str, Any]]:
        return self._children

    def get_block(self, name: str) -> Block:
        return self.layout.get_block(name)

    def get_parent(self) -> Block | None:
        if self.parent is None or self.parent == ROOT_PARENT:
            return None
        return self.layout.get_block(self.parent)

    def get_action(self, name: str) -> Callable[..., Any]:
        """Return the bound handler registered for action `name`."""
        method = self.actions.get(name)
        if method is None:
            raise UnknownActionError(name, block=self.name, available=list(self.actions))
        return getattr(self, method)

    # ─────────────────────────────────────────────────────────────────────
    # Render cache
    # ─────────────────────────────────────────────────────────────────────

    @property
    def caching_enabled(self) -> bool:
        return self.cache is not None and self._use_render_cache

    @property
    def cache_key(self) -> str:
        """Namespaced render-cache key.

        Raises:
            CacheKeyError: No explicit key, no template and no html.
        """
        key = self._cache_key or self.template
        if not key and self.html:
            key = f"{self.name}:{sha1(self.html.encode()).hexdigest()[:16]}"
        if not key:
            raise CacheKeyError(self.name)
        return render_key(key, self.layout.options.cache_prefix)

    @cache_key.setter
    def cache_key(self, key: str | None) -> None:
        self._cache_key = key
        self._cache_resolved = False

    async def get_cached(self) -> str | None:
        """Cached render output, looked up once per block instance."""
        if not self.caching_enabled:
            return None
        if not self._cache_resolved:
            self._cached = await self.cache.get(self.cache_key)  # type: ignore[union-attr]
            self._cache_resolved = True
        return self._cached

    async def is_cached(self) -> bool:
        return await self.get_cached() is not None

    async def invalidate_cache(self) -> None:
        if self.caching_enabled:
            await self.cache.delete(self.cache_key)  # type: ignore[union-attr]
        self._cached = None
        self._cache_resolved = False

    # ─────────────────────────────────────────────────────────────────────
    # Rendering
    # ─────────────────────────────────────────────────────────────────────

    async def render_html(self) -> str:
        """Render children, then this block's html with its data."""
        self.data["blocks"] = await self.layout.render_blocks(self.name)
        if not self.html:
            return ""
        return await self.layout.engine.render(self.html, self.data)

    async def render(self) -> str:
        """Rendered output, served from the render cache when possible.

        Engine failures are reported and degrade to an empty string; they are
        never cached.
        """
        if self.caching_enabled:
            cached = await self.get_cached()
            if cached is not None:
                return cached

        try:
            html = await self.render_html()
        except LayoutConfigError:
            raise
        except Exception as exc:
            self.layout.report(exc, block=self.name, template=self.template)
            return ""

        if self.caching_enabled:
            await self.cache.set(self.cache_key, html, ttl=self.cache_ttl)  # type: ignore[union-attr]
            self._cached = html
            self._cache_resolved = True
        return html

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} parent={self.parent!r} template={self.template!r}>"
