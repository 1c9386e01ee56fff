"""Layout — load a block tree from configuration and render it to HTML.

Quickstart:
    >>> layout = Layout(views="views/")
    >>> await layout.load_template("home.html", {
    ...     "page": "page.html",
    ...     "data": {"title": "Welcome"},
    ...     "blocks": [
    ...         {"name": "nav", "template": "blocks/nav.html"},
    ...         {"name": "main", "script": Container, "blocks": [
    ...             {"name": "hero", "template": "blocks/hero.html"},
    ...             {"name": "news", "template": "blocks/news.html"},
    ...         ]},
    ...     ],
    ... })
    >>> html = await layout.render()

Flow:
    ```
    load_template(path, config)
      ├── template block  (name: config["name"] or the file stem)
      │     └── children, recursively (BlockFactory)
      ├── page block      (page mode: config["page"], name "page")
      ├── after_load()    on every block, concurrently
      └── actions         declarative handlers from config["actions"]
    render()
      ├── before_render() on every block not served by the render cache
      └── page block (or template block) render, children first
    ```

Templates reach other blocks through ``data["blocks"]`` (the rendered
children of the current block) and the ``getBlockHtml(name)`` function.

Failure Policy:
Only `load_template()` and `render()` raise, and only for fatal problems
(`LayoutConfigError`, a missing root/page template, unknown block lookups).
Everything below them is reported to the error sink and degrades to partial
output, so one broken block never takes the page down.

"""

from __future__ import annotations

import inspect
import logging
import types
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from markupsafe import Markup

from blocklayout.blocks import ROOT_PARENT, Block
from blocklayout.cache import Cache
from blocklayout.compiler import ModuleScriptCompiler, ScriptCompiler
from blocklayout.config import LayoutOptions
from blocklayout.engine import Jinja2Engine, TemplateEngine
from blocklayout.events import ErrorCollector, ErrorSink
from blocklayout.exceptions import (
    BlockNotFoundError,
    DuplicateBlockError,
    LayoutConfigError,
    MissingPageError,
    TemplateLoadError,
)
from blocklayout.factory import BlockFactory, BlockSpec
from blocklayout.loaders import FileSystemLoader, SourceLoader
from blocklayout.session import LayoutSession
from blocklayout.template_loader import TemplateLoader, parse_template
from blocklayout.utils.aio import gather_strict

logger = logging.getLogger(__name__)

#: Name of the page block in page-rendering mode.
PAGE_BLOCK = "page"


class Layout:
    """Own a block tree: load it, run its lifecycle, render it.

    Args:
        options: Layout options; keyword overrides are applied on top.
        loader: Template source loader. Defaults to a FileSystemLoader over
            ``options.views``.
        engine: Template engine. Defaults to jinja2 in async mode.
        compiler: Behavior script compiler.
        errors: Error sink for isolated failures. Defaults to an
            `ErrorCollector`, available as ``layout.errors``.
        **overrides: Any `LayoutOptions` field.

    Attributes:
        render_page: Render the page block (True) or the template block.
        session: Current `LayoutSession`, replaced by each load.

    Example:
            >>> layout = Layout(views="views/", cache=MemoryCache(), render_page=False)
            >>> layout.extend_filter("money", lambda v: f"{v:,.2f} €")
            >>> await layout.load_template("invoice.html", {"data": {"total": 1234.5}})
            >>> await layout.render()

    """

    def __init__(
        self,
        options: LayoutOptions | None = None,
        *,
        loader: SourceLoader | None = None,
        engine: TemplateEngine | None = None,
        compiler: ScriptCompiler | None = None,
        errors: ErrorSink | None = None,
        **overrides: Any,
    ):
        options = options or LayoutOptions()
        if overrides:
            options = options.replace(**overrides)
        self._options = options
        self.render_page = options.render_page
        self.session = LayoutSession()

        self._errors: ErrorSink = errors if errors is not None else ErrorCollector()
        self._engine: TemplateEngine = engine or Jinja2Engine(
            options.view_paths, autoescape=options.autoescape
        )
        compiler = compiler or ModuleScriptCompiler(options.cache_dir)
        self._templates = TemplateLoader(
            loader or FileSystemLoader(options.view_paths),
            compiler,
            cache=options.cache,
            prefix=options.cache_prefix,
        )
        self._factory = BlockFactory(self, self._templates, compiler)

        self.extend_filters(options.extend_filters)
        self.extend_functions(options.extend_functions)
        self.extend_function("getBlockHtml", self.get_block_html)
        self.extend_function("get_block_html", self.get_block_html)

    # ─────────────────────────────────────────────────────────────────────
    # Accessors
    # ─────────────────────────────────────────────────────────────────────

    @property
    def options(self) -> LayoutOptions:
        return self._options

    @property
    def engine(self) -> TemplateEngine:
        return self._engine

    @property
    def cache(self) -> Cache | None:
        return self._options.cache

    @property
    def errors(self) -> ErrorSink:
        return self._errors

    @property
    def templates(self) -> TemplateLoader:
        return self._templates

    @property
    def blocks(self) -> Mapping[str, Block]:
        """Registered blocks by name (read-only view)."""
        return types.MappingProxyType(self.session.blocks_by_name)

    @property
    def template_block(self) -> Block | None:
        return self.session.template_block

    @property
    def page_block(self) -> Block | None:
        return self.session.page_block

    def report(self, error: BaseException, **context: str | None) -> None:
        """Send an isolated failure to the error sink."""
        self._errors.emit(error, {key: value for key, value in context.items() if value})

    # ─────────────────────────────────────────────────────────────────────
    # Template engine extension points
    # ─────────────────────────────────────────────────────────────────────

    def extend_filter(self, name: str, func: Callable[..., Any]) -> None:
        self._engine.add_filter(name, func)

    def extend_function(self, name: str, func: Callable[..., Any]) -> None:
        self._engine.add_function(name, func)

    def extend_filters(self, filters: Mapping[str, Callable[..., Any]]) -> None:
        for name, func in filters.items():
            self.extend_filter(name, func)

    def extend_functions(self, functions: Mapping[str, Callable[..., Any]]) -> None:
        for name, func in functions.items():
            self.extend_function(name, func)

    # ─────────────────────────────────────────────────────────────────────
    # Loading
    # ─────────────────────────────────────────────────────────────────────

    async def load_template(self, template: str, config: Mapping[str, Any] | None = None) -> None:
        """Build the block tree for `template`, replacing any previous tree.

        Args:
            template: Template path relative to the views.
            config: Template block config: ``name``, ``script``, ``page``,
                ``data``, ``blocks``/``children``, ``actions``, ``cache``.

        Raises:
            MissingPageError: Page mode and the template declares no page.
            TemplateLoadError: The template or the page cannot be loaded.
            LayoutConfigError: Duplicate names, blocks without template and
                script, unknown actions.
            DuplicateBlockError: Page mode and the template block is named
                ``"page"`` (e.g. ``page.html`` without ``config["name"]``); that
                name belongs to the page block.
        """
        config = dict(config or {})
        self.session = session = LayoutSession()

        name = config.get("name") or Path(template).stem
        if self.render_page and name == PAGE_BLOCK:
            raise DuplicateBlockError(
                name,
                template=template,
                suggestion=f'"{PAGE_BLOCK}" names the page block; give the template block a "name" entry',
            )
        spec = BlockSpec(
            name=name,
            template=template,
            script=config.get("script"),
            parent=ROOT_PARENT,
            config=config,
        )
        session.reserve(name, template=template)
        block = await self._factory.load_block(spec)
        if block is None:
            raise TemplateLoadError(f"Cannot load the main template: {template}", template=template)
        session.register(block)
        session.template_block = block

        if self.render_page:
            if not block.page:
                raise MissingPageError(template, block=block.name)
            session.reserve(PAGE_BLOCK, template=block.page)
            page = await self._factory.load_block(
                BlockSpec(name=PAGE_BLOCK, template=block.page, parent=ROOT_PARENT)
            )
            if page is None:
                raise TemplateLoadError(f"Cannot load the page template: {block.page}", template=block.page)
            session.register(page)
            session.page_block = page

        logger.debug("loaded %s: %d blocks", template, len(session))
        await self._after_load()
        await self._process_actions()

    async def _after_load(self) -> None:
        """Run every block's ``after_load()`` once the whole tree exists."""
        await gather_strict(self._run_hook(block, "after_load") for block in self.session)

    async def _run_hook(self, block: Block, hook: str) -> None:
        try:
            await getattr(block, hook)()
        except LayoutConfigError:
            raise
        except Exception as exc:
            self.report(exc, block=block.name, template=block.template)

    async def _process_actions(self) -> None:
        """Invoke the declarative actions of every block, in registration order.

        An entry is ``{"block": name, "action": name, "args": [...], "kwargs": {...}}``;
        ``block`` defaults to the block declaring the entry.

        Raises:
            UnknownActionError: The target class registers no such action.
            BlockNotFoundError: The target block does not exist.
        """
        for owner in self.session:
            for entry in owner.config.get("actions") or ():
                if "action" not in entry:
                    raise LayoutConfigError("Action entry without an action name", block=owner.name)
                target = self.get_block(entry.get("block") or owner.name)
                handler = target.get_action(entry["action"])
                try:
                    result = handler(*entry.get("args", ()), **entry.get("kwargs", {}))
                    if inspect.isawaitable(result):
                        await result
                except LayoutConfigError:
                    raise
                except Exception as exc:
                    self.report(exc, block=target.name, template=target.template)

    # ─────────────────────────────────────────────────────────────────────
    # Lookup
    # ─────────────────────────────────────────────────────────────────────

    def get_block(self, name: str) -> Block:
        """Registered block by name.

        Raises:
            BlockNotFoundError: No block with that name in the current tree.
        """
        try:
            return self.session.blocks_by_name[name]
        except KeyError:
            raise BlockNotFoundError(name, available=list(self.session.blocks_by_name)) from None

    # ─────────────────────────────────────────────────────────────────────
    # Rendering
    # ─────────────────────────────────────────────────────────────────────

    async def render(self) -> str:
        """Render the page block (page mode) or the template block.

        Raises:
            TemplateLoadError: Nothing was loaded.
            CacheKeyError: A caching block has no derivable key.
        """
        root = self.session.page_block if self.render_page else self.session.template_block
        if root is None:
            raise TemplateLoadError("Nothing to render, call load_template() first")

        await gather_strict(self._before_render(block) for block in self.session)
        return await root.render()

    async def _before_render(self, block: Block) -> None:
        if await block.is_cached():
            return
        await self._run_hook(block, "before_render")

    async def render_blocks(self, parent: str) -> dict[str, str]:
        """Render the direct children of `parent` concurrently.

        Returns:
            name -> html in declaration order. A child whose render raised is
            reported and left out.
        """
        children = self.session.children(parent)
        results = await gather_strict(self._render_child(block) for block in children)
        return {block.name: html for block, html in zip(children, results) if html is not None}

    async def _render_child(self, block: Block) -> str | None:
        try:
            return await block.render()
        except LayoutConfigError:
            raise
        except Exception as exc:
            self.report(exc, block=block.name, template=block.template)
            return None

    async def get_block_html(self, name: str) -> Markup:
        """Rendered html of block `name`, for use inside templates.

        Unknown names and render failures are reported and yield ``""``.
        """
        try:
            block = self.get_block(name)
        except BlockNotFoundError as exc:
            self.report(exc, block=name)
            return Markup("")
        return Markup(await self._render_child(block) or "")

    async def render_html(self, html: str, data: Mapping[str, Any] | None = None) -> str:
        """Render a template body outside the tree; failures yield ``""``."""
        try:
            return await self._engine.render(html, data or {})
        except Exception as exc:
            self.report(exc)
            return ""

    async def render_file(self, template: str, data: Mapping[str, Any] | None = None) -> str:
        """Render the html section of a template file outside the tree.

        Raises:
            TemplateNotFoundError: The file does not exist.
        """
        source, _filename = await self._templates.get_source(template)
        html = parse_template(source).html
        if not html:
            return ""
        try:
            return await self._engine.render(html, data or {})
        except Exception as exc:
            self.report(exc, template=template)
            return ""

    def __repr__(self) -> str:
        root = self.session.template_block
        return f"<Layout template={root.template if root else None!r} blocks={len(self.session)}>"
