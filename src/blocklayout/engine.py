"""Template-expression engine port and its jinja2 implementation.

The layout never parses template expressions itself. It hands a template
body and a data mapping to a `TemplateEngine` and gets a string back:

    html = await engine.render(body, data)

`Jinja2Engine` runs jinja2 in async mode, so functions registered with
`add_function()` may be coroutines: `{{ getBlockHtml('nav') }}` awaits the
nested block render transparently.

Compiled templates are memoized per body string. Bodies come from a small,
fixed set of template files, so the memo is bounded with a plain LRU.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Protocol

import jinja2


class TemplateEngine(Protocol):
    """String-in, string-out renderer with extension points."""

    async def render(self, body: str, data: Mapping[str, Any]) -> str: ...

    def add_filter(self, name: str, func: Callable[..., Any]) -> None: ...

    def add_function(self, name: str, func: Callable[..., Any]) -> None: ...


class Jinja2Engine:
    """Render block bodies with jinja2.

    Args:
        views: Optional directories used to resolve ``{% include %}`` and
            ``{% extends %}`` inside block bodies.
        autoescape: Enable jinja2 autoescaping (off by default: block html is
            trusted view code).
        max_compiled: Number of compiled bodies kept in memory.
        environment: Use a preconfigured jinja2 Environment instead. It must
            have been created with ``enable_async=True``.

    Example:
            >>> engine = Jinja2Engine()
            >>> engine.add_filter("shout", lambda s: s.upper() + "!")
            >>> await engine.render("{{ name | shout }}", {"name": "hi"})
            'HI!'
    """

    __slots__ = ("_compiled", "_env", "_max_compiled")

    def __init__(
        self,
        views: str | Path | list[str | Path] | None = None,
        *,
        autoescape: bool = False,
        max_compiled: int = 256,
        environment: jinja2.Environment | None = None,
    ):
        if environment is None:
            loader = None
            if views:
                loader = jinja2.FileSystemLoader(
                    [str(p) for p in views] if isinstance(views, list) else str(views)
                )
            environment = jinja2.Environment(
                loader=loader,
                autoescape=autoescape,
                enable_async=True,
            )
        elif not environment.is_async:
            raise ValueError("Jinja2Engine requires an Environment created with enable_async=True")
        self._env = environment
        self._compiled: OrderedDict[str, jinja2.Template] = OrderedDict()
        self._max_compiled = max_compiled

    @property
    def environment(self) -> jinja2.Environment:
        return self._env

    def _compile(self, body: str) -> jinja2.Template:
        template = self._compiled.get(body)
        if template is None:
            template = self._env.from_string(body)
            self._compiled[body] = template
            while len(self._compiled) > self._max_compiled:
                self._compiled.popitem(last=False)
        else:
            self._compiled.move_to_end(body)
        return template

    async def render(self, body: str, data: Mapping[str, Any]) -> str:
        return await self._compile(body).render_async(dict(data))

    def add_filter(self, name: str, func: Callable[..., Any]) -> None:
        self._env.filters[name] = func

    def add_function(self, name: str, func: Callable[..., Any]) -> None:
        self._env.globals[name] = func
