"""TemplateLoader — resolve a template path to html and a behavior class.

Template files are single-file components:

    ```html
    <template>
      <nav>{% for item in items %}<a href="{{ item.url }}">{{ item.title }}</a>{% endfor %}</nav>
    </template>

    <script>
    class NavBlock(Block):
        async def init(self):
            self.data["items"] = await menu.load()
    </script>
    ```

The first ``<template>`` region is the html body; a ``<script>`` region after
it is Python behavior source. A file without a ``<template>`` tag is html
only.

Artifact Cache:
With a cache store, html and script source are cached under two independent
keys (``<prefix><path>.html`` and ``<prefix><path>.py``). Each key is honored
on its own: a stale html entry is re-read from source while a cached script
is reused. A template without a script caches an empty script entry, so
html-only templates are full cache hits too.
"""

from __future__ import annotations

import asyncio
import logging
import re
import textwrap
from dataclasses import dataclass

from blocklayout.blocks import Block
from blocklayout.cache import DEFAULT_PREFIX, Cache, html_key, script_key
from blocklayout.compiler import ScriptCompiler
from blocklayout.exceptions import ScriptCompileError
from blocklayout.loaders import SourceLoader

logger = logging.getLogger(__name__)

_TEMPLATE_RE = re.compile(r"<template>([\s\S]*?)</template>")
_SCRIPT_RE = re.compile(r"<script(?:\s[^>]*)?>([\s\S]*?)</script>")


@dataclass(frozen=True, slots=True)
class ParsedTemplate:
    """Sections of a template file.

    Attributes:
        html: Body handed to the template engine.
        script: Behavior source, dedented and prefixed with blank lines so
            its line numbers match the template file. None when absent.
    """

    html: str
    script: str | None = None


@dataclass(frozen=True, slots=True)
class TemplateArtifact:
    """Resolved template: html plus the behavior class its script defines.

    A None `behavior` means "use the default block class".
    """

    html: str | None
    script: str | None = None
    behavior: type[Block] | None = None


def parse_template(source: str) -> ParsedTemplate:
    """Split template source into its html and script sections."""
    match = _TEMPLATE_RE.search(source)
    if match is None:
        return ParsedTemplate(html=source)

    script = None
    script_match = _SCRIPT_RE.search(source, match.end())
    if script_match is not None and script_match.group(1).strip():
        offset = source.count("\n", 0, script_match.start(1))
        script = "\n" * offset + textwrap.dedent(script_match.group(1))
    return ParsedTemplate(html=match.group(1), script=script)


class TemplateLoader:
    """Load, parse and cache template artifacts for a Layout.

    Args:
        source_loader: Resolves template paths to source text.
        compiler: Turns embedded scripts into Block subclasses.
        cache: Optional artifact cache store.
        prefix: Cache key namespace.
    """

    __slots__ = ("_cache", "_compiler", "_prefix", "_source_loader")

    def __init__(
        self,
        source_loader: SourceLoader,
        compiler: ScriptCompiler,
        *,
        cache: Cache | None = None,
        prefix: str = DEFAULT_PREFIX,
    ):
        self._source_loader = source_loader
        self._compiler = compiler
        self._cache = cache
        self._prefix = prefix

    async def get_source(self, path: str) -> tuple[str, str | None]:
        """Read template source without blocking the event loop.

        Raises:
            TemplateNotFoundError: If the loader cannot find `path`.
        """
        return await asyncio.to_thread(self._source_loader.get_source, path)

    async def load(self, path: str) -> TemplateArtifact:
        """Resolve `path` to its html and behavior class.

        Raises:
            TemplateNotFoundError: On a cache miss for a missing file.
        """
        html: str | None = None
        script: str | None = None
        if self._cache is not None:
            html, script = await asyncio.gather(
                self._cache.get(html_key(path, self._prefix)),
                self._cache.get(script_key(path, self._prefix)),
            )

        filename = None
        if html is None or script is None:
            source, filename = await self.get_source(path)
            parsed = parse_template(source)
            writes = []
            if html is None:
                html = parsed.html
                if self._cache is not None:
                    writes.append(self._cache.set(html_key(path, self._prefix), html))
            if script is None:
                script = parsed.script or ""
                if self._cache is not None:
                    writes.append(self._cache.set(script_key(path, self._prefix), script))
            await asyncio.gather(*writes)
            logger.debug("loaded template %s from source", path)

        behavior = self._compile(path, script, filename) if script else None
        return TemplateArtifact(html=html, script=script or None, behavior=behavior)

    def _compile(self, path: str, script: str, filename: str | None) -> type[Block] | None:
        try:
            return self._compiler.compile(script, path, filename)
        except ScriptCompileError:
            logger.exception("layout script error in %s, using the default block class", path)
            return None
