"""Layout configuration.

`LayoutOptions` is immutable; derive variants with `replace()`:

    >>> base = LayoutOptions(views="views/", cache=MemoryCache())
    >>> preview = base.replace(render_page=False)

`from_mapping()` accepts plain dicts (settings files, framework config),
including camelCase keys such as ``cacheDir`` or ``extendFilters``.
"""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from blocklayout.cache import DEFAULT_PREFIX, Cache
from blocklayout.exceptions import LayoutConfigError

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")


@dataclass(frozen=True, slots=True)
class LayoutOptions:
    """Options of a Layout.

    Attributes:
        views: Directory (or directories) holding template files.
        cache: Store used for the artifact and render caches. None disables
            both.
        cache_dir: Directory for materialized template scripts. None keeps
            compiled scripts in memory.
        cache_prefix: Namespace prepended to every cache key.
        render_page: Render the page block declared by ``config["page"]``
            instead of the template block itself.
        autoescape: Enable autoescaping in the template engine.
        extend_filters: Template filters registered at startup.
        extend_functions: Template functions registered at startup.
        extend_block: Attributes attached to every block; callables are
            bound as methods.
        extend_template: Default template data for every block.
    """

    views: str | Path | list[str | Path] | None = None
    cache: Cache | None = None
    cache_dir: str | Path | None = None
    cache_prefix: str = DEFAULT_PREFIX
    render_page: bool = True
    autoescape: bool = False
    extend_filters: Mapping[str, Callable[..., Any]] = field(default_factory=dict)
    extend_functions: Mapping[str, Callable[..., Any]] = field(default_factory=dict)
    extend_block: Mapping[str, Any] = field(default_factory=dict)
    extend_template: Mapping[str, Any] = field(default_factory=dict)

    @property
    def view_paths(self) -> list[Path]:
        if self.views is None:
            return [Path(".")]
        if isinstance(self.views, (str, Path)):
            return [Path(self.views)]
        return [Path(p) for p in self.views]

    def replace(self, **changes: Any) -> LayoutOptions:
        try:
            return dataclasses.replace(self, **changes)
        except TypeError as exc:
            raise LayoutConfigError(f"Invalid layout option: {exc}") from exc

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> LayoutOptions:
        """Build options from a dict; camelCase keys are accepted.

        Raises:
            LayoutConfigError: On an unknown option name.
        """
        known = {f.name for f in dataclasses.fields(cls)}
        values: dict[str, Any] = {}
        for key, value in mapping.items():
            name = _CAMEL.sub("_", key).lower()
            if name not in known:
                raise LayoutConfigError(f"Unknown layout option '{key}'")
            values[name] = value
        # False meant "no cache" in older option objects.
        if values.get("cache") is False:
            values["cache"] = None
        return cls(**values)
