"""Cache store protocol and the in-process default store.

The layout uses one store for two things:

- **Artifact cache**: parsed template html and embedded script source,
  keyed ``<prefix><path>.html`` / ``<prefix><path>.py``.
- **Render cache**: a block's rendered output, keyed
  ``<prefix>block.render:<key>``.

Any object with async ``get`` / ``set`` / ``delete`` works (a Redis or
memcached adapter, for instance). ``get`` returns ``None`` on a miss, so
``None`` itself cannot be cached.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Any, Protocol

DEFAULT_PREFIX = "layout:"


class Cache(Protocol):
    """Key/value store with optional TTL."""

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, *, ttl: float | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryCache:
    """LRU-bounded in-memory cache with per-entry TTL.

    Entries expire lazily on read. When ``maxsize`` is reached the least
    recently used entry is evicted.

    Example:
            >>> cache = MemoryCache(maxsize=512, default_ttl=300)
            >>> await cache.set("layout:block.render:nav.html", "<nav/>")
            >>> await cache.get("layout:block.render:nav.html")
            '<nav/>'

    Attributes:
        hits / misses: Lookup counters, handy in tests and debug pages.
    """

    __slots__ = ("_clock", "_data", "default_ttl", "hits", "maxsize", "misses")

    def __init__(
        self,
        maxsize: int | None = 1024,
        default_ttl: float | None = None,
        clock: Any = time.monotonic,
    ):
        self._data: OrderedDict[str, tuple[Any, float | None]] = OrderedDict()
        self._clock = clock
        self.maxsize = maxsize
        self.default_ttl = default_ttl
        self.hits = 0
        self.misses = 0

    async def get(self, key: str) -> Any | None:
        entry = self._data.get(key)
        if entry is None:
            self.misses += 1
            return None
        value, expires = entry
        if expires is not None and expires <= self._clock():
            del self._data[key]
            self.misses += 1
            return None
        self._data.move_to_end(key)
        self.hits += 1
        return value

    async def set(self, key: str, value: Any, *, ttl: float | None = None) -> None:
        ttl = ttl if ttl is not None else self.default_ttl
        expires = self._clock() + ttl if ttl is not None else None
        self._data[key] = (value, expires)
        self._data.move_to_end(key)
        if self.maxsize is not None:
            while len(self._data) > self.maxsize:
                self._data.popitem(last=False)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data


def render_key(key: str, prefix: str = DEFAULT_PREFIX) -> str:
    """Cache key for a block's rendered output."""
    return f"{prefix}block.render:{key}"


def html_key(path: str, prefix: str = DEFAULT_PREFIX) -> str:
    """Cache key for the html fragment of a template."""
    return f"{prefix}{path}.html"


def script_key(path: str, prefix: str = DEFAULT_PREFIX) -> str:
    """Cache key for the embedded script source of a template."""
    return f"{prefix}{path}.py"
