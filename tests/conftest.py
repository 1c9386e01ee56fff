"""Pytest configuration and fixtures for blocklayout tests."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pytest

from blocklayout import DictLoader, ErrorCollector, Jinja2Engine, Layout, MemoryCache


class CountingEngine(Jinja2Engine):
    """Jinja2Engine that counts render calls."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.calls: list[str] = []

    async def render(self, body: str, data: Mapping[str, Any]) -> str:
        self.calls.append(body)
        return await super().render(body, data)


@pytest.fixture
def errors() -> ErrorCollector:
    return ErrorCollector()


@pytest.fixture
def engine() -> CountingEngine:
    return CountingEngine()


@pytest.fixture
def cache() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def make_layout(errors: ErrorCollector, engine: CountingEngine) -> Callable[..., Layout]:
    """Build a Layout over an in-memory template mapping."""

    def factory(templates: dict[str, str], **options: Any) -> Layout:
        return Layout(loader=DictLoader(templates), engine=engine, errors=errors, **options)

    return factory


@pytest.fixture
def views(tmp_path: Path) -> Path:
    """A views directory with a home template and a page shell."""
    (tmp_path / "home.tpl").write_text("<template>Hello {{ name }}</template>\n")
    (tmp_path / "page.tpl").write_text("<template>{{ getBlockHtml('home') }}</template>\n")
    return tmp_path


def write_views(root: Path, files: dict[str, str]) -> Path:
    """Write template files under `root`, creating subdirectories."""
    for name, source in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source)
    return root
