"""Template source loaders.

Loaders give the layout raw template source. They implement
`get_source(name)` returning `(source, filename)` and raise
`TemplateNotFoundError` when the name cannot be resolved. Loaders are
synchronous; `TemplateLoader` calls them through `asyncio.to_thread` so file
reads never block the event loop.

Built-in Loaders:
- `FileSystemLoader`: Load from one or more view directories
- `DictLoader`: Load from an in-memory mapping (testing/embedded)
- `ChoiceLoader`: Try several loaders in order (theme fallback)
- `FunctionLoader`: Wrap a callable

Custom Loaders:
    ```python
    class DatabaseLoader:
        def get_source(self, name: str) -> tuple[str, str | None]:
            row = db.query("SELECT source FROM views WHERE name = ?", name)
            if not row:
                raise TemplateNotFoundError(f"Template '{name}' not found")
            return row.source, f"db://{name}"
    ```

"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from blocklayout.exceptions import TemplateNotFoundError


class SourceLoader(Protocol):
    """Anything that can resolve a template name to its source."""

    def get_source(self, name: str) -> tuple[str, str | None]: ...


class FileSystemLoader:
    """Load templates from view directories.

    Directories are searched in order and the first existing file wins, so a
    project directory can shadow a shared one:

        >>> loader = FileSystemLoader(["views/site/", "views/shared/"])
        >>> source, filename = loader.get_source("blocks/nav.html")
        >>> filename
        'views/site/blocks/nav.html'

    Raises:
        TemplateNotFoundError: If the template exists in none of the paths

    """

    __slots__ = ("_encoding", "_paths")

    def __init__(
        self,
        paths: str | Path | list[str | Path],
        encoding: str = "utf-8",
    ):
        if isinstance(paths, (str, Path)):
            paths = [paths]
        self._paths = [Path(p) for p in paths]
        self._encoding = encoding

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def get_source(self, name: str) -> tuple[str, str]:
        for base in self._paths:
            path = base / name
            if path.is_file():
                return path.read_text(self._encoding), str(path)

        raise TemplateNotFoundError(
            f"Template '{name}' not found in: {', '.join(str(p) for p in self._paths)}",
            template=name,
        )


class DictLoader:
    """Load templates from an in-memory dictionary.

    Returns `None` as filename since templates are not file-backed.

    Example:
            >>> loader = DictLoader({"home.html": "<template>Hi {{ name }}</template>"})
            >>> loader.get_source("home.html")
            ('<template>Hi {{ name }}</template>', None)

    Raises:
        TemplateNotFoundError: If the name is not in the mapping

    """

    __slots__ = ("_mapping",)

    def __init__(self, mapping: dict[str, str]):
        self._mapping = mapping

    def get_source(self, name: str) -> tuple[str, None]:
        if name not in self._mapping:
            from difflib import get_close_matches

            msg = f"Template '{name}' not found"
            matches = get_close_matches(name, sorted(self._mapping), n=1, cutoff=0.6)
            if matches:
                msg += f". Did you mean '{matches[0]}'?"
            raise TemplateNotFoundError(msg, template=name)
        return self._mapping[name], None


class ChoiceLoader:
    """Try multiple loaders in order, returning the first match.

    Example:
            >>> loader = ChoiceLoader([
            ...     DictLoader({"nav.html": "<nav>Custom</nav>"}),
            ...     FileSystemLoader("views/default/"),
            ... ])

    Raises:
        TemplateNotFoundError: If no loader can find the template
    """

    __slots__ = ("_loaders",)

    def __init__(self, loaders: list[SourceLoader]):
        self._loaders = loaders

    def get_source(self, name: str) -> tuple[str, str | None]:
        for loader in self._loaders:
            try:
                return loader.get_source(name)
            except TemplateNotFoundError:
                continue
        raise TemplateNotFoundError(
            f"Template '{name}' not found in any of {len(self._loaders)} loaders",
            template=name,
        )


class FunctionLoader:
    """Wrap a callable as a template loader.

    The callable returns the source string, a `(source, filename)` tuple, or
    `None` when the template does not exist.
    """

    __slots__ = ("_load_func",)

    def __init__(
        self,
        load_func: Callable[[str], str | tuple[str, str | None] | None],
    ):
        self._load_func = load_func

    def get_source(self, name: str) -> tuple[str, str | None]:
        result = self._load_func(name)
        if result is None:
            raise TemplateNotFoundError(f"Template '{name}' not found", template=name)
        if isinstance(result, str):
            return result, "<function>"
        return result
