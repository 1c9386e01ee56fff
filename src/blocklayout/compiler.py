"""Behavior scripts: turning Python source into Block subclasses.

Two kinds of scripts select a block's class:

- **Embedded scripts**: the ``<script>`` section of a template file. The
  source is materialized as a module, either on disk under ``cache_dir``
  (one file per template, named by a hash of the template path, so repeated
  loads converge on the same file) or in memory.
- **Explicit scripts**: a block config's ``script`` entry. Either a Block
  subclass, an import path (``"package.module:ClassName"``), or a ``.py``
  file path.

The module namespace is seeded with `Block`, `Container` and `action`. The
class used is the module's ``block_class`` attribute, or else the last Block
subclass the module defines:

    ```html
    <template><ul>{% for item in items %}<li>{{ item }}</li>{% endfor %}</ul></template>
    <script>
    class MenuBlock(Block):
        async def init(self):
            self.data["items"] = ["Home", "Blog"]
    </script>
    ```

Line Numbers:
`TemplateLoader` prefixes embedded source with the newlines that precede it
in the template file, so tracebacks from a script report template line
numbers. In-memory modules register their source with `linecache`.

Everything that evaluates source text lives behind `ScriptCompiler`, so the
rest of the package never calls `exec` directly and tests can swap it out.
"""

from __future__ import annotations

import importlib
import importlib.util
import linecache
import logging
import sys
import types
from hashlib import sha1
from pathlib import Path
from typing import Any, Protocol

from blocklayout.blocks import Block, Container, action
from blocklayout.exceptions import ScriptCompileError

logger = logging.getLogger(__name__)

MODULE_PREFIX = "_blocklayout_tpl_"


class ScriptCompiler(Protocol):
    """Materializes behavior source into a Block subclass."""

    def compile(self, source: str, path: str, filename: str | None = None) -> type[Block]: ...

    def load(self, script: Any, search_paths: list[Path] | None = None) -> type[Block]: ...


def _path_digest(path: str) -> str:
    return sha1(path.encode()).hexdigest()[:16]


def find_block_class(module: types.ModuleType) -> type[Block] | None:
    """The module's ``block_class``, else the last Block subclass it defines."""
    explicit = getattr(module, "block_class", None)
    if isinstance(explicit, type) and issubclass(explicit, Block):
        return explicit
    found = None
    for value in vars(module).values():
        if (
            isinstance(value, type)
            and issubclass(value, Block)
            and value.__module__ == module.__name__
        ):
            found = value
    return found


def _seed(module: types.ModuleType) -> None:
    module.__dict__.update(Block=Block, Container=Container, action=action)


class ModuleScriptCompiler:
    """Default compiler: executes scripts as real Python modules.

    Args:
        cache_dir: Directory for materialized template modules. When None,
            modules are compiled in memory.

    Compiled classes are memoized per (template path, source digest): a
    changed script compiles again, an unchanged one is reused.
    """

    __slots__ = ("_cache_dir", "_compiled")

    def __init__(self, cache_dir: str | Path | None = None):
        self._cache_dir = Path(cache_dir) if cache_dir else None
        self._compiled: dict[tuple[str, str], type[Block]] = {}

    @property
    def cache_dir(self) -> Path | None:
        return self._cache_dir

    def module_path(self, path: str) -> Path | None:
        """Deterministic on-disk module location for a template path."""
        if self._cache_dir is None:
            return None
        return self._cache_dir / f"tpl_{_path_digest(path)}.py"

    def compile(self, source: str, path: str, filename: str | None = None) -> type[Block]:
        memo_key = (path, sha1(source.encode()).hexdigest())
        cls = self._compiled.get(memo_key)
        if cls is not None:
            return cls

        module_name = f"{MODULE_PREFIX}{_path_digest(path)}"
        try:
            target = self.module_path(path)
            if target is not None:
                module = self._exec_file(module_name, target, source)
            else:
                module = self._exec_memory(module_name, filename or f"<template {path}>", source)
        except Exception as exc:
            raise ScriptCompileError(
                f"Cannot compile the script of {path}: {exc}", template=path
            ) from exc

        cls = find_block_class(module)
        if cls is None:
            raise ScriptCompileError(f"The script of {path} defines no Block subclass", template=path)
        logger.debug("compiled %s from %s", cls.__qualname__, path)
        self._compiled[memo_key] = cls
        return cls

    def _exec_file(self, module_name: str, target: Path, source: str) -> types.ModuleType:
        target.parent.mkdir(parents=True, exist_ok=True)
        if not target.is_file() or target.read_text("utf-8") != source:
            target.write_text(source, "utf-8")
        # Compiled from the source string: a rewrite within the same second
        # must not pick up stale bytecode.
        return self._exec_memory(module_name, str(target), source)

    def _exec_memory(self, module_name: str, filename: str, source: str) -> types.ModuleType:
        module = types.ModuleType(module_name)
        module.__file__ = filename
        _seed(module)
        if filename.startswith("<"):
            linecache.cache[filename] = (len(source), None, source.splitlines(True), filename)
        code = compile(source, filename, "exec")
        sys.modules[module_name] = module
        try:
            exec(code, module.__dict__)
        except BaseException:
            sys.modules.pop(module_name, None)
            raise
        return module

    def load(self, script: Any, search_paths: list[Path] | None = None) -> type[Block]:
        """Resolve an explicit ``script`` entry to a Block subclass.

        Raises:
            ScriptCompileError: If the script cannot be imported or defines
                no Block subclass.
        """
        if isinstance(script, type):
            if issubclass(script, Block):
                return script
            raise ScriptCompileError(f"{script!r} is not a Block subclass", script=script.__qualname__)

        script = str(script)
        try:
            if script.endswith(".py"):
                module = self._load_file(script, search_paths or [])
            else:
                module_name, _, attr = script.partition(":")
                module = importlib.import_module(module_name)
                if attr:
                    cls = getattr(module, attr)
                    if not (isinstance(cls, type) and issubclass(cls, Block)):
                        raise TypeError(f"{script} is not a Block subclass")
                    return cls
        except ScriptCompileError:
            raise
        except Exception as exc:
            raise ScriptCompileError(f"Cannot load script {script}: {exc}", script=script) from exc

        cls = find_block_class(module)
        if cls is None:
            raise ScriptCompileError(f"Script {script} defines no Block subclass", script=script)
        return cls

    def _load_file(self, script: str, search_paths: list[Path]) -> types.ModuleType:
        path = Path(script)
        if not path.is_absolute():
            for base in search_paths:
                if (base / path).is_file():
                    path = base / path
                    break
        if not path.is_file():
            raise FileNotFoundError(f"script file not found: {script}")
        module_name = f"{MODULE_PREFIX}script_{_path_digest(str(path.resolve()))}"
        cached = sys.modules.get(module_name)
        if cached is not None:
            return cached
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ImportError(f"cannot import {path}")
        module = importlib.util.module_from_spec(spec)
        _seed(module)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(module_name, None)
            raise
        return module
