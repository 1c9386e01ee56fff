"""blocklayout — hierarchical page composition from template blocks.

A page is a tree of named blocks. Each block has a template (html plus an
optional Python behavior script) and async lifecycle hooks; the Layout
builds the tree from configuration, runs the hooks across it, and renders it
bottom-up into one HTML string.

Quickstart:
    >>> from blocklayout import Layout
    >>> layout = Layout(views="views/")
    >>> await layout.load_template("home.html", {
    ...     "page": "page.html",
    ...     "data": {"name": "World"},
    ... })
    >>> await layout.render()
    'Hello World'

with ``views/home.html``::

    <template>Hello {{ name }}</template>

and ``views/page.html``::

    <template>{{ getBlockHtml('home') }}</template>

Architecture:
    ```
    Layout
    ├── TemplateLoader   path -> html + behavior class (artifact cache)
    │   ├── SourceLoader     FileSystemLoader / DictLoader / ...
    │   └── ScriptCompiler   <script> source -> Block subclass
    ├── BlockFactory     spec -> Block, recursively (init, children)
    ├── LayoutSession    blocks by name / by parent, rebuilt per load
    ├── TemplateEngine   jinja2 (async), filters and functions
    └── ErrorSink        isolated failures with block context
    ```

Caching:
One cache store (see `MemoryCache`) serves both the artifact cache (parsed
templates) and the per-block render cache.

"""

from blocklayout.blocks import ROOT_PARENT, Block, Container, action
from blocklayout.cache import Cache, MemoryCache
from blocklayout.compiler import ModuleScriptCompiler, ScriptCompiler
from blocklayout.config import LayoutOptions
from blocklayout.engine import Jinja2Engine, TemplateEngine
from blocklayout.events import ErrorCollector, ErrorEvent, ErrorSink
from blocklayout.exceptions import (
    BlockDefinitionError,
    BlockNotFoundError,
    CacheKeyError,
    DuplicateBlockError,
    ErrorCode,
    LayoutConfigError,
    LayoutError,
    MissingPageError,
    ScriptCompileError,
    TemplateLoadError,
    TemplateNotFoundError,
    UnknownActionError,
)
from blocklayout.factory import BlockFactory, BlockSpec
from blocklayout.layout import PAGE_BLOCK, Layout
from blocklayout.loaders import ChoiceLoader, DictLoader, FileSystemLoader, FunctionLoader
from blocklayout.session import LayoutSession
from blocklayout.template_loader import TemplateArtifact, TemplateLoader, parse_template

__version__ = "0.1.0"

__all__ = [
    "PAGE_BLOCK",
    "ROOT_PARENT",
    "Block",
    "BlockDefinitionError",
    "BlockFactory",
    "BlockNotFoundError",
    "BlockSpec",
    "Cache",
    "CacheKeyError",
    "ChoiceLoader",
    "Container",
    "DictLoader",
    "DuplicateBlockError",
    "ErrorCode",
    "ErrorCollector",
    "ErrorEvent",
    "ErrorSink",
    "FileSystemLoader",
    "FunctionLoader",
    "Jinja2Engine",
    "Layout",
    "LayoutConfigError",
    "LayoutError",
    "LayoutOptions",
    "LayoutSession",
    "MemoryCache",
    "MissingPageError",
    "ModuleScriptCompiler",
    "ScriptCompileError",
    "ScriptCompiler",
    "TemplateArtifact",
    "TemplateEngine",
    "TemplateLoadError",
    "TemplateLoader",
    "TemplateNotFoundError",
    "UnknownActionError",
    "__version__",
    "action",
    "parse_template",
]
