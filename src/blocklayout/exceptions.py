"""Exceptions for the blocklayout composition engine.

Exception Hierarchy:
LayoutError (base)
├── LayoutConfigError         # Fatal configuration problem, never isolated
│   ├── DuplicateBlockError   # Two blocks share a name
│   ├── MissingPageError      # Page mode without config["page"]
│   ├── BlockDefinitionError  # Block with neither template nor script
│   ├── CacheKeyError         # Render caching without a derivable key
│   └── UnknownActionError    # Declarative action not registered
├── BlockNotFoundError        # get_block() on an unregistered name
├── TemplateNotFoundError     # Template source not found by the loader
├── TemplateLoadError         # Root or page template could not be loaded
└── ScriptCompileError        # Embedded script failed to materialize

Fatal vs isolated:
Only `LayoutConfigError` (and `BlockNotFoundError` / `TemplateLoadError` at
the top level) escape `Layout.load_template()` and `Layout.render()`.
Everything else raised under a block is reported to the layout's error sink
with `{block, template, script}` context and the rest of the tree proceeds.

Example:
    ```
    L-CFG-001: Block 'nav' is already defined
      Block: nav
      Template: partials/nav.html
      Hint: Block names must be unique within a loaded layout
    ```

"""

from __future__ import annotations

from enum import Enum

from blocklayout import terminal


class ErrorCode(Enum):
    """Searchable error codes for layout errors.

    Format: L-{CATEGORY}-{NUMBER}
    Categories: CFG (configuration), LDR (loading), RUN (runtime)
    """

    # Configuration errors (L-CFG-xxx)
    DUPLICATE_BLOCK = "L-CFG-001"
    MISSING_PAGE = "L-CFG-002"
    BLOCK_DEFINITION = "L-CFG-003"
    CACHE_KEY = "L-CFG-004"
    UNKNOWN_ACTION = "L-CFG-005"

    # Loading errors (L-LDR-xxx)
    TEMPLATE_NOT_FOUND = "L-LDR-001"
    TEMPLATE_LOAD = "L-LDR-002"
    SCRIPT_COMPILE = "L-LDR-003"

    # Runtime errors (L-RUN-xxx)
    BLOCK_NOT_FOUND = "L-RUN-001"

    @property
    def category(self) -> str:
        """Error category (e.g., 'config', 'loading', 'runtime')."""
        prefix = self.value.split("-")[1]
        return {
            "CFG": "config",
            "LDR": "loading",
            "RUN": "runtime",
        }.get(prefix, "unknown")


class LayoutError(Exception):
    """Base exception for all layout errors.

    Attributes:
        code: Optional ErrorCode for searchable error identification.
        block: Name of the block involved, when known.
        template: Template path involved, when known.
        suggestion: Optional actionable hint.
    """

    code: ErrorCode | None = None

    def __init__(
        self,
        message: str,
        *,
        block: str | None = None,
        template: str | None = None,
        suggestion: str | None = None,
    ):
        self.message = message
        self.block = block
        self.template = template
        self.suggestion = suggestion
        super().__init__(message)

    @property
    def context(self) -> dict[str, str]:
        """The `{block, template}` entries that are known for this error."""
        context: dict[str, str] = {}
        if self.block is not None:
            context["block"] = self.block
        if self.template is not None:
            context["template"] = self.template
        return context

    def format_compact(self) -> str:
        """Format error as a structured, human-readable summary.

        Format::

            L-CFG-002: Page is not defined in the layout config for home.html
              Template: home.html
              Hint: Add a "page" entry or load with render_page=False

        Returns:
            Multi-line string with error code, message, context and hint.
        """
        parts = [terminal.format_error_header(self.code.value if self.code else None, self.message)]
        parts.extend(terminal.format_context(self.context))
        if self.suggestion:
            parts.append(f"  {terminal.hint('Hint:')} {self.suggestion}")
        return "\n".join(parts)


class LayoutConfigError(LayoutError):
    """Invalid layout configuration. Always propagates to the caller."""


class DuplicateBlockError(LayoutConfigError):
    """Two blocks in the same loaded tree declare the same name."""

    code = ErrorCode.DUPLICATE_BLOCK

    def __init__(self, name: str, *, template: str | None = None, suggestion: str | None = None):
        super().__init__(
            f"Block '{name}' is already defined",
            block=name,
            template=template,
            suggestion=suggestion or "Block names must be unique within a loaded layout",
        )


class MissingPageError(LayoutConfigError):
    """Page-rendering mode without a `page` entry on the template block."""

    code = ErrorCode.MISSING_PAGE

    def __init__(self, template: str, *, block: str | None = None):
        super().__init__(
            f"Page is not defined in the layout config for {template}",
            block=block,
            template=template,
            suggestion='Add a "page" entry or load with render_page=False',
        )


class BlockDefinitionError(LayoutConfigError):
    """A block spec declares neither a template nor a script."""

    code = ErrorCode.BLOCK_DEFINITION

    def __init__(self, name: str | None):
        super().__init__(
            f"Block '{name}' has no template and no script",
            block=name,
            suggestion='Declare a "template" path or a "script" behavior class',
        )


class CacheKeyError(LayoutConfigError):
    """Render caching requested for a block without a derivable cache key."""

    code = ErrorCode.CACHE_KEY

    def __init__(self, name: str):
        super().__init__(
            f"No render cache key for block '{name}'",
            block=name,
            suggestion='Set a template on the block or a "cache": {"key": ...} entry',
        )


class UnknownActionError(LayoutConfigError):
    """A declarative action names a handler the block class does not register."""

    code = ErrorCode.UNKNOWN_ACTION

    def __init__(self, action: str, *, block: str, available: list[str] | None = None):
        suggestion = None
        if available:
            suggestion = f"Available actions: {', '.join(sorted(available))}"
        super().__init__(
            f"Block '{block}' has no action '{action}'",
            block=block,
            suggestion=suggestion,
        )
        self.action = action


class BlockNotFoundError(LayoutError):
    """Lookup of a block name that is not registered in the current layout."""

    code = ErrorCode.BLOCK_NOT_FOUND

    def __init__(self, name: str, *, available: list[str] | None = None):
        suggestion = None
        if available:
            from difflib import get_close_matches

            matches = get_close_matches(name, available, n=1, cutoff=0.6)
            if matches:
                suggestion = f"Did you mean '{matches[0]}'?"
        super().__init__(f"The block '{name}' doesn't exist", block=name, suggestion=suggestion)


class TemplateNotFoundError(LayoutError):
    """Template source not found by the configured loader."""

    code = ErrorCode.TEMPLATE_NOT_FOUND


class TemplateLoadError(LayoutError):
    """The root template block or the page block could not be loaded."""

    code = ErrorCode.TEMPLATE_LOAD


class ScriptCompileError(LayoutError):
    """Embedded or explicit behavior script could not be turned into a class."""

    code = ErrorCode.SCRIPT_COMPILE

    def __init__(self, message: str, *, template: str | None = None, script: str | None = None):
        super().__init__(message, template=template)
        self.script = script

    @property
    def context(self) -> dict[str, str]:
        context = super().context
        if self.script is not None:
            context["script"] = self.script
        return context
