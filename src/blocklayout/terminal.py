"""Terminal color helpers for layout diagnostics.

ANSI colors with TTY detection and NO_COLOR / FORCE_COLOR support. Used by
`LayoutError.format_compact()` and `ErrorCollector.format_report()`.
"""

from __future__ import annotations

import os
import re
import sys
from typing import Literal

_COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "green": "\033[32m",
    "bright_red": "\033[91m",
}

ColorName = Literal["reset", "bold", "dim", "red", "yellow", "cyan", "green", "bright_red"]

_ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


def _should_use_colors() -> bool:
    """Decide whether diagnostics are colored.

    Respects:
        - FORCE_COLOR (wins over everything)
        - NO_COLOR (https://no-color.org/)
        - sys.stderr.isatty() otherwise
    """
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stderr.isatty()


_USE_COLORS = _should_use_colors()


def supports_color() -> bool:
    return _USE_COLORS


def colorize(text: str, *colors: ColorName) -> str:
    """Wrap text in ANSI codes when colors are enabled.

    Example:
        >>> colorize("Error", "red", "bold")
        '\033[31m\033[1mError\033[0m'  # if colors supported
        'Error'  # if colors not supported
    """
    if not _USE_COLORS or not colors:
        return text
    prefix = "".join(_COLORS.get(color, "") for color in colors)
    if not prefix:
        return text
    return f"{prefix}{text}{_COLORS['reset']}"


def strip_colors(text: str) -> str:
    """Remove ANSI color codes from text."""
    return _ANSI_ESCAPE.sub("", text)


def error_code(text: str) -> str:
    return colorize(text, "bright_red", "bold")


def location(text: str) -> str:
    return colorize(text, "cyan")


def hint(text: str) -> str:
    return colorize(text, "green")


def dim_text(text: str) -> str:
    return colorize(text, "dim")


def format_error_header(code: str | None, message: str) -> str:
    """Format an error header, prefixed with its code when there is one.

    Example:
        >>> format_error_header("L-CFG-001", "Block 'nav' is already defined")
        '\033[91m\033[1mL-CFG-001\033[0m: Block 'nav' is already defined'
    """
    if code:
        return f"{error_code(code)}: {message}"
    return message


def format_context(context: dict[str, str]) -> list[str]:
    """Format an error context mapping as indented ``key: value`` lines."""
    return [f"  {dim_text(key.capitalize() + ':')} {location(str(value))}" for key, value in context.items()]
