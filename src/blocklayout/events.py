"""Error events emitted while loading and rendering a layout.

Isolated failures (a block's hook raising, a template failing to render, a
missing child template) never escape `Layout.load_template()` or
`Layout.render()`. They are handed to an error sink together with the
context known at the failure site (`block`, `template`, `script`).

The sink is passed to the Layout explicitly, so a caller cannot forget to
subscribe to failures: `ErrorCollector` (the default) keeps every event and
logs it.

Example:
    >>> errors = ErrorCollector()
    >>> layout = Layout(views="views/", errors=errors)
    >>> await layout.load_template("home.html", {"page": "page.html"})
    >>> html = await layout.render()
    >>> for event in errors:
    ...     print(event.context.get("block"), event.error)
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Protocol

from blocklayout import terminal
from blocklayout.exceptions import LayoutError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    """One isolated failure.

    Attributes:
        error: The exception raised at the failure site.
        context: Whichever of ``block``, ``template``, ``script`` are known.
    """

    error: BaseException
    context: Mapping[str, str] = field(default_factory=dict)

    @property
    def block(self) -> str | None:
        return self.context.get("block")

    def format(self) -> str:
        if isinstance(self.error, LayoutError):
            header = self.error.format_compact().splitlines()[0]
        else:
            header = terminal.format_error_header(type(self.error).__name__, str(self.error))
        return "\n".join([header, *terminal.format_context(dict(self.context))])


class ErrorSink(Protocol):
    """Receives isolated failures from a Layout."""

    def emit(self, error: BaseException, context: Mapping[str, str]) -> None: ...


class ErrorCollector:
    """Default error sink: records events in order and logs each one.

    Thread-Safety:
        Layouts are single event loop objects; the collector is not locked.
    """

    __slots__ = ("_events", "_logger")

    def __init__(self, log: logging.Logger | None = None):
        self._events: list[ErrorEvent] = []
        self._logger = log or logger

    def emit(self, error: BaseException, context: Mapping[str, str]) -> None:
        event = ErrorEvent(error, dict(context))
        self._events.append(event)
        self._logger.warning(
            "layout error: %s (%s)",
            error,
            ", ".join(f"{k}={v}" for k, v in event.context.items()) or "no context",
            exc_info=error if self._logger.isEnabledFor(logging.DEBUG) else None,
        )

    @property
    def events(self) -> list[ErrorEvent]:
        return list(self._events)

    def for_block(self, name: str) -> list[ErrorEvent]:
        return [event for event in self._events if event.block == name]

    def clear(self) -> None:
        self._events.clear()

    def format_report(self) -> str:
        """All recorded events as a terminal diagnostic."""
        if not self._events:
            return terminal.dim_text("No layout errors")
        return "\n".join(event.format() for event in self._events)

    def __iter__(self) -> Iterator[ErrorEvent]:
        return iter(list(self._events))

    def __len__(self) -> int:
        return len(self._events)

    def __bool__(self) -> bool:
        return bool(self._events)
