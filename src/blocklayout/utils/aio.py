"""Concurrency helpers for the block tree.

Fan-outs in the layout come in two flavors:

- Isolated work (hooks, renders) catches its own failures per task, so a
  plain ``asyncio.gather`` would do.
- Loading can raise fatal configuration errors from any branch. Those must
  reach the caller with their own type, and the sibling branches must not
  keep running detached.

`gather_strict` covers both: it runs coroutines in a ``TaskGroup`` (first
failure cancels the rest) and re-raises the first leaf exception instead of
the ``ExceptionGroup`` wrapper.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Iterable
from typing import TypeVar

T = TypeVar("T")


def _first_leaf(group: BaseExceptionGroup) -> BaseException:
    exc: BaseException = group
    while isinstance(exc, BaseExceptionGroup):
        exc = exc.exceptions[0]
    return exc


async def gather_strict(aws: Iterable[Awaitable[T]]) -> list[T]:
    """Await all of `aws` concurrently; results keep the input order.

    Raises:
        The first exception raised by any awaitable, unwrapped.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(_as_coroutine(aw)) for aw in aws]
    except BaseExceptionGroup as eg:
        leaf = _first_leaf(eg)
        raise leaf from leaf.__cause__
    return [task.result() for task in tasks]


async def _as_coroutine(aw: Awaitable[T]) -> T:
    return await aw
