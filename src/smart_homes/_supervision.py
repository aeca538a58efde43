"""Racing and cancelling supervised tasks.

:func:`race` is the one supervision primitive: it runs several
coroutines as tasks, waits for the first to reach a terminal result,
cancels and awaits the rest, then reports the winner's outcome.  A
device actor races its telemetry and command loops with it; a home
races its device actors.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine, Mapping
from typing import Any

from smart_homes._errors import SmartHomeError, TaskJoinError

logger = logging.getLogger(__name__)


async def cancel_tasks(tasks: list[asyncio.Task[Any]]) -> None:
    """Cancel *tasks* and wait until every one of them has finished."""
    for task in tasks:
        task.cancel()
    results = await asyncio.gather(*tasks, return_exceptions=True)
    for task, result in zip(tasks, results, strict=True):
        if isinstance(result, Exception):
            logger.debug(
                "Task '%s' ended with %r during cancel",
                task.get_name(),
                result,
            )


async def race(contenders: Mapping[str, Coroutine[Any, Any, None]]) -> None:
    """Run *contenders* concurrently until the first one finishes.

    The remaining tasks are cancelled and awaited before this returns,
    so nothing keeps running after the race is decided.  Cancelling the
    caller cancels every contender.

    Args:
        contenders: Task name → coroutine.  Names appear in logs and in
            :class:`TaskJoinError`.

    Raises:
        SmartHomeError: The first finisher's domain error, unchanged.
        TaskJoinError: When the first finisher died with any other
            exception (chained as ``__cause__``) or was cancelled from
            outside.
    """
    tasks = [
        asyncio.create_task(coro, name=name) for name, coro in contenders.items()
    ]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        await cancel_tasks([task for task in tasks if not task.done()])

    winner = next(task for task in tasks if task in done)
    for task in tasks:
        if task is not winner and task in done and not task.cancelled():
            if (other := task.exception()) is not None:
                logger.debug("Task '%s' also ended with %r", task.get_name(), other)
    if winner.cancelled():
        raise TaskJoinError(winner.get_name(), asyncio.CancelledError())
    exc = winner.exception()
    if exc is None:
        return
    if isinstance(exc, SmartHomeError):
        raise exc
    raise TaskJoinError(winner.get_name(), exc) from exc
