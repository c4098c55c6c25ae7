"""Detached background work tied to a response."""

import logging
from typing import Any, Awaitable, Callable

from starlette.background import BackgroundTask

logger = logging.getLogger(__name__)


def detach(
    func: Callable[..., Awaitable[Any]], *args: Any, description: str = "background task"
) -> BackgroundTask:
    """Wrap a coroutine function so it runs after the response is sent.

    The result is discarded and any exception is logged, so the task can
    never affect the response it is attached to.

    Args:
        func: Coroutine function to run
        *args: Positional arguments for ``func``
        description: Label used in log messages

    Returns:
        BackgroundTask to attach to a Starlette response
    """

    async def run() -> None:
        try:
            await func(*args)
        except Exception:
            logger.exception(f"{description} failed")

    return BackgroundTask(run)
