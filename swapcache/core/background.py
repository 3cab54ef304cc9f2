"""
Background Task Runner

Fire-and-forget work (metric mirroring, response-cache writes, cache
invalidation, warmup) is submitted here instead of being left as a dangling
coroutine. Each task is tracked until it finishes, failures are logged in a
done-callback and never reach the request that scheduled them, and shutdown
waits for in-flight tasks before cancelling stragglers.

Author: Platform Team
Date: 2026-03-04
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from swapcache.core.config.constants import Stage
from swapcache.core.logging.logger import get_logger

logger = get_logger(__name__)


class BackgroundTaskRunner:
    """
    Tracks detached asyncio tasks for the lifetime of the application.

    Tasks inherit the submitting coroutine's context, so log events emitted
    from them still carry the request ID.
    """

    def __init__(self, shutdown_timeout: float = 5.0):
        self._shutdown_timeout = shutdown_timeout
        self._tasks: set[asyncio.Task] = set()
        self._closed = False
        self._failed = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @property
    def failed(self) -> int:
        """Number of submitted tasks that ended with an exception."""
        return self._failed

    def submit(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task | None:
        """
        Schedule ``coro`` without awaiting it.

        Returns the task, or None when the runner is already shut down (the
        coroutine is closed so it never runs).
        """
        if self._closed:
            coro.close()
            logger.debug("Background task dropped after shutdown", stage=Stage.BACKGROUND, task=name)
            return None

        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._failed += 1
            logger.error(
                "Background task failed",
                stage=Stage.BACKGROUND,
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def drain(self, timeout: float | None = None) -> None:
        """Wait until every task submitted so far has finished."""
        while self._tasks:
            pending = list(self._tasks)
            done, not_done = await asyncio.wait(pending, timeout=timeout)
            if not_done:
                logger.warning(
                    "Background tasks still running after drain timeout",
                    stage=Stage.BACKGROUND,
                    pending=len(not_done),
                )
                return

    async def shutdown(self, timeout: float | None = None) -> None:
        """
        Stop accepting work, wait for in-flight tasks, cancel what is left.

        STAGE-6: Background task cleanup
        """
        self._closed = True
        if not self._tasks:
            return

        timeout = self._shutdown_timeout if timeout is None else timeout
        pending = list(self._tasks)
        _, not_done = await asyncio.wait(pending, timeout=timeout)

        for task in not_done:
            task.cancel()
        if not_done:
            await asyncio.gather(*not_done, return_exceptions=True)
            logger.warning(
                "Background tasks cancelled at shutdown",
                stage=Stage.CLEANUP,
                cancelled=len(not_done),
            )

        logger.info("Background task runner stopped", stage=Stage.CLEANUP)
