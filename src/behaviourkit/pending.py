"""Tracking for deferred binding work running on the event loop."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class PendingWork:
    """Self-cleaning set of background tasks started while binding.

    Failures are logged when the task finishes and kept until the next
    :meth:`drain`, which re-raises the first of them.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._failures: list[BaseException] = []

    def __len__(self) -> int:
        return len(self._tasks)

    def add(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task[Any]:
        """Schedule ``coro`` on the running loop and track it until done."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            raise
        task = loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(self._record_failure)
        return task

    def _record_failure(self, task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        self._failures.append(exc)
        LOGGER.warning(
            "binder.pending.failed",
            extra={
                "event": "binder.pending.failed",
                "task": task.get_name(),
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )

    async def drain(self) -> None:
        """Wait until no work is pending, including work started meanwhile.

        Raises:
            Exception: the first failure recorded since the last drain.
        """
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._failures:
            first, self._failures = self._failures[0], []
            raise first
