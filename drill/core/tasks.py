"""Tracking of fire-and-forget asyncio tasks."""
from __future__ import annotations

import asyncio
from typing import Any, Coroutine

from loguru import logger

from drill.core.timers import running_loop
from drill.utils.exceptions import EventLoopRequiredError


class BackgroundTasks:
    """Keep references to detached tasks until they finish."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any]:
        try:
            loop = running_loop(f"Background task {name or coro.__qualname__!r}")
        except EventLoopRequiredError:
            coro.close()
            raise
        task = loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task failed", task=task.get_name(), error=repr(exc))

    def __len__(self) -> int:
        return len(self._tasks)

    async def wait(self) -> None:
        """Wait until every spawned task (including ones spawned meanwhile) is done."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel(self) -> None:
        for task in list(self._tasks):
            task.cancel()


__all__ = ["BackgroundTasks"]
