"""Clock and one-shot timer abstractions.

Everything time-dependent in the engine (debounce windows, error auto-clear,
random seeds, deferred focus requests) goes through a :class:`Scheduler` so
that it can run against the asyncio event loop in production and against a
virtual clock in tests.
"""
from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol

from drill.utils.exceptions import EventLoopRequiredError


class TimerHandle(Protocol):
    """Handle returned by :meth:`Scheduler.call_later`."""

    def cancel(self) -> None:  # pragma: no cover - interface definition
        ...


class Scheduler(Protocol):
    """Source of wall-clock time and one-shot timers."""

    def now_ms(self) -> int:  # pragma: no cover - interface definition
        """Current time in milliseconds."""

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:  # pragma: no cover
        """Run ``callback`` once after ``delay_ms`` milliseconds."""


def running_loop(operation: str) -> asyncio.AbstractEventLoop:
    """Return the running loop or explain that ``operation`` needs one."""

    try:
        return asyncio.get_running_loop()
    except RuntimeError as exc:
        raise EventLoopRequiredError(
            f"{operation} must be called from inside a running asyncio event loop",
            {"operation": operation},
        ) from exc


class AsyncioScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        loop = running_loop("call_later")
        return loop.call_later(max(0, delay_ms) / 1000, callback)


@dataclass(order=True)
class _ManualTimer:
    due_ms: int
    sequence: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock whose timers only fire when :meth:`advance` is called."""

    def __init__(self, start_ms: int = 0) -> None:
        self._now = start_ms
        self._timers: list[_ManualTimer] = []
        self._sequence = itertools.count()

    def now_ms(self) -> int:
        return self._now

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        timer = _ManualTimer(self._now + max(0, delay_ms), next(self._sequence), callback)
        heapq.heappush(self._timers, timer)
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for timer in self._timers if not timer.cancelled)

    def advance(self, delta_ms: int) -> None:
        """Move the clock forward, firing due timers in order."""

        target = self._now + delta_ms
        while self._timers and self._timers[0].due_ms <= target:
            timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self._now = timer.due_ms
            timer.callback()
        self._now = target


__all__ = ["AsyncioScheduler", "ManualScheduler", "Scheduler", "TimerHandle", "running_loop"]
