"""Transient, auto-expiring error state for statistics operations."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from drill.config import settings
from drill.core.timers import Scheduler, TimerHandle

T = TypeVar("T")

DEFAULT_SAVE_ERROR_MESSAGE = "Failed to save statistics. Your progress may not be saved."


@dataclass(frozen=True, slots=True)
class StatisticsError:
    """Error banner shown to the learner."""

    message: str
    timestamp: int


class StatisticsErrorNotifier:
    """Hold at most one error message and clear it after a fixed delay."""

    def __init__(self, scheduler: Scheduler, *, clear_after_ms: int | None = None) -> None:
        self.scheduler = scheduler
        self.clear_after_ms = (
            settings.STATISTICS_ERROR_CLEAR_MS if clear_after_ms is None else clear_after_ms
        )
        self._error: StatisticsError | None = None
        self._timer: TimerHandle | None = None

    @property
    def error(self) -> StatisticsError | None:
        return self._error

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self) -> None:
        self._timer = None
        self._error = None

    def show_error(self, message: str) -> None:
        self._cancel_timer()
        self._error = StatisticsError(message=message, timestamp=self.scheduler.now_ms())
        self._timer = self.scheduler.call_later(self.clear_after_ms, self._expire)

    def clear_error(self) -> None:
        self._cancel_timer()
        self._error = None

    async def run_guarded(
        self,
        operation: Callable[[], Awaitable[T]],
        error_message: str = DEFAULT_SAVE_ERROR_MESSAGE,
    ) -> T | None:
        """Await ``operation`` and turn any failure into a transient error."""

        try:
            return await operation()
        except Exception as exc:
            logger.error("Statistics operation failed", error=repr(exc))
            self.show_error(error_message)
            return None

    def close(self) -> None:
        self._cancel_timer()
