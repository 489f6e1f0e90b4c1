"""Duplicate-validation suppression."""
from __future__ import annotations

from loguru import logger

from drill.config import settings

DebounceKey = tuple[str, str]


class AttemptDebouncer:
    """Accept at most one validation per ``(item_id, field)`` within a window.

    The Enter handler and a blur or re-render path can both ask for a
    validation of the same answer; only the first one within the window is
    allowed through to the statistics backend.
    """

    def __init__(self, window_ms: int | None = None) -> None:
        self.window_ms = settings.VALIDATION_DEBOUNCE_MS if window_ms is None else window_ms
        self._last_validated: dict[DebounceKey, int] = {}

    def should_validate(self, key: DebounceKey, now_ms: int) -> bool:
        last = self._last_validated.get(key)
        if last is not None and now_ms - last < self.window_ms:
            logger.debug("Validation debounced", item_id=key[0], field=key[1], elapsed_ms=now_ms - last)
            return False
        self._last_validated[key] = now_ms
        return True

    def forget(self, item_id: str) -> None:
        for key in [key for key in self._last_validated if key[0] == item_id]:
            del self._last_validated[key]

    def reset(self) -> None:
        self._last_validated.clear()
