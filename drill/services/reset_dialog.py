"""Confirm-then-reset workflow for per-item statistics."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from loguru import logger

from drill.core.models import PracticeItem

RESET_ERROR_MESSAGE = "Failed to reset statistics. Please try again."

ItemT = TypeVar("ItemT", bound=PracticeItem)


@dataclass(frozen=True, slots=True)
class ResetDialogState:
    open: bool = False
    item_id: Optional[str] = None
    item_label: Optional[str] = None
    error: Optional[str] = None


CLOSED = ResetDialogState()


class ResetDialog(Generic[ItemT]):
    """State machine: closed -> open -> resetting -> closed or open with error."""

    def __init__(
        self,
        *,
        reset_statistic: Callable[[str], Awaitable[object]],
        get_label: Callable[[ItemT], str] = lambda item: item.translation,
        on_reset_success: Optional[Callable[[], None]] = None,
    ) -> None:
        self.reset_statistic = reset_statistic
        self.get_label = get_label
        self.on_reset_success = on_reset_success
        self.state = CLOSED
        self.is_resetting = False

    def open(self, item: ItemT) -> None:
        self.state = ResetDialogState(
            open=True,
            item_id=item.id,
            item_label=self.get_label(item),
            error=None,
        )

    def close(self) -> None:
        self.state = CLOSED

    async def confirm(self) -> None:
        item_id = self.state.item_id
        if not item_id:
            return

        self.is_resetting = True
        try:
            await self.reset_statistic(item_id)
        except Exception as exc:
            logger.error("Failed to reset statistics", item_id=item_id, error=repr(exc))
            if self.state.item_id == item_id:
                self.state = ResetDialogState(
                    open=True,
                    item_id=item_id,
                    item_label=self.state.item_label,
                    error=RESET_ERROR_MESSAGE,
                )
        else:
            self.close()
            if self.on_reset_success is not None:
                self.on_reset_success()
        finally:
            self.is_resetting = False
