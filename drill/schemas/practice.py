"""Pydantic models for practice payloads and presentation views."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from drill.core.models import PracticeItem, PracticeKind, Statistics
from drill.utils.exceptions import ItemSourceError


class StatisticsRecord(BaseModel):
    """Aggregate counts as reported by a statistics backend."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    correct: int = Field(0, ge=0, alias="correctAttempts")
    wrong: int = Field(0, ge=0, alias="wrongAttempts")

    def to_statistics(self) -> Statistics:
        return Statistics(correct=self.correct, wrong=self.wrong)


class PracticeItemRecord(BaseModel):
    """Raw practice item; answer fields and extra attributes arrive flat."""

    model_config = ConfigDict(extra="allow")

    id: str
    translation: str

    def to_item(self, kind: PracticeKind) -> PracticeItem:
        extra: dict[str, Any] = dict(self.model_extra or {})
        missing = [name for name in kind.fields if name not in extra]
        if missing:
            raise ItemSourceError(
                f"{kind.name} item is missing answer fields",
                {"id": self.id, "missing": missing},
            )
        answers = {name: str(extra.pop(name) or "") for name in kind.fields}
        return PracticeItem(id=self.id, translation=self.translation, answers=answers, attributes=extra)


class PracticeItemsPayload(BaseModel):
    """Response of an item source's ``fetch_items_for_practice``."""

    items: list[PracticeItemRecord] = Field(default_factory=list)

    def to_items(self, kind: PracticeKind) -> list[PracticeItem]:
        return [record.to_item(kind) for record in self.items]


class StatisticsRead(BaseModel):
    correct: int
    wrong: int


class PracticeItemView(BaseModel):
    """A visible item together with the learner's current input."""

    id: str
    translation: str
    fields: list[str]
    inputs: dict[str, str]
    marks: dict[str, Literal["unset", "correct", "incorrect"]]
    statistics: StatisticsRead


class ResetDialogView(BaseModel):
    open: bool
    item_id: str | None = None
    item_label: str | None = None
    error: str | None = None
    is_resetting: bool = False


class StatisticsErrorView(BaseModel):
    message: str
    timestamp: int


class PracticeView(BaseModel):
    """Read-only snapshot of a practice session for the presentation layer."""

    kind: str
    items: list[PracticeItemView]
    sort_option: str
    display_count: int | Literal["all"]
    should_show_refresh_button: bool
    displayed_count: int
    total_count: int
    exclude_mastered: bool
    mastery_threshold: int
    mastered_count: int
    reset_dialog: ResetDialogView
    statistics_error: StatisticsErrorView | None = None
