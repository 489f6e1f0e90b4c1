"""Pydantic schemas for practice payloads and views."""

from .practice import (
    PracticeItemRecord,
    PracticeItemsPayload,
    PracticeItemView,
    PracticeView,
    ResetDialogView,
    StatisticsErrorView,
    StatisticsRead,
    StatisticsRecord,
)

__all__ = [
    "PracticeItemRecord",
    "PracticeItemView",
    "PracticeItemsPayload",
    "PracticeView",
    "ResetDialogView",
    "StatisticsErrorView",
    "StatisticsRead",
    "StatisticsRecord",
]
