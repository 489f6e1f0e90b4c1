"""Service layer package."""

from drill.services.debounce import AttemptDebouncer
from drill.services.filters import VerbTypeFilter
from drill.services.notifier import StatisticsError, StatisticsErrorNotifier
from drill.services.practice import FocusTarget, ItemSource, PracticeSession
from drill.services.reset_dialog import ResetDialog, ResetDialogState
from drill.services.sorting import SortFilterEngine
from drill.services.statistics import (
    InMemoryStatisticsBackend,
    StatisticsBackend,
    StatisticsStore,
)

__all__ = [
    "AttemptDebouncer",
    "FocusTarget",
    "InMemoryStatisticsBackend",
    "ItemSource",
    "PracticeSession",
    "ResetDialog",
    "ResetDialogState",
    "SortFilterEngine",
    "StatisticsBackend",
    "StatisticsError",
    "StatisticsErrorNotifier",
    "StatisticsStore",
    "VerbTypeFilter",
]
