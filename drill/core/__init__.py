"""Core answer checking, value types and timing primitives."""

from .answers import collation_key, normalize, validate
from .models import (
    ADJECTIVES,
    DISPLAY_ALL,
    DISPLAY_COUNTS,
    EMPTY_STATISTICS,
    NOUNS,
    PRACTICE_KINDS,
    VERBS,
    DisplayCount,
    PracticeItem,
    PracticeKind,
    SortOption,
    Statistics,
    ValidationMark,
    get_kind,
    parse_display_count,
)
from .tasks import BackgroundTasks
from .timers import AsyncioScheduler, ManualScheduler, Scheduler, TimerHandle

__all__ = [
    "ADJECTIVES",
    "AsyncioScheduler",
    "BackgroundTasks",
    "DISPLAY_ALL",
    "DISPLAY_COUNTS",
    "DisplayCount",
    "EMPTY_STATISTICS",
    "ManualScheduler",
    "NOUNS",
    "PRACTICE_KINDS",
    "PracticeItem",
    "PracticeKind",
    "Scheduler",
    "SortOption",
    "Statistics",
    "TimerHandle",
    "VERBS",
    "ValidationMark",
    "collation_key",
    "get_kind",
    "normalize",
    "parse_display_count",
    "validate",
]
