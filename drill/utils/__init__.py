"""Utility helpers package."""

from drill.utils.exceptions import (
    DrillException,
    EventLoopRequiredError,
    InvalidOptionError,
    ItemSourceError,
    StatisticsBackendError,
)

__all__ = [
    "DrillException",
    "EventLoopRequiredError",
    "InvalidOptionError",
    "ItemSourceError",
    "StatisticsBackendError",
]
