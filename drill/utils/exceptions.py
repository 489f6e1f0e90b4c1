"""Custom exception classes for the practice engine."""
from typing import Any, Dict, Optional


class DrillException(Exception):
    """Base exception for the practice engine."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ItemSourceError(DrillException):
    """Practice items could not be fetched or parsed."""
    pass


class StatisticsBackendError(DrillException):
    """A statistics backend call failed."""
    pass


class InvalidOptionError(DrillException):
    """An unknown sort option, display count, field or kind was requested."""
    pass


class EventLoopRequiredError(DrillException):
    """A background operation was requested outside a running event loop."""
    pass
