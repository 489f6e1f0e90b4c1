"""Live aggregate statistics over an abstract backend."""
from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol

from loguru import logger

from drill.core.models import EMPTY_STATISTICS, PracticeItem, Statistics
from drill.schemas.practice import StatisticsRecord
from drill.utils.exceptions import StatisticsBackendError


class StatisticsBackend(Protocol):
    """Operations the engine needs from wherever statistics are stored."""

    async def get_aggregate_statistics(self) -> Mapping[str, Any]:  # pragma: no cover - interface definition
        """Return item id -> counts (``Statistics`` or a JSON-like record)."""

    async def submit_outcome(self, item_id: str, correct: bool) -> None:  # pragma: no cover
        """Record one correct/incorrect outcome for an item."""

    async def reset_statistics(self, item_id: str) -> None:  # pragma: no cover
        """Delete the aggregate for an item."""


class InMemoryStatisticsBackend:
    """Backend keeping aggregates in a dictionary, for local sessions and tests."""

    def __init__(self, initial: Mapping[str, Statistics] | None = None) -> None:
        self._aggregates: dict[str, Statistics] = dict(initial or {})
        self.submissions: list[tuple[str, bool]] = []
        self.resets: list[str] = []

    async def get_aggregate_statistics(self) -> Mapping[str, Statistics]:
        return dict(self._aggregates)

    async def submit_outcome(self, item_id: str, correct: bool) -> None:
        self.submissions.append((item_id, correct))
        self._aggregates[item_id] = self._aggregates.get(item_id, EMPTY_STATISTICS).record(correct)

    async def reset_statistics(self, item_id: str) -> None:
        self.resets.append(item_id)
        self._aggregates.pop(item_id, None)


def _coerce(item_id: str, value: Any) -> Statistics:
    if isinstance(value, Statistics):
        return value
    if isinstance(value, StatisticsRecord):
        return value.to_statistics()
    try:
        return StatisticsRecord.model_validate(value).to_statistics()
    except ValueError as exc:
        raise StatisticsBackendError(
            "Malformed statistics record", {"item_id": item_id, "value": repr(value)}
        ) from exc


class StatisticsStore:
    """Cache of aggregate statistics kept in step with a backend.

    Reads never fail: an item without an entry has zero counts. The cache only
    ever holds what a backend read returned, so callers refetch after a
    submission is acknowledged. Each refetch takes a generation number and a
    read that completes after a newer one started (or after a reset) is
    discarded.
    """

    def __init__(self, backend: StatisticsBackend) -> None:
        self.backend = backend
        self._statistics: dict[str, Statistics] = {}
        self._generation = 0

    def get(self, item_id: str) -> Statistics:
        return self._statistics.get(item_id, EMPTY_STATISTICS)

    def as_mapping(self) -> dict[str, Statistics]:
        return dict(self._statistics)

    async def refetch(self) -> dict[str, Statistics]:
        self._generation += 1
        generation = self._generation
        raw = await self.backend.get_aggregate_statistics()
        statistics = {str(item_id): _coerce(str(item_id), value) for item_id, value in raw.items()}
        if generation != self._generation:
            logger.debug("Discarding stale statistics read", generation=generation, latest=self._generation)
            return self.as_mapping()
        self._statistics = statistics
        logger.debug("Statistics refetched", items=len(self._statistics), generation=generation)
        return self.as_mapping()

    async def submit_outcome(self, item_id: str, correct: bool) -> bool:
        """Send one outcome to the backend; ``True`` once it is acknowledged."""

        await self.backend.submit_outcome(item_id, correct)
        logger.debug("Outcome recorded", item_id=item_id, correct=correct)
        return True

    async def reset(self, item_id: str) -> None:
        await self.backend.reset_statistics(item_id)
        # Reads started before the reset still carry the old counts.
        self._generation += 1
        self._statistics.pop(item_id, None)
        logger.info("Statistics reset", item_id=item_id)


def is_mastered(statistics: Statistics, threshold: int) -> bool:
    """An item is mastered once its net score reaches ``threshold``."""

    return statistics.net_score >= threshold


def count_mastered(items: Iterable[PracticeItem], store: StatisticsStore, threshold: int) -> int:
    return sum(1 for item in items if is_mastered(store.get(item.id), threshold))
