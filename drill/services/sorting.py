"""Stable sorting, filtering and windowing of practice items.

Statistics keep changing while the learner practices: every submitted answer
moves an item's counts and may push it over the mastery threshold. Ordering
and membership are therefore computed from *snapshots* that are only
re-captured when the learner changes the sort or explicitly refreshes, so an
item never jumps or disappears while it is being answered.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Optional, Sequence

from loguru import logger

from drill.config import settings
from drill.core.answers import collation_key
from drill.core.models import (
    DISPLAY_ALL,
    EMPTY_STATISTICS,
    DisplayCount,
    PracticeItem,
    SortOption,
    Statistics,
    parse_display_count,
)
from drill.core.timers import Scheduler
from drill.services.filters import ItemPredicate, StatisticsLookup

_LCG_MULTIPLIER = 9301
_LCG_INCREMENT = 49297
_LCG_MODULUS = 233280


def seeded_random(seed: int) -> Callable[[], float]:
    """Linear congruential generator yielding floats in ``[0, 1)``."""

    state = seed

    def _next() -> float:
        nonlocal state
        state = (state * _LCG_MULTIPLIER + _LCG_INCREMENT) % _LCG_MODULUS
        return state / _LCG_MODULUS

    return _next


def shuffle_with_seed(items: Sequence[PracticeItem], seed: int) -> list[PracticeItem]:
    """Fisher-Yates shuffle; the same seed always yields the same permutation."""

    shuffled = list(items)
    draw = seeded_random(seed)
    for i in range(len(shuffled) - 1, 0, -1):
        j = math.floor(draw() * (i + 1))
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


@dataclass(frozen=True, slots=True)
class SortSnapshot:
    """Statistics per item id as of the last capture."""

    statistics: Mapping[str, Statistics] = field(default_factory=lambda: MappingProxyType({}))

    def get(self, item_id: str) -> Statistics:
        return self.statistics.get(item_id, EMPTY_STATISTICS)


@dataclass(frozen=True, slots=True)
class FilterSnapshot:
    """Ids of the items that passed the filter as of the last capture."""

    item_ids: frozenset[str]

    def __contains__(self, item_id: object) -> bool:
        return item_id in self.item_ids


@dataclass(frozen=True, slots=True)
class CapturedState:
    """Sort and filter snapshots taken together; replaced as one value."""

    sort: SortSnapshot
    filter: Optional[FilterSnapshot]
    captured_at_ms: int


def sort_items(
    items: Iterable[PracticeItem],
    sort_option: SortOption,
    *,
    snapshot: SortSnapshot,
    seed: int,
) -> list[PracticeItem]:
    result = list(items)
    if sort_option is SortOption.ALPHABETICAL:
        result.sort(key=lambda item: collation_key(item.translation))
    elif sort_option is SortOption.RANDOM:
        result = shuffle_with_seed(result, seed)
    elif sort_option is SortOption.MOST_ERRORS:
        result.sort(key=lambda item: snapshot.get(item.id).wrong, reverse=True)
    elif sort_option is SortOption.WORST_PERFORMANCE:
        result.sort(key=lambda item: -snapshot.get(item.id).net_score, reverse=True)
    return result


def apply_window(items: list[PracticeItem], display_count: DisplayCount) -> list[PracticeItem]:
    if display_count == DISPLAY_ALL:
        return items
    return items[:display_count]


class SortFilterEngine:
    """Compute the visible, ordered and windowed item list of a practice page."""

    def __init__(
        self,
        items: Sequence[PracticeItem],
        get_statistics: StatisticsLookup,
        *,
        scheduler: Scheduler,
        filter_predicate: Optional[ItemPredicate] = None,
        refetch_statistics: Optional[Callable[[], object]] = None,
        sort_option: SortOption | str | None = None,
        display_count: DisplayCount | str | None = None,
        on_sort_option_change: Optional[Callable[[SortOption], None]] = None,
        on_display_count_change: Optional[Callable[[DisplayCount], None]] = None,
    ) -> None:
        self._items: tuple[PracticeItem, ...] = tuple(items)
        self.get_statistics = get_statistics
        self.scheduler = scheduler
        self.filter_predicate = filter_predicate
        self.refetch_statistics = refetch_statistics
        self.on_sort_option_change = on_sort_option_change
        self.on_display_count_change = on_display_count_change

        self._sort_option = SortOption.parse(
            settings.DEFAULT_SORT_OPTION if sort_option is None else sort_option
        )
        self._display_count = parse_display_count(
            settings.DEFAULT_DISPLAY_COUNT if display_count is None else display_count
        )
        self._random_seed = 0
        self._captured: Optional[CapturedState] = None
        self._initial_filter: Optional[frozenset[str]] = None
        self._initial_filter_ready = False

        # A restored (persisted) sort preference counts as selecting it.
        if self._sort_option is not SortOption.NONE:
            self._capture(refetch=False)

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------
    @property
    def items(self) -> tuple[PracticeItem, ...]:
        return self._items

    @property
    def sort_option(self) -> SortOption:
        return self._sort_option

    @property
    def display_count(self) -> DisplayCount:
        return self._display_count

    @property
    def random_seed(self) -> int:
        return self._random_seed

    @property
    def captured(self) -> Optional[CapturedState]:
        return self._captured

    @property
    def sort_snapshot(self) -> SortSnapshot:
        return self._captured.sort if self._captured is not None else SortSnapshot()

    @property
    def filter_snapshot(self) -> Optional[FilterSnapshot]:
        return self._captured.filter if self._captured is not None else None

    @property
    def should_show_refresh_button(self) -> bool:
        return self._sort_option is SortOption.RANDOM or self._sort_option.uses_statistics

    @property
    def statistics_map(self) -> dict[str, Statistics]:
        """Live (not snapshotted) statistics for every item."""

        return {item.id: self.get_statistics(item.id) for item in self._items}

    # ------------------------------------------------------------------
    # Derived list
    # ------------------------------------------------------------------
    def _filtered(self) -> list[PracticeItem]:
        if self._captured is not None:
            if self._captured.filter is None:
                return list(self._items)
            return [item for item in self._items if item.id in self._captured.filter]
        if self.filter_predicate is None:
            return list(self._items)
        if not self._initial_filter_ready:
            self._initial_filter = frozenset(
                item.id for item in self._items if self.filter_predicate(item)
            )
            self._initial_filter_ready = True
        return [item for item in self._items if item.id in self._initial_filter]

    @property
    def filtered_items(self) -> list[PracticeItem]:
        """Filtered and sorted items before the display window is applied."""

        return sort_items(
            self._filtered(),
            self._sort_option,
            snapshot=self.sort_snapshot,
            seed=self._random_seed,
        )

    @property
    def visible_items(self) -> list[PracticeItem]:
        return apply_window(self.filtered_items, self._display_count)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def set_items(self, items: Sequence[PracticeItem]) -> None:
        self._items = tuple(items)
        if self._captured is None:
            self._initial_filter = None
            self._initial_filter_ready = False

    def set_filter_predicate(self, predicate: Optional[ItemPredicate]) -> None:
        """Replace the predicate; membership changes at the next capture."""

        self.filter_predicate = predicate

    def _capture(self, *, refetch: bool) -> CapturedState:
        sort_snapshot = SortSnapshot(
            MappingProxyType({item.id: self.get_statistics(item.id) for item in self._items})
        )
        filter_snapshot = None
        if self.filter_predicate is not None:
            filter_snapshot = FilterSnapshot(
                frozenset(item.id for item in self._items if self.filter_predicate(item))
            )
        if self._sort_option is SortOption.RANDOM:
            self._random_seed = self.scheduler.now_ms()
        self._captured = CapturedState(
            sort=sort_snapshot,
            filter=filter_snapshot,
            captured_at_ms=self.scheduler.now_ms(),
        )
        logger.debug(
            "Sort/filter snapshot captured",
            sort=self._sort_option.value,
            items=len(self._items),
            visible=len(filter_snapshot.item_ids) if filter_snapshot is not None else len(self._items),
        )
        if refetch and self.refetch_statistics is not None:
            self.refetch_statistics()
        return self._captured

    def capture(self) -> CapturedState:
        """Re-take both snapshots from the live statistics and predicate."""

        return self._capture(refetch=True)

    def change_sort(self, sort_option: SortOption | str) -> None:
        self._sort_option = SortOption.parse(sort_option)
        self.capture()
        if self.on_sort_option_change is not None:
            self.on_sort_option_change(self._sort_option)

    def refresh(self) -> None:
        self.capture()

    def set_display_count(self, display_count: DisplayCount | str) -> None:
        self._display_count = parse_display_count(display_count)
        if self.on_display_count_change is not None:
            self.on_display_count_change(self._display_count)
