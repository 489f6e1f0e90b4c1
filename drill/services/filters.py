"""Item predicates: mastery exclusion and verb type."""
from __future__ import annotations

from enum import Enum
from typing import Callable, Optional, Sequence

from drill.core.models import PracticeItem, Statistics
from drill.services.statistics import is_mastered
from drill.utils.exceptions import InvalidOptionError

ItemPredicate = Callable[[PracticeItem], bool]
StatisticsLookup = Callable[[str], Statistics]


class VerbTypeFilter(str, Enum):
    ALL = "all"
    REGULAR = "regular"
    IRREGULAR = "irregular"
    REFLEXIVE = "reflexive"

    @classmethod
    def parse(cls, value: "VerbTypeFilter | str") -> "VerbTypeFilter":
        try:
            return cls(value)
        except ValueError as exc:
            raise InvalidOptionError(f"Unknown verb type filter: {value!r}") from exc


def matches_verb_type(item: PracticeItem, verb_type: VerbTypeFilter) -> bool:
    """Reflexive verbs only ever match ``all`` and ``reflexive``."""

    reflexive = bool(item.attributes.get("reflexive", False))
    regular = bool(item.attributes.get("regular", False))
    if verb_type is VerbTypeFilter.REFLEXIVE:
        return reflexive
    if verb_type is VerbTypeFilter.REGULAR:
        return regular and not reflexive
    if verb_type is VerbTypeFilter.IRREGULAR:
        return not regular and not reflexive
    return True


def mastery_predicate(get_statistics: StatisticsLookup, threshold: int) -> ItemPredicate:
    def _not_mastered(item: PracticeItem) -> bool:
        return not is_mastered(get_statistics(item.id), threshold)

    return _not_mastered


def verb_type_predicate(verb_type: VerbTypeFilter) -> ItemPredicate:
    return lambda item: matches_verb_type(item, verb_type)


def combine_predicates(predicates: Sequence[ItemPredicate]) -> Optional[ItemPredicate]:
    """Conjunction of ``predicates``; ``None`` when there is nothing to filter on."""

    active = [predicate for predicate in predicates if predicate is not None]
    if not active:
        return None
    if len(active) == 1:
        return active[0]
    return lambda item: all(predicate(item) for predicate in active)
