"""Value types shared by the practice engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Literal, Mapping, Union

from drill.utils.exceptions import InvalidOptionError


class SortOption(str, Enum):
    """Orderings offered by the practice pages."""

    NONE = "none"
    ALPHABETICAL = "alphabetical"
    RANDOM = "random"
    MOST_ERRORS = "most-errors"
    WORST_PERFORMANCE = "worst-performance"

    @classmethod
    def parse(cls, value: "SortOption | str") -> "SortOption":
        try:
            return cls(value)
        except ValueError as exc:
            raise InvalidOptionError(f"Unknown sort option: {value!r}") from exc

    @property
    def uses_statistics(self) -> bool:
        return self in (SortOption.MOST_ERRORS, SortOption.WORST_PERFORMANCE)


class ValidationMark(str, Enum):
    UNSET = "unset"
    CORRECT = "correct"
    INCORRECT = "incorrect"


DisplayCount = Union[Literal[10, 20, 30], Literal["all"]]
DISPLAY_ALL: Literal["all"] = "all"
DISPLAY_COUNTS: tuple[DisplayCount, ...] = (10, 20, 30, DISPLAY_ALL)


def parse_display_count(value: Any) -> DisplayCount:
    """Coerce ``value`` to a supported display count."""

    if isinstance(value, str) and value.strip().lower() == DISPLAY_ALL:
        return DISPLAY_ALL
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidOptionError(f"Unknown display count: {value!r}") from exc
    if number not in DISPLAY_COUNTS:
        raise InvalidOptionError(f"Unknown display count: {value!r}")
    return number  # type: ignore[return-value]


@dataclass(frozen=True, slots=True)
class Statistics:
    """Aggregate attempt counts for a single item."""

    correct: int = 0
    wrong: int = 0

    @property
    def net_score(self) -> int:
        return self.correct - self.wrong

    def record(self, correct: bool) -> "Statistics":
        if correct:
            return Statistics(correct=self.correct + 1, wrong=self.wrong)
        return Statistics(correct=self.correct, wrong=self.wrong + 1)


EMPTY_STATISTICS = Statistics()


@dataclass(frozen=True, slots=True)
class PracticeItem:
    """An item the learner answers, with one canonical answer per field."""

    id: str
    translation: str
    answers: Mapping[str, str]
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.answers:
            raise InvalidOptionError("A practice item needs at least one answer field", {"id": self.id})
        object.__setattr__(self, "answers", MappingProxyType(dict(self.answers)))
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    def __hash__(self) -> int:
        return hash(self.id)

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(self.answers)

    @property
    def is_multi_field(self) -> bool:
        return len(self.answers) > 1

    def answer_for(self, field_name: str) -> str:
        try:
            return self.answers[field_name]
        except KeyError as exc:
            raise InvalidOptionError(
                f"Item {self.id!r} has no field {field_name!r}", {"fields": list(self.answers)}
            ) from exc


@dataclass(frozen=True, slots=True)
class PracticeKind:
    """A practice page: which record keys hold the answers, in input order."""

    name: str
    fields: tuple[str, ...]


VERBS = PracticeKind("verbs", ("italian",))
NOUNS = PracticeKind("nouns", ("italian", "italianPlural"))
ADJECTIVES = PracticeKind(
    "adjectives",
    ("masculineSingular", "masculinePlural", "feminineSingular", "femininePlural"),
)

PRACTICE_KINDS: dict[str, PracticeKind] = {kind.name: kind for kind in (VERBS, NOUNS, ADJECTIVES)}


def get_kind(name: str) -> PracticeKind:
    try:
        return PRACTICE_KINDS[name]
    except KeyError as exc:
        raise InvalidOptionError(f"Unknown practice kind: {name!r}") from exc
