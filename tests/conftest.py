"""Pytest fixtures for practice engine tests."""
from __future__ import annotations

import pytest

from drill.core.models import PracticeItem, Statistics
from drill.core.timers import ManualScheduler
from drill.services.statistics import InMemoryStatisticsBackend, StatisticsStore


class FailingStatisticsBackend(InMemoryStatisticsBackend):
    """Backend whose writes fail until ``healthy`` is set."""

    def __init__(self, initial=None) -> None:
        super().__init__(initial)
        self.healthy = False

    async def submit_outcome(self, item_id: str, correct: bool) -> None:
        if not self.healthy:
            raise ConnectionError("statistics backend unavailable")
        await super().submit_outcome(item_id, correct)

    async def reset_statistics(self, item_id: str) -> None:
        if not self.healthy:
            raise ConnectionError("statistics backend unavailable")
        await super().reset_statistics(item_id)


class StubItemSource:
    def __init__(self, payload=None, error: Exception | None = None) -> None:
        self.payload = payload
        self.error = error
        self.calls = 0

    async def fetch_items_for_practice(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.payload


def make_verb(item_id: str, translation: str, italian: str, *, regular=True, reflexive=False) -> PracticeItem:
    return PracticeItem(
        id=item_id,
        translation=translation,
        answers={"italian": italian},
        attributes={"regular": regular, "reflexive": reflexive},
    )


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler(start_ms=1_000_000)


@pytest.fixture()
def verbs() -> list[PracticeItem]:
    return [
        make_verb("v1", "to eat", "mangiare"),
        make_verb("v2", "to be", "essere", regular=False),
        make_verb("v3", "to wash oneself", "lavarsi", reflexive=True),
        make_verb("v4", "to speak", "parlare"),
        make_verb("v5", "to go", "andare", regular=False),
    ]


@pytest.fixture()
def adjective() -> PracticeItem:
    return PracticeItem(
        id="a1",
        translation="beautiful",
        answers={
            "masculineSingular": "bello",
            "masculinePlural": "belli",
            "feminineSingular": "bella",
            "femininePlural": "belle",
        },
    )


@pytest.fixture()
def backend() -> InMemoryStatisticsBackend:
    return InMemoryStatisticsBackend()


@pytest.fixture()
def store(backend) -> StatisticsStore:
    return StatisticsStore(backend)


@pytest.fixture()
def failing_backend() -> FailingStatisticsBackend:
    return FailingStatisticsBackend({"v1": Statistics(correct=1, wrong=0)})


@pytest.fixture()
def item_source():
    return StubItemSource
