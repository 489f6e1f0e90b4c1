"""Tests for the practice session orchestrator."""
from __future__ import annotations

import asyncio

import pytest

from drill.core.models import ADJECTIVES, NOUNS, VERBS, PracticeItem, SortOption, Statistics, ValidationMark
from drill.services.filters import VerbTypeFilter
from drill.services.notifier import DEFAULT_SAVE_ERROR_MESSAGE
from drill.services.practice import FocusTarget, PracticeSession
from drill.services.reset_dialog import RESET_ERROR_MESSAGE
from drill.services.statistics import InMemoryStatisticsBackend, StatisticsStore
from drill.utils.exceptions import EventLoopRequiredError, InvalidOptionError, ItemSourceError

FORMS = ("masculineSingular", "masculinePlural", "feminineSingular", "femininePlural")


def make_session(kind, items, store, scheduler, **kwargs):
    kwargs.setdefault("exclude_mastered", False)
    return PracticeSession(kind, items, store, scheduler=scheduler, **kwargs)


@pytest.mark.asyncio
async def test_single_field_answer_is_submitted_immediately(verbs, store, backend, scheduler):
    session = make_session(VERBS, verbs, store, scheduler)

    session.on_input_change("v1", "italian", " Mangiare ")
    verdict = session.on_validate("v1", "italian", "mangiare")
    await session.wait_for_pending()

    assert verdict is True
    assert session.mark("v1", "italian") is ValidationMark.CORRECT
    assert backend.submissions == [("v1", True)]
    assert store.get("v1") == Statistics(correct=1, wrong=0)


@pytest.mark.asyncio
async def test_wrong_answer_marks_incorrect(verbs, store, backend, scheduler):
    session = make_session(VERBS, verbs, store, scheduler)

    session.on_input_change("v2", None, "stare")
    session.on_validate("v2")
    await session.wait_for_pending()

    assert session.mark("v2", "italian") is ValidationMark.INCORRECT
    assert backend.submissions == [("v2", False)]


@pytest.mark.asyncio
async def test_empty_input_is_not_validated(verbs, store, backend, scheduler):
    session = make_session(VERBS, verbs, store, scheduler)

    session.on_input_change("v1", "italian", "   ")

    assert session.on_validate("v1", "italian") is None
    assert session.mark("v1", "italian") is ValidationMark.UNSET
    assert backend.submissions == []


@pytest.mark.asyncio
async def test_duplicate_validation_within_window_submits_once(verbs, store, backend, scheduler):
    session = make_session(VERBS, verbs, store, scheduler)
    session.on_input_change("v1", "italian", "mangiare")

    session.on_validate("v1", "italian")
    scheduler.advance(99)
    session.on_validate("v1", "italian")
    await session.wait_for_pending()
    assert backend.submissions == [("v1", True)]

    scheduler.advance(1)
    session.on_validate("v1", "italian")
    await session.wait_for_pending()
    assert backend.submissions == [("v1", True), ("v1", True)]


@pytest.mark.asyncio
async def test_edit_resets_mark(verbs, store, scheduler):
    session = make_session(VERBS, verbs, store, scheduler)
    session.on_input_change("v1", "italian", "mangiare")
    session.on_validate("v1", "italian")
    assert session.mark("v1", "italian") is ValidationMark.CORRECT

    session.on_input_change("v1", "italian", "mangiar")

    assert session.mark("v1", "italian") is ValidationMark.UNSET
    assert session.input_value("v1", "italian") == "mangiar"
    await session.wait_for_pending()


@pytest.mark.asyncio
async def test_multi_field_item_submits_once_after_last_field(adjective, store, backend, scheduler):
    session = make_session(ADJECTIVES, [adjective], store, scheduler)
    answers = {"masculineSingular": "bello", "masculinePlural": "belli", "feminineSingular": "bella", "femininePlural": "bello"}

    for name in FORMS[:3]:
        session.on_input_change("a1", name, answers[name])
        session.on_validate("a1", name)
        await session.wait_for_pending()
        assert backend.submissions == []

    session.on_input_change("a1", "femininePlural", answers["femininePlural"])
    session.on_validate("a1", "femininePlural")
    await session.wait_for_pending()

    assert [session.mark("a1", name) for name in FORMS] == [
        ValidationMark.CORRECT,
        ValidationMark.CORRECT,
        ValidationMark.CORRECT,
        ValidationMark.INCORRECT,
    ]
    assert backend.submissions == [("a1", False)]


@pytest.mark.asyncio
async def test_multi_field_item_requires_every_field_validated(adjective, store, backend, scheduler):
    session = make_session(ADJECTIVES, [adjective], store, scheduler)
    for name in FORMS:
        session.on_input_change("a1", name, adjective.answers[name])
    for name in FORMS[:3]:
        session.on_validate("a1", name)

    await session.wait_for_pending()
    assert backend.submissions == []

    session.on_validate("a1", "femininePlural")
    await session.wait_for_pending()
    assert backend.submissions == [("a1", True)]


@pytest.mark.asyncio
async def test_multi_field_edit_blocks_submission_until_revalidated(adjective, store, backend, scheduler):
    session = make_session(ADJECTIVES, [adjective], store, scheduler)
    for name in FORMS[:3]:
        session.on_input_change("a1", name, adjective.answers[name])
        session.on_validate("a1", name)
    session.on_input_change("a1", "masculineSingular", "bel")

    session.on_input_change("a1", "femininePlural", "belle")
    session.on_validate("a1", "femininePlural")
    await session.wait_for_pending()

    assert backend.submissions == []


@pytest.mark.asyncio
async def test_noun_item_with_two_fields(store, backend, scheduler):
    noun = PracticeItem(id="n1", translation="house", answers={"italian": "casa", "italianPlural": "case"})
    session = make_session(NOUNS, [noun], store, scheduler)

    session.on_input_change("n1", "italian", "casa")
    session.on_validate("n1", "italian")
    session.on_input_change("n1", "italianPlural", "case")
    session.on_validate("n1", "italianPlural")
    await session.wait_for_pending()

    assert backend.submissions == [("n1", True)]


@pytest.mark.asyncio
async def test_show_answer_fills_fields_without_submitting(adjective, store, backend, scheduler):
    session = make_session(ADJECTIVES, [adjective], store, scheduler)

    session.on_show_answer("a1")
    await session.wait_for_pending()

    assert {name: session.input_value("a1", name) for name in FORMS} == dict(adjective.answers)
    assert all(session.mark("a1", name) is ValidationMark.CORRECT for name in FORMS)
    assert backend.submissions == []


@pytest.mark.asyncio
async def test_clear_single_field_schedules_focus(adjective, store, scheduler):
    focused: list[FocusTarget] = []
    session = make_session(ADJECTIVES, [adjective], store, scheduler, on_focus=focused.append)
    session.on_show_answer("a1")

    session.on_clear_input("a1", "feminineSingular")

    assert session.input_value("a1", "feminineSingular") == ""
    assert session.mark("a1", "feminineSingular") is ValidationMark.UNSET
    assert session.mark("a1", "masculineSingular") is ValidationMark.CORRECT
    assert focused == []
    scheduler.advance(0)
    assert focused == [FocusTarget("a1", "feminineSingular")]


@pytest.mark.asyncio
async def test_clear_all_fields(adjective, store, scheduler):
    focused: list[FocusTarget] = []
    session = make_session(ADJECTIVES, [adjective], store, scheduler, on_focus=focused.append)
    session.on_show_answer("a1")

    session.on_clear_input("a1")
    scheduler.advance(0)

    assert all(session.input_value("a1", name) == "" for name in FORMS)
    assert all(session.mark("a1", name) is ValidationMark.UNSET for name in FORMS)
    assert focused == [FocusTarget("a1", "masculineSingular")]


@pytest.mark.asyncio
async def test_enter_moves_to_next_field_then_next_item(adjective, store, backend, scheduler):
    second = PracticeItem(
        id="a2",
        translation="ugly",
        answers={"masculineSingular": "brutto", "masculinePlural": "brutti", "feminineSingular": "brutta", "femininePlural": "brutte"},
    )
    focused: list[FocusTarget] = []
    session = make_session(ADJECTIVES, [adjective, second], store, scheduler, on_focus=focused.append)

    session.on_input_change("a1", "masculineSingular", "bello")
    assert session.on_key_down("Enter", "a1", "masculineSingular") == FocusTarget("a1", "masculinePlural")
    assert session.mark("a1", "masculineSingular") is ValidationMark.CORRECT

    assert session.on_key_down("Enter", "a1", "femininePlural") == FocusTarget("a2", "masculineSingular")
    assert session.on_key_down("Enter", "a2", "femininePlural") is None
    assert session.on_key_down("Tab", "a1", "masculineSingular") is None
    assert focused == [FocusTarget("a1", "masculinePlural"), FocusTarget("a2", "masculineSingular")]
    await session.wait_for_pending()


@pytest.mark.asyncio
async def test_enter_on_single_field_item_moves_to_next_visible_item(verbs, store, backend, scheduler):
    session = make_session(VERBS, verbs, store, scheduler)
    session.on_sort_change("alphabetical")
    order = [item.id for item in session.visible_items]

    session.on_input_change(order[0], None, "wrong")
    target = session.on_key_down("Enter", order[0])
    await session.wait_for_pending()

    assert target == FocusTarget(order[1], "italian")
    assert backend.submissions == [(order[0], False)]


@pytest.mark.asyncio
async def test_unknown_item_is_ignored(verbs, store, backend, scheduler):
    session = make_session(VERBS, verbs, store, scheduler)

    session.on_input_change("nope", "italian", "x")
    assert session.on_validate("nope", "italian", "x") is None
    session.on_show_answer("nope")
    session.on_clear_input("nope")
    session.open_reset_dialog("nope")
    await session.confirm_reset()

    assert backend.submissions == []
    assert backend.resets == []
    assert session.reset_dialog.state.open is False


@pytest.mark.asyncio
async def test_unknown_field_is_a_programming_error(verbs, store, scheduler):
    session = make_session(VERBS, verbs, store, scheduler)

    with pytest.raises(InvalidOptionError):
        session.on_input_change("v1", "plural", "x")


@pytest.mark.asyncio
async def test_failed_submission_keeps_local_state_and_shows_error(verbs, failing_backend, scheduler):
    store = StatisticsStore(failing_backend)
    session = make_session(VERBS, verbs, store, scheduler)

    session.on_input_change("v1", "italian", "mangiare")
    session.on_validate("v1", "italian")
    await session.wait_for_pending()

    assert session.mark("v1", "italian") is ValidationMark.CORRECT
    assert session.input_value("v1", "italian") == "mangiare"
    assert session.notifier.error.message == DEFAULT_SAVE_ERROR_MESSAGE

    scheduler.advance(5000)
    assert session.notifier.error is None


@pytest.mark.asyncio
async def test_reset_workflow_through_session(verbs, scheduler):
    backend = InMemoryStatisticsBackend({"v1": Statistics(correct=3, wrong=4)})
    store = StatisticsStore(backend)
    await store.refetch()
    successes = []
    session = make_session(VERBS, verbs, store, scheduler, on_reset_success=lambda: successes.append(True))

    session.open_reset_dialog("v1")
    assert session.reset_dialog.state.item_label == "to eat"
    await session.confirm_reset()

    assert session.reset_dialog.state.open is False
    assert successes == [True]
    assert store.get("v1") == Statistics()
    assert backend.resets == ["v1"]


@pytest.mark.asyncio
async def test_failed_reset_keeps_dialog_open(verbs, failing_backend, scheduler):
    store = StatisticsStore(failing_backend)
    session = make_session(VERBS, verbs, store, scheduler)

    session.open_reset_dialog("v1")
    await session.confirm_reset()

    assert session.reset_dialog.state.open is True
    assert session.reset_dialog.state.error == RESET_ERROR_MESSAGE

    failing_backend.healthy = True
    await session.confirm_reset()
    assert session.reset_dialog.state.open is False

    session.close_reset_dialog()
    assert session.reset_dialog.state.open is False


@pytest.mark.asyncio
async def test_mastered_item_stays_visible_until_refresh(verbs, scheduler):
    backend = InMemoryStatisticsBackend({"v1": Statistics(correct=9, wrong=0)})
    store = StatisticsStore(backend)
    await store.refetch()
    session = make_session(VERBS, verbs, store, scheduler, exclude_mastered=True, mastery_threshold=10)
    assert "v1" in [item.id for item in session.visible_items]

    session.on_input_change("v1", "italian", "mangiare")
    session.on_validate("v1", "italian")
    await session.wait_for_pending()

    assert store.get("v1") == Statistics(correct=10, wrong=0)
    assert session.mastered_count == 1
    assert "v1" in [item.id for item in session.visible_items]

    session.on_refresh()
    await session.wait_for_pending()
    assert "v1" not in [item.id for item in session.visible_items]


@pytest.mark.asyncio
async def test_error_sort_does_not_reorder_mid_session(verbs, store, scheduler):
    session = make_session(VERBS, verbs, store, scheduler, display_count="all")
    session.on_sort_change(SortOption.MOST_ERRORS)
    before = [item.id for item in session.visible_items]

    session.on_input_change("v5", "italian", "wrong")
    session.on_validate("v5", "italian")
    await session.wait_for_pending()

    assert store.get("v5").wrong == 1
    assert [item.id for item in session.visible_items] == before

    session.on_refresh()
    await session.wait_for_pending()
    assert session.visible_items[0].id == "v5"


@pytest.mark.asyncio
async def test_sort_change_and_refresh_clear_inputs(verbs, store, scheduler):
    session = make_session(VERBS, verbs, store, scheduler)
    session.on_input_change("v1", "italian", "mangiare")
    session.on_validate("v1", "italian")

    session.on_sort_change("alphabetical")

    assert session.input_value("v1", "italian") == ""
    assert session.mark("v1", "italian") is ValidationMark.UNSET

    session.on_input_change("v2", "italian", "essere")
    session.on_refresh()
    assert session.input_value("v2", "italian") == ""
    await session.wait_for_pending()


@pytest.mark.asyncio
async def test_verb_type_filter(verbs, store, scheduler):
    session = make_session(VERBS, verbs, store, scheduler, display_count="all")

    session.set_verb_type_filter("reflexive")
    assert [item.id for item in session.visible_items] == ["v3"]

    session.set_verb_type_filter(VerbTypeFilter.REGULAR)
    assert [item.id for item in session.visible_items] == ["v1", "v4"]

    session.set_verb_type_filter("irregular")
    assert [item.id for item in session.visible_items] == ["v2", "v5"]

    session.set_verb_type_filter("all")
    assert len(session.visible_items) == 5
    await session.wait_for_pending()


@pytest.mark.asyncio
async def test_toggling_mastery_exclusion_refreshes_membership(verbs, scheduler):
    backend = InMemoryStatisticsBackend({"v2": Statistics(correct=15, wrong=1)})
    store = StatisticsStore(backend)
    await store.refetch()
    session = make_session(VERBS, verbs, store, scheduler, exclude_mastered=False)
    assert len(session.visible_items) == 5

    session.set_exclude_mastered(True)
    assert "v2" not in [item.id for item in session.visible_items]

    session.set_mastery_threshold(20)
    assert "v2" in [item.id for item in session.visible_items]
    await session.wait_for_pending()


@pytest.mark.asyncio
async def test_view_exposes_presentation_state(verbs, store, scheduler):
    session = make_session(VERBS, verbs, store, scheduler, display_count=10)
    session.on_input_change("v1", "italian", "mangiare")
    session.open_reset_dialog("v2")
    session.notifier.show_error("offline")

    view = session.view()

    assert view.kind == "verbs"
    assert view.displayed_count == 5
    assert view.total_count == 5
    assert view.sort_option == "none"
    assert view.should_show_refresh_button is False
    assert view.items[0].inputs == {"italian": "mangiare"}
    assert view.items[0].marks == {"italian": "unset"}
    assert view.reset_dialog.item_id == "v2"
    assert view.statistics_error.message == "offline"
    assert view.model_dump()["display_count"] == 10


@pytest.mark.asyncio
async def test_load_builds_session_from_item_source(item_source, scheduler):
    source = item_source(
        {
            "items": [
                {"id": "v1", "translation": "to eat", "italian": "mangiare", "regular": True, "reflexive": False},
                {"id": "v2", "translation": "to be", "italian": "essere", "regular": False, "reflexive": False},
            ]
        }
    )
    backend = InMemoryStatisticsBackend({"v2": Statistics(correct=0, wrong=3)})
    store = StatisticsStore(backend)

    session = await PracticeSession.load(VERBS, source, store, scheduler=scheduler, sort_option="most-errors")

    assert [item.id for item in session.visible_items] == ["v2", "v1"]
    assert session.get_item("v1").attributes["regular"] is True
    assert session.notifier.error is None


@pytest.mark.asyncio
async def test_load_wraps_item_source_failures(item_source, store, scheduler):
    with pytest.raises(ItemSourceError):
        await PracticeSession.load(VERBS, item_source(error=ConnectionError("down")), store, scheduler=scheduler)

    with pytest.raises(ItemSourceError):
        await PracticeSession.load(VERBS, item_source({"items": [{"id": "v1"}]}), store, scheduler=scheduler)

    with pytest.raises(ItemSourceError):
        await PracticeSession.load(
            VERBS,
            item_source({"items": [{"id": "v1", "translation": "to eat"}]}),
            store,
            scheduler=scheduler,
        )


@pytest.mark.asyncio
async def test_close_cancels_error_timer(verbs, store, scheduler):
    session = make_session(VERBS, verbs, store, scheduler)
    session.notifier.show_error("offline")

    session.close()

    assert scheduler.pending == 0


class SlowAckBackend(InMemoryStatisticsBackend):
    """Records a submission right away but acknowledges it a few turns later."""

    async def submit_outcome(self, item_id: str, correct: bool) -> None:
        await super().submit_outcome(item_id, correct)
        for _ in range(5):
            await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_refresh_during_submission_counts_outcome_once(verbs, scheduler):
    backend = SlowAckBackend()
    store = StatisticsStore(backend)
    session = make_session(VERBS, verbs, store, scheduler)
    session.on_input_change("v1", "italian", "mangiare")

    session.on_validate("v1", "italian")
    await asyncio.sleep(0)
    session.on_refresh()
    await session.wait_for_pending()

    assert backend.submissions == [("v1", True)]
    assert store.get("v1") == Statistics(correct=1, wrong=0)
    assert session.mastered_count == 0


@pytest.mark.asyncio
async def test_close_cancels_pending_focus_request(verbs, store, scheduler):
    focused: list[FocusTarget] = []
    session = make_session(VERBS, verbs, store, scheduler, on_focus=focused.append)

    session.on_clear_input("v1")
    session.close()
    scheduler.advance(0)

    assert focused == []
    assert scheduler.pending == 0


@pytest.mark.asyncio
async def test_only_latest_focus_request_fires(verbs, store, scheduler):
    focused: list[FocusTarget] = []
    session = make_session(VERBS, verbs, store, scheduler, on_focus=focused.append)

    session.on_clear_input("v1")
    session.on_clear_input("v2")
    scheduler.advance(0)

    assert focused == [FocusTarget("v2", "italian")]


def test_statistics_handlers_need_running_loop(verbs, store, scheduler):
    session = make_session(VERBS, verbs, store, scheduler)
    session.on_input_change("v1", "italian", "mangiare")

    with pytest.raises(EventLoopRequiredError):
        session.on_validate("v1", "italian")
    with pytest.raises(EventLoopRequiredError):
        session.on_refresh()
