"""Practice session orchestration for a single practice page."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence

from loguru import logger

from drill.config import settings
from drill.core.answers import validate
from drill.core.models import (
    DisplayCount,
    PracticeItem,
    PracticeKind,
    SortOption,
    ValidationMark,
)
from drill.core.tasks import BackgroundTasks
from drill.core.timers import AsyncioScheduler, Scheduler, TimerHandle
from drill.schemas.practice import (
    PracticeItemsPayload,
    PracticeItemView,
    PracticeView,
    ResetDialogView,
    StatisticsErrorView,
    StatisticsRead,
)
from drill.services.debounce import AttemptDebouncer
from drill.services.filters import (
    ItemPredicate,
    VerbTypeFilter,
    combine_predicates,
    mastery_predicate,
    verb_type_predicate,
)
from drill.services.notifier import StatisticsErrorNotifier
from drill.services.reset_dialog import ResetDialog
from drill.services.sorting import SortFilterEngine
from drill.services.statistics import StatisticsStore, count_mastered
from drill.utils.exceptions import InvalidOptionError, ItemSourceError

REFRESH_ERROR_MESSAGE = "Failed to refresh statistics."
LOAD_STATISTICS_ERROR_MESSAGE = "Failed to load statistics."
ENTER_KEY = "Enter"


class ItemSource(Protocol):
    """Where practice items come from."""

    async def fetch_items_for_practice(self) -> Mapping[str, Any] | PracticeItemsPayload:  # pragma: no cover
        """Return ``{"items": [...]}`` with flat item records."""


@dataclass(frozen=True, slots=True)
class FocusTarget:
    """Input the presentation layer should focus next."""

    item_id: str
    field: str


FocusCallback = Callable[[FocusTarget], None]


class PracticeSession:
    """Input, validation and statistics workflow for one practice page.

    One instance is created per page visit. It owns the learner's typed text
    and the per-field validation marks, decides when an attempt becomes a
    statistics outcome, and exposes the visible item list through a
    :class:`SortFilterEngine`.

    Statistics calls run as background tasks on the running asyncio loop, so
    handlers that submit, refresh or refetch must be driven from inside that
    loop; otherwise they raise :class:`EventLoopRequiredError`. With
    :class:`AsyncioScheduler` the same holds for deferred focus requests.
    """

    def __init__(
        self,
        kind: PracticeKind,
        items: Sequence[PracticeItem],
        store: StatisticsStore,
        *,
        scheduler: Optional[Scheduler] = None,
        debouncer: Optional[AttemptDebouncer] = None,
        notifier: Optional[StatisticsErrorNotifier] = None,
        exclude_mastered: Optional[bool] = None,
        mastery_threshold: Optional[int] = None,
        verb_type_filter: VerbTypeFilter | str = VerbTypeFilter.ALL,
        extra_filter: Optional[ItemPredicate] = None,
        sort_option: SortOption | str | None = None,
        display_count: DisplayCount | str | None = None,
        on_sort_option_change: Optional[Callable[[SortOption], None]] = None,
        on_display_count_change: Optional[Callable[[DisplayCount], None]] = None,
        on_focus: Optional[FocusCallback] = None,
        on_reset_success: Optional[Callable[[], None]] = None,
    ) -> None:
        self.kind = kind
        self.store = store
        self.scheduler = scheduler or AsyncioScheduler()
        self.debouncer = debouncer or AttemptDebouncer()
        self.notifier = notifier or StatisticsErrorNotifier(self.scheduler)
        self.on_focus = on_focus
        self._focus_timer: Optional[TimerHandle] = None
        self._tasks = BackgroundTasks()

        self.exclude_mastered = (
            settings.DEFAULT_EXCLUDE_MASTERED if exclude_mastered is None else exclude_mastered
        )
        self.mastery_threshold = (
            settings.DEFAULT_MASTERY_THRESHOLD if mastery_threshold is None else mastery_threshold
        )
        self.verb_type_filter = VerbTypeFilter.parse(verb_type_filter)
        self.extra_filter = extra_filter

        self._items_by_id: dict[str, PracticeItem] = {item.id: item for item in items}
        self._inputs: dict[str, dict[str, str]] = {}
        self._marks: dict[str, dict[str, ValidationMark]] = {}

        self.engine = SortFilterEngine(
            items,
            store.get,
            scheduler=self.scheduler,
            filter_predicate=self._build_predicate(),
            refetch_statistics=self._refetch_in_background,
            sort_option=sort_option,
            display_count=display_count,
            on_sort_option_change=on_sort_option_change,
            on_display_count_change=on_display_count_change,
        )
        self.reset_dialog: ResetDialog[PracticeItem] = ResetDialog(
            reset_statistic=self._reset_statistic,
            on_reset_success=on_reset_success,
        )

    @classmethod
    async def load(
        cls,
        kind: PracticeKind,
        source: ItemSource,
        store: StatisticsStore,
        **options: Any,
    ) -> "PracticeSession":
        """Fetch items and statistics, then build a session over them."""

        try:
            raw = await source.fetch_items_for_practice()
            payload = (
                raw if isinstance(raw, PracticeItemsPayload) else PracticeItemsPayload.model_validate(raw)
            )
            items = payload.to_items(kind)
        except ItemSourceError:
            raise
        except Exception as exc:
            logger.error("Failed to fetch practice items", kind=kind.name, error=repr(exc))
            raise ItemSourceError("Failed to fetch practice items", {"kind": kind.name}) from exc

        scheduler = options.pop("scheduler", None) or AsyncioScheduler()
        notifier = options.pop("notifier", None) or StatisticsErrorNotifier(scheduler)
        await notifier.run_guarded(store.refetch, LOAD_STATISTICS_ERROR_MESSAGE)
        logger.info("Practice session loaded", kind=kind.name, items=len(items))
        return cls(kind, items, store, scheduler=scheduler, notifier=notifier, **options)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    @property
    def items(self) -> tuple[PracticeItem, ...]:
        return self.engine.items

    @property
    def visible_items(self) -> list[PracticeItem]:
        return self.engine.visible_items

    def get_item(self, item_id: str) -> Optional[PracticeItem]:
        return self._items_by_id.get(item_id)

    def input_value(self, item_id: str, field: str) -> str:
        return self._inputs.get(item_id, {}).get(field, "")

    def mark(self, item_id: str, field: str) -> ValidationMark:
        return self._marks.get(item_id, {}).get(field, ValidationMark.UNSET)

    def _resolve_field(self, item: PracticeItem, field: Optional[str]) -> str:
        if field is None:
            return item.fields[0]
        if field not in item.answers:
            raise InvalidOptionError(
                f"Item {item.id!r} has no field {field!r}", {"fields": list(item.fields)}
            )
        return field

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------
    def _build_predicate(self) -> Optional[ItemPredicate]:
        predicates: list[ItemPredicate] = []
        if self.verb_type_filter is not VerbTypeFilter.ALL:
            predicates.append(verb_type_predicate(self.verb_type_filter))
        if self.exclude_mastered:
            predicates.append(mastery_predicate(self.store.get, self.mastery_threshold))
        if self.extra_filter is not None:
            predicates.append(self.extra_filter)
        return combine_predicates(predicates)

    def _apply_filters(self) -> None:
        self.engine.set_filter_predicate(self._build_predicate())
        self.on_refresh()

    def set_exclude_mastered(self, exclude: bool) -> None:
        self.exclude_mastered = exclude
        self._apply_filters()

    def set_mastery_threshold(self, threshold: int) -> None:
        self.mastery_threshold = threshold
        self._apply_filters()

    def set_verb_type_filter(self, verb_type: VerbTypeFilter | str) -> None:
        self.verb_type_filter = VerbTypeFilter.parse(verb_type)
        self._apply_filters()

    @property
    def mastered_count(self) -> int:
        return count_mastered(self.items, self.store, self.mastery_threshold)

    # ------------------------------------------------------------------
    # Answer input
    # ------------------------------------------------------------------
    def on_input_change(self, item_id: str, field: Optional[str], text: str) -> None:
        item = self.get_item(item_id)
        if item is None:
            return
        field = self._resolve_field(item, field)
        self._inputs.setdefault(item_id, {})[field] = text
        # An edit invalidates any previous verdict for the field.
        if item_id in self._marks:
            self._marks[item_id][field] = ValidationMark.UNSET

    def on_validate(
        self,
        item_id: str,
        field: Optional[str] = None,
        correct_answer: Optional[str] = None,
    ) -> Optional[bool]:
        """Check the typed answer; returns the verdict or ``None`` when skipped."""

        item = self.get_item(item_id)
        if item is None:
            return None
        field = self._resolve_field(item, field)
        user_input = self.input_value(item_id, field)
        if not user_input.strip():
            return None
        if not self.debouncer.should_validate((item_id, field), self.scheduler.now_ms()):
            return None

        answer = item.answer_for(field) if correct_answer is None else correct_answer
        is_correct = validate(user_input, answer)
        marks = self._marks.setdefault(item_id, {})
        marks[field] = ValidationMark.CORRECT if is_correct else ValidationMark.INCORRECT

        if not item.is_multi_field:
            self._submit_outcome(item_id, is_correct)
            return is_correct

        all_filled = all(self.input_value(item_id, name).strip() for name in item.fields)
        all_marked = all(self.mark(item_id, name) is not ValidationMark.UNSET for name in item.fields)
        if all_filled and all_marked:
            all_correct = all(self.mark(item_id, name) is ValidationMark.CORRECT for name in item.fields)
            self._submit_outcome(item_id, all_correct)
        return is_correct

    def on_clear_input(self, item_id: str, field: Optional[str] = None) -> None:
        item = self.get_item(item_id)
        if item is None:
            return
        if field is None:
            self._inputs[item_id] = {name: "" for name in item.fields}
            self._marks[item_id] = {name: ValidationMark.UNSET for name in item.fields}
            focus_field = item.fields[0]
        else:
            focus_field = self._resolve_field(item, field)
            self._inputs.setdefault(item_id, {})[focus_field] = ""
            self._marks.setdefault(item_id, {})[focus_field] = ValidationMark.UNSET
        self._request_focus_later(FocusTarget(item_id, focus_field))

    def on_show_answer(self, item_id: str) -> None:
        item = self.get_item(item_id)
        if item is None:
            return
        self._inputs[item_id] = dict(item.answers)
        self._marks[item_id] = {name: ValidationMark.CORRECT for name in item.fields}

    def on_key_down(self, key: str, item_id: str, field: Optional[str] = None) -> Optional[FocusTarget]:
        """Handle Enter: validate the field, then move focus forward."""

        if key != ENTER_KEY:
            return None
        item = self.get_item(item_id)
        if item is None:
            return None
        field = self._resolve_field(item, field)
        self.on_validate(item_id, field)

        target = self._next_focus(item, field)
        if target is not None:
            self._request_focus(target)
        return target

    def _next_focus(self, item: PracticeItem, field: str) -> Optional[FocusTarget]:
        position = item.fields.index(field)
        if position < len(item.fields) - 1:
            return FocusTarget(item.id, item.fields[position + 1])
        visible = self.visible_items
        for index, candidate in enumerate(visible):
            if candidate.id == item.id:
                if index + 1 < len(visible):
                    following = visible[index + 1]
                    return FocusTarget(following.id, following.fields[0])
                break
        return None

    def _request_focus(self, target: FocusTarget) -> None:
        if self.on_focus is not None:
            self.on_focus(target)

    def _request_focus_later(self, target: FocusTarget) -> None:
        if self.on_focus is None:
            return
        if self._focus_timer is not None:
            self._focus_timer.cancel()
        self._focus_timer = self.scheduler.call_later(0, lambda: self._fire_focus(target))

    def _fire_focus(self, target: FocusTarget) -> None:
        self._focus_timer = None
        self._request_focus(target)

    def _clear_all_inputs(self) -> None:
        self._inputs.clear()
        self._marks.clear()

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------
    def _submit_outcome(self, item_id: str, correct: bool) -> None:
        logger.debug("Submitting outcome", item_id=item_id, correct=correct)
        self._tasks.spawn(self._submit_and_refetch(item_id, correct), name=f"submit-outcome:{item_id}")

    async def _submit_and_refetch(self, item_id: str, correct: bool) -> None:
        saved = await self.notifier.run_guarded(lambda: self.store.submit_outcome(item_id, correct))
        if saved:
            await self.notifier.run_guarded(self.store.refetch, REFRESH_ERROR_MESSAGE)

    def _refetch_in_background(self) -> None:
        self._tasks.spawn(
            self.notifier.run_guarded(self.store.refetch, REFRESH_ERROR_MESSAGE),
            name="refetch-statistics",
        )

    async def _reset_statistic(self, item_id: str) -> None:
        await self.store.reset(item_id)
        self.debouncer.forget(item_id)

    async def wait_for_pending(self) -> None:
        """Wait for fire-and-forget statistics calls to settle."""

        await self._tasks.wait()

    # ------------------------------------------------------------------
    # Reset dialog
    # ------------------------------------------------------------------
    def open_reset_dialog(self, item_id: str) -> None:
        item = self.get_item(item_id)
        if item is not None:
            self.reset_dialog.open(item)

    def close_reset_dialog(self) -> None:
        self.reset_dialog.close()

    async def confirm_reset(self) -> None:
        await self.reset_dialog.confirm()

    # ------------------------------------------------------------------
    # Sorting and windowing
    # ------------------------------------------------------------------
    def on_sort_change(self, sort_option: SortOption | str) -> None:
        self.engine.change_sort(sort_option)
        self._clear_all_inputs()

    def on_display_count_change(self, display_count: DisplayCount | str) -> None:
        self.engine.set_display_count(display_count)

    def on_refresh(self) -> None:
        self.engine.refresh()
        self._clear_all_inputs()

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------
    def view(self) -> PracticeView:
        filtered = self.engine.filtered_items
        visible = self.engine.visible_items
        dialog = self.reset_dialog.state
        error = self.notifier.error
        return PracticeView(
            kind=self.kind.name,
            items=[
                PracticeItemView(
                    id=item.id,
                    translation=item.translation,
                    fields=list(item.fields),
                    inputs={name: self.input_value(item.id, name) for name in item.fields},
                    marks={name: self.mark(item.id, name).value for name in item.fields},
                    statistics=StatisticsRead(
                        correct=self.store.get(item.id).correct,
                        wrong=self.store.get(item.id).wrong,
                    ),
                )
                for item in visible
            ],
            sort_option=self.engine.sort_option.value,
            display_count=self.engine.display_count,
            should_show_refresh_button=self.engine.should_show_refresh_button,
            displayed_count=len(visible),
            total_count=len(filtered),
            exclude_mastered=self.exclude_mastered,
            mastery_threshold=self.mastery_threshold,
            mastered_count=self.mastered_count,
            reset_dialog=ResetDialogView(
                open=dialog.open,
                item_id=dialog.item_id,
                item_label=dialog.item_label,
                error=dialog.error,
                is_resetting=self.reset_dialog.is_resetting,
            ),
            statistics_error=(
                StatisticsErrorView(message=error.message, timestamp=error.timestamp)
                if error is not None
                else None
            ),
        )

    def close(self) -> None:
        """Tear down timers and in-flight tasks when the page goes away."""

        if self._focus_timer is not None:
            self._focus_timer.cancel()
            self._focus_timer = None
        self.notifier.close()
        self._tasks.cancel()
