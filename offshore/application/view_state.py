"""
Budget view-state controller.

One controller per budget holds what a budget details screen shows: the
selected segment, sort mode, search text, active date window, the last
computed summary and the sorted rows.

Callers submit intents; the controller is the only mutator of its state and
runs exclusively on its owner loop. Record fetches run on an executor and
their results are applied back on the owner loop, tagged with a generation
number so a superseded fetch is dropped instead of overwriting newer state.

State machine:
    uninitialized -> loading -> ready
                    loading -> error   (last good summary/rows kept)
    ready/error -> loading on refresh, window, segment, sort or search change
"""
import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple

from offshore.application.aggregation import summarize
from offshore.application.dispatch import OwnerLoop
from offshore.application.gateway import RecordQueryGateway
from offshore.domain.records import (
    BudgetRecord, PlannedExpenseRecord, VariableExpenseRecord, IncomeRecord,
)
from offshore.domain.sorting import Segment, SortMode, filter_records, sort_records
from offshore.domain.summary import BudgetSummary
from offshore.domain.window import DateWindow, normalize_window
from offshore.errors import FetchError, NotFoundError
from offshore.infrastructure.changes import ChangeEvent

logger = logging.getLogger(__name__)

MSG_BUDGET_MISSING = "We couldn't load this budget. It may have been deleted or moved."
MSG_FETCH_FAILED = "We couldn't refresh this budget. Showing the last loaded figures."
MSG_UNEXPECTED = "Something went wrong while loading this budget."


class LoadStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class ViewState:
    """Immutable snapshot published to subscribers."""
    budget_id: int
    status: LoadStatus
    segment: Segment
    sort: SortMode
    search: str = ""
    window: Optional[DateWindow] = None
    budget: Optional[BudgetRecord] = None
    summary: Optional[BudgetSummary] = None
    planned_rows: Tuple[PlannedExpenseRecord, ...] = ()
    variable_rows: Tuple[VariableExpenseRecord, ...] = ()
    error: Optional[str] = None
    generation: int = 0

    @property
    def rows(self) -> Tuple:
        if self.segment is Segment.VARIABLE:
            return self.variable_rows
        return self.planned_rows

    @property
    def placeholder_text(self) -> str:
        if self.status is LoadStatus.ERROR and self.summary is None:
            return self.error or MSG_UNEXPECTED
        if self.status in (LoadStatus.UNINITIALIZED, LoadStatus.LOADING) and self.summary is None:
            return "Loading…"
        return "Budget unavailable." if self.summary is None else ""


# --- intents ---

@dataclass(frozen=True)
class Load:
    pass


@dataclass(frozen=True)
class Refresh:
    reason: str = "manual"


@dataclass(frozen=True)
class SelectSegment:
    segment: Segment


@dataclass(frozen=True)
class ChangeSort:
    sort: SortMode


@dataclass(frozen=True)
class ChangeSearch:
    query: str


@dataclass(frozen=True)
class SetDateWindow:
    start: date | datetime
    end: date | datetime


@dataclass(frozen=True)
class ResetDateWindow:
    pass


@dataclass(frozen=True)
class DataChanged:
    change: Optional[ChangeEvent] = None


@dataclass(frozen=True)
class DismissError:
    pass


@dataclass(frozen=True)
class _FetchResult:
    budget: BudgetRecord
    window: DateWindow
    planned: Tuple[PlannedExpenseRecord, ...]
    variable: Tuple[VariableExpenseRecord, ...]
    incomes: Tuple[IncomeRecord, ...] = ()


Subscriber = Callable[[ViewState], None]
RefreshHook = Callable[[int, Callable[[], None]], None]


def _refresh_now(budget_id: int, trigger: Callable[[], None]) -> None:
    trigger()


class BudgetViewStateController:

    def __init__(
        self,
        budget_id: int,
        gateway: RecordQueryGateway,
        loop: OwnerLoop,
        executor: Executor,
        default_segment: Segment = Segment.PLANNED,
        default_sort: SortMode = SortMode.DATE_NEW_OLD,
        schedule_refresh: RefreshHook | None = None,
    ):
        self.budget_id = budget_id
        self.gateway = gateway
        self.loop = loop
        self.executor = executor
        self._schedule_refresh = schedule_refresh or _refresh_now

        self._did_load = False
        self._closed = False
        self._generation = 0
        self._in_flight: Optional[int] = None
        self._window_override: Optional[DateWindow] = None
        self._data: Optional[_FetchResult] = None

        self._subscribers: List[Subscriber] = []
        self._subscribers_lock = threading.Lock()
        self._state = ViewState(
            budget_id=budget_id,
            status=LoadStatus.UNINITIALIZED,
            segment=default_segment,
            sort=default_sort,
        )

    # --- public API (any thread) ---

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def did_load(self) -> bool:
        return self._did_load

    def subscribe(self, callback: Subscriber, replay: bool = True) -> Callable[[], None]:
        """
        Register for snapshots. With ``replay`` the current snapshot is
        delivered on the next owner tick.
        """
        with self._subscribers_lock:
            self._subscribers.append(callback)
        if replay:
            self.loop.post(self._replay, callback)

        def _unsubscribe() -> None:
            with self._subscribers_lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def submit(self, intent) -> None:
        """Queue an intent; it is handled on the next owner-loop tick."""
        self.loop.post(self._handle, intent)

    def load(self) -> None:
        self.submit(Load())

    def refresh_rows(self, reason: str = "manual") -> None:
        self.submit(Refresh(reason))

    def select_segment(self, segment: Segment) -> None:
        self.submit(SelectSegment(Segment(segment)))

    def change_sort(self, sort: SortMode) -> None:
        self.submit(ChangeSort(SortMode(sort)))

    def change_search(self, query: str) -> None:
        self.submit(ChangeSearch(query or ""))

    def set_date_window(self, start: date | datetime, end: date | datetime) -> None:
        self.submit(SetDateWindow(start, end))

    def reset_date_window_to_budget(self) -> None:
        self.submit(ResetDateWindow())

    def notify_data_changed(self, change: Optional[ChangeEvent] = None) -> None:
        self.submit(DataChanged(change))

    def dismiss_error(self) -> None:
        self.submit(DismissError())

    def close(self) -> None:
        """Stop publishing; any in-flight fetch result is discarded."""
        self.loop.post(self._close)

    def wait_until_settled(self, timeout: float = 10.0) -> ViewState:
        """
        Block until intents queued so far are handled and no fetch is in
        flight, then return the snapshot. Needs a started owner loop; on
        timeout the current (possibly loading) snapshot is returned.
        """
        settled = threading.Event()

        def _watch(state: ViewState) -> None:
            if state.status is not LoadStatus.LOADING:
                settled.set()

        def _arm() -> bool:
            if self._state.status is not LoadStatus.LOADING or self._closed:
                return True
            with self._subscribers_lock:
                self._subscribers.append(_watch)
            return False

        already = self.loop.call(_arm, timeout=timeout)
        if not already and not settled.wait(timeout):
            logger.warning("Budget %s still loading after %.1fs", self.budget_id, timeout)
        with self._subscribers_lock:
            if _watch in self._subscribers:
                self._subscribers.remove(_watch)
        return self._state

    # --- owner loop ---

    def _handle(self, intent) -> None:
        if self._closed:
            logger.debug("Budget %s controller closed, ignoring %r", self.budget_id, intent)
            return
        handler = self._HANDLERS.get(type(intent))
        if handler is None:
            raise TypeError(f"Unknown intent {intent!r}")
        handler(self, intent)

    def _on_load(self, intent: Load) -> None:
        if self._did_load:
            logger.debug("Budget %s load() ignored: already loaded", self.budget_id)
            return
        self._did_load = True
        self._start_fetch("load")

    def _on_refresh(self, intent: Refresh) -> None:
        self._did_load = True
        self._start_fetch(intent.reason)

    def _on_select_segment(self, intent: SelectSegment) -> None:
        if intent.segment is self._state.segment:
            return
        self._rederive(segment=intent.segment)

    def _on_change_sort(self, intent: ChangeSort) -> None:
        if intent.sort is self._state.sort:
            return
        self._rederive(sort=intent.sort)

    def _on_change_search(self, intent: ChangeSearch) -> None:
        if intent.query == self._state.search:
            return
        self._rederive(search=intent.query)

    def _on_set_window(self, intent: SetDateWindow) -> None:
        self._window_override = normalize_window(intent.start, intent.end)
        self._window_changed()

    def _on_reset_window(self, intent: ResetDateWindow) -> None:
        self._window_override = None
        self._window_changed()

    def _window_changed(self) -> None:
        if self._did_load:
            self._start_fetch("window")
        else:
            self._publish(replace(self._state, window=self._window_override))

    def _on_data_changed(self, intent: DataChanged) -> None:
        if not self._did_load:
            return
        change = intent.change
        if change is not None and self.budget_id in change.deleted_budget_ids:
            logger.info("Budget %s was deleted", self.budget_id)
        self._schedule_refresh(self.budget_id, lambda: self.submit(Refresh("data_changed")))

    def _on_dismiss_error(self, intent: DismissError) -> None:
        if self._state.status is not LoadStatus.ERROR:
            return
        status = LoadStatus.READY if self._state.summary is not None else LoadStatus.UNINITIALIZED
        self._publish(replace(self._state, status=status, error=None))

    _HANDLERS = {
        Load: _on_load,
        Refresh: _on_refresh,
        SelectSegment: _on_select_segment,
        ChangeSort: _on_change_sort,
        ChangeSearch: _on_change_search,
        SetDateWindow: _on_set_window,
        ResetDateWindow: _on_reset_window,
        DataChanged: _on_data_changed,
        DismissError: _on_dismiss_error,
    }

    # --- fetch cycle ---

    def _start_fetch(self, reason: str) -> None:
        self._generation += 1
        generation = self._generation
        self._in_flight = generation
        override = self._window_override
        logger.debug("Budget %s fetch #%d started (%s)", self.budget_id, generation, reason)
        self._publish(replace(self._state, status=LoadStatus.LOADING, generation=generation))

        future = self.executor.submit(self._fetch, override)
        future.add_done_callback(lambda f: self.loop.post(self._on_fetch_done, generation, f))

    def _fetch(self, override: Optional[DateWindow]) -> _FetchResult:
        # Worker thread: reads only immutable inputs, never controller state
        budget = self.gateway.fetch_budget(self.budget_id)
        window = override or normalize_window(budget.start_date, budget.end_date)
        planned = self.gateway.fetch_planned_expenses(budget.id, window)
        variable = self.gateway.fetch_variable_expenses(budget.card_ids, window)
        incomes = self.gateway.fetch_incomes(budget.id, window)
        return _FetchResult(
            budget=budget,
            window=window,
            planned=tuple(planned),
            variable=tuple(variable),
            incomes=tuple(incomes),
        )

    def _on_fetch_done(self, generation: int, future: Future) -> None:
        if self._closed or generation != self._generation:
            logger.debug("Budget %s dropping stale fetch #%d (current #%d)",
                         self.budget_id, generation, self._generation)
            return
        self._in_flight = None

        try:
            data = future.result()
        except NotFoundError:
            logger.warning("Budget %s not found", self.budget_id)
            self._fail(MSG_BUDGET_MISSING)
            return
        except FetchError as exc:
            logger.warning("Budget %s fetch #%d failed: %s", self.budget_id, generation, exc)
            self._fail(MSG_FETCH_FAILED)
            return
        except Exception:
            logger.exception("Budget %s fetch #%d crashed", self.budget_id, generation)
            self._fail(MSG_UNEXPECTED)
            return

        try:
            state = self._derive(data, self._state.segment, self._state.sort, self._state.search)
        except Exception:
            logger.exception("Budget %s aggregation failed", self.budget_id)
            self._fail(MSG_UNEXPECTED)
            return

        self._data = data
        self._publish(replace(state, status=LoadStatus.READY, error=None, generation=generation))
        logger.debug("Budget %s fetch #%d applied: planned=%d variable=%d incomes=%d",
                     self.budget_id, generation, len(data.planned), len(data.variable), len(data.incomes))

    def _fail(self, message: str) -> None:
        # Keep the last good summary and rows on screen
        self._publish(replace(self._state, status=LoadStatus.ERROR, error=message))

    def _rederive(self, **changes) -> None:
        segment = changes.get("segment", self._state.segment)
        sort = changes.get("sort", self._state.sort)
        search = changes.get("search", self._state.search)

        if self._data is None:
            self._publish(replace(self._state, segment=segment, sort=sort, search=search))
            return

        settled = LoadStatus.ERROR if self._state.status is LoadStatus.ERROR else LoadStatus.READY
        if self._in_flight is not None:
            settled = LoadStatus.LOADING
        else:
            self._publish(replace(self._state, status=LoadStatus.LOADING,
                                  segment=segment, sort=sort, search=search))
        state = self._derive(self._data, segment, sort, search)
        self._publish(replace(state, status=settled))

    def _derive(self, data: _FetchResult, segment: Segment, sort: SortMode, search: str) -> ViewState:
        summary = summarize(data.budget, data.window, data.planned, data.variable, data.incomes, segment)
        planned_rows = sort_records(filter_records(data.planned, search), sort)
        variable_rows = sort_records(filter_records(data.variable, search, include_category=True), sort)
        return replace(
            self._state,
            segment=segment,
            sort=sort,
            search=search,
            window=data.window,
            budget=data.budget,
            summary=summary,
            planned_rows=tuple(planned_rows),
            variable_rows=tuple(variable_rows),
        )

    # --- publishing ---

    def _publish(self, state: ViewState) -> None:
        self._state = state
        with self._subscribers_lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            self._deliver(callback, state)

    def _replay(self, callback: Subscriber) -> None:
        with self._subscribers_lock:
            still_subscribed = callback in self._subscribers
        if still_subscribed and not self._closed:
            self._deliver(callback, self._state)

    def _deliver(self, callback: Subscriber, state: ViewState) -> None:
        try:
            callback(state)
        except Exception:
            logger.exception("Budget %s subscriber %r failed", self.budget_id, callback)

    def _close(self) -> None:
        self._closed = True
        self._generation += 1
        self._in_flight = None
        with self._subscribers_lock:
            self._subscribers.clear()


def preferred_defaults(preferences) -> Tuple[Segment, SortMode]:
    """Read default segment/sort once from a preferences store (or fall back)."""
    if preferences is None:
        return Segment.PLANNED, SortMode.DATE_NEW_OLD
    return preferences.default_segment(), preferences.default_sort()
