"""
Tests for the view-state registry
"""
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

from sqlalchemy.orm import sessionmaker

from offshore.application.registry import ViewStateRegistry, controller_factory
from offshore.application.view_state import BudgetViewStateController, LoadStatus
from offshore.application.gateway import RecordQueryGateway
from offshore.config import Settings
from offshore.domain.records import BudgetRecord
from offshore.domain.sorting import Segment, SortMode
from offshore.infrastructure.changes import ChangeBroadcaster, ChangeEvent
from offshore.infrastructure.db.session import build_engine
from offshore.infrastructure.preferences import SqlPreferencesStore


class _CountingGateway(RecordQueryGateway):
    def __init__(self):
        self.calls = 0

    def fetch_budget(self, budget_id):
        self.calls += 1
        return BudgetRecord(id=budget_id, name="January", start_date=datetime(2025, 1, 1),
                            end_date=datetime(2025, 1, 31))

    def fetch_planned_expenses(self, budget_id, window):
        return []

    def fetch_variable_expenses(self, card_ids, window):
        return []

    def fetch_incomes(self, budget_id, window):
        return []


def _gateway():
    return _CountingGateway()


class _Prefs:
    def default_sort(self):
        return SortMode.AMOUNT_HIGH_LOW

    def default_segment(self):
        return Segment.VARIABLE


def test_same_id_returns_same_controller(owner_loop, immediate_executor):
    registry = ViewStateRegistry(controller_factory(_gateway(), owner_loop, immediate_executor))
    assert registry.get(10) is registry.get(10)
    assert registry.get(11) is not registry.get(10)
    assert len(registry) == 2
    assert registry.budget_ids() == [10, 11]


def test_concurrent_get_creates_one_instance(owner_loop, immediate_executor):
    created = []
    build = controller_factory(_gateway(), owner_loop, immediate_executor)

    def _slow_factory(budget_id):
        created.append(budget_id)
        return build(budget_id)

    registry = ViewStateRegistry(_slow_factory)
    barrier = threading.Barrier(8)

    def _get(_):
        barrier.wait()
        return registry.get(42)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(_get, range(8)))

    assert created == [42]
    assert all(r is results[0] for r in results)


def test_factory_applies_preferences(owner_loop, immediate_executor):
    registry = ViewStateRegistry(controller_factory(_gateway(), owner_loop, immediate_executor, preferences=_Prefs()))
    state = registry.get(10).state
    assert state.sort is SortMode.AMOUNT_HIGH_LOW
    assert state.segment is Segment.VARIABLE


def test_evict(owner_loop, immediate_executor):
    registry = ViewStateRegistry(controller_factory(_gateway(), owner_loop, immediate_executor))
    first = registry.get(10)
    assert registry.evict(10) is True
    assert 10 not in registry
    assert registry.evict(10) is False
    assert registry.get(10) is not first


def test_change_event_refreshes_and_evicts(owner_loop, immediate_executor):
    gateway = _gateway()
    registry = ViewStateRegistry(controller_factory(gateway, owner_loop, immediate_executor))
    broadcaster = ChangeBroadcaster()
    registry.attach(broadcaster)

    kept = registry.get(10)
    doomed = registry.get(11)
    kept.load()
    owner_loop.drain()
    assert kept.state.status is LoadStatus.READY

    broadcaster.publish(ChangeEvent(kinds=frozenset({"budget"}), deleted_budget_ids=frozenset({11})))
    owner_loop.drain()

    assert 11 not in registry
    assert 10 in registry
    assert gateway.calls == 2
    assert isinstance(doomed, BudgetViewStateController)

    registry.detach()
    broadcaster.publish(ChangeEvent(kinds=frozenset({"income"})))
    owner_loop.drain()
    assert gateway.calls == 2


def test_clear_closes_everything(owner_loop, immediate_executor):
    registry = ViewStateRegistry(controller_factory(_gateway(), owner_loop, immediate_executor))
    controller = registry.get(10)
    registry.clear()
    owner_loop.drain()
    assert len(registry) == 0

    controller.load()
    owner_loop.drain()
    assert controller.state.status is LoadStatus.UNINITIALIZED


def test_defaults_are_read_outside_the_lock(owner_loop, immediate_executor):
    seen = []

    class _LockCheckingPrefs(_Prefs):
        def default_sort(self):
            seen.append(registry._lock.locked())
            return super().default_sort()

    registry = ViewStateRegistry(controller_factory(_gateway(), owner_loop, immediate_executor,
                                                    preferences=_LockCheckingPrefs()))
    assert registry.get(10).state.sort is SortMode.AMOUNT_HIGH_LOW
    assert seen == [False]

    registry.get(10)
    assert seen == [False]


def test_unreadable_preferences_fall_back_to_settings(tmp_path, owner_loop, immediate_executor):
    engine = build_engine(f"sqlite:///{tmp_path / 'no_tables.db'}")
    try:
        prefs = SqlPreferencesStore(sessionmaker(bind=engine), Settings(DEFAULT_SORT="title_az"))
        registry = ViewStateRegistry(controller_factory(_gateway(), owner_loop, immediate_executor,
                                                        preferences=prefs))
        state = registry.get(1).state
    finally:
        engine.dispose()

    assert state.sort is SortMode.TITLE_AZ
    assert state.segment is Segment.PLANNED
