"""
View-state registry: at most one live controller per budget id.

Concurrent ``get`` calls for the same id return the same instance. The
registry also bridges persistence change notifications to its controllers
and evicts controllers whose budget was deleted.
"""
import logging
import threading
from concurrent.futures import Executor
from typing import Callable, Dict, List, Optional, Tuple

from offshore.application.dispatch import OwnerLoop
from offshore.application.gateway import RecordQueryGateway
from offshore.application.view_state import BudgetViewStateController, RefreshHook, preferred_defaults
from offshore.domain.sorting import Segment, SortMode
from offshore.infrastructure.changes import ChangeBroadcaster, ChangeEvent

logger = logging.getLogger(__name__)

Defaults = Tuple[Segment, SortMode]


class ControllerFactory:
    """
    Builds controllers that share one gateway, loop and executor.

    Reading the preferred defaults (``defaults``) may hit storage; ``build``
    only wires objects together.
    """

    def __init__(
        self,
        gateway: RecordQueryGateway,
        loop: OwnerLoop,
        executor: Executor,
        preferences=None,
        schedule_refresh: RefreshHook | None = None,
    ):
        self.gateway = gateway
        self.loop = loop
        self.executor = executor
        self.preferences = preferences
        self.schedule_refresh = schedule_refresh

    def defaults(self) -> Defaults:
        return preferred_defaults(self.preferences)

    def build(self, budget_id: int, defaults: Defaults) -> BudgetViewStateController:
        segment, sort = defaults
        return BudgetViewStateController(
            budget_id,
            gateway=self.gateway,
            loop=self.loop,
            executor=self.executor,
            default_segment=segment,
            default_sort=sort,
            schedule_refresh=self.schedule_refresh,
        )

    def __call__(self, budget_id: int) -> BudgetViewStateController:
        return self.build(budget_id, self.defaults())


def controller_factory(
    gateway: RecordQueryGateway,
    loop: OwnerLoop,
    executor: Executor,
    preferences=None,
    schedule_refresh: RefreshHook | None = None,
) -> ControllerFactory:
    return ControllerFactory(gateway, loop, executor, preferences, schedule_refresh)


class ViewStateRegistry:

    def __init__(self, factory: ControllerFactory | Callable[[int], BudgetViewStateController]):
        self.factory = factory
        self._lock = threading.Lock()
        self._controllers: Dict[int, BudgetViewStateController] = {}
        self._unsubscribe: Optional[Callable[[], None]] = None

    def get(self, budget_id: int) -> BudgetViewStateController:
        """
        Return the controller for ``budget_id``, creating it on first use.

        Stored defaults are read before the lock is taken; only the map lookup
        and the construction itself run under it.
        """
        with self._lock:
            controller = self._controllers.get(budget_id)
        if controller is not None:
            return controller

        defaults = self.factory.defaults() if isinstance(self.factory, ControllerFactory) else None
        with self._lock:
            controller = self._controllers.get(budget_id)
            if controller is None:
                if defaults is None:
                    controller = self.factory(budget_id)
                else:
                    controller = self.factory.build(budget_id, defaults)
                self._controllers[budget_id] = controller
                logger.debug("Created view-state controller for budget %s", budget_id)
            return controller

    def evict(self, budget_id: int) -> bool:
        """Drop and close the controller; returns False when none existed."""
        with self._lock:
            controller = self._controllers.pop(budget_id, None)
        if controller is None:
            return False
        controller.close()
        logger.debug("Evicted view-state controller for budget %s", budget_id)
        return True

    def clear(self) -> None:
        with self._lock:
            controllers = list(self._controllers.values())
            self._controllers.clear()
        for controller in controllers:
            controller.close()

    def budget_ids(self) -> List[int]:
        with self._lock:
            return sorted(self._controllers)

    def __contains__(self, budget_id: int) -> bool:
        with self._lock:
            return budget_id in self._controllers

    def __len__(self) -> int:
        with self._lock:
            return len(self._controllers)

    # --- change notifications ---

    def attach(self, broadcaster: ChangeBroadcaster) -> None:
        self.detach()
        self._unsubscribe = broadcaster.subscribe(self.on_change)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_change(self, change: ChangeEvent) -> None:
        """Evict deleted budgets, then tell every live controller to refresh."""
        for budget_id in change.deleted_budget_ids:
            self.evict(budget_id)
        with self._lock:
            controllers = list(self._controllers.values())
        for controller in controllers:
            controller.notify_data_changed(change)
