"""
Change notifications from the persistence layer.

Every committed transaction that touched budgets, cards, categories,
expenses or incomes is broadcast once, after commit, as a ``ChangeEvent``.
Rolled back work is never announced, so a subscriber that re-reads on an
event always observes the committed state (read-after-write).
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Set

from sqlalchemy import event
from sqlalchemy.orm import Session

from offshore.infrastructure.db.models import (
    Budget, Card, ExpenseCategory, PlannedExpense, UnplannedExpense, Income,
)

logger = logging.getLogger(__name__)

KIND_BUDGET = "budget"
KIND_CARD = "card"
KIND_CATEGORY = "category"
KIND_PLANNED_EXPENSE = "planned_expense"
KIND_UNPLANNED_EXPENSE = "unplanned_expense"
KIND_INCOME = "income"

_MODEL_KINDS = {
    Budget: KIND_BUDGET,
    Card: KIND_CARD,
    ExpenseCategory: KIND_CATEGORY,
    PlannedExpense: KIND_PLANNED_EXPENSE,
    UnplannedExpense: KIND_UNPLANNED_EXPENSE,
    Income: KIND_INCOME,
}

_INFO_KEY = "offshore.pending_changes"


@dataclass(frozen=True)
class ChangeEvent:
    kinds: FrozenSet[str]
    deleted_budget_ids: FrozenSet[int] = field(default_factory=frozenset)


class _Pending:
    def __init__(self):
        self.kinds: Set[str] = set()
        self.deleted_budget_ids: Set[int] = set()

    def freeze(self) -> ChangeEvent:
        return ChangeEvent(kinds=frozenset(self.kinds), deleted_budget_ids=frozenset(self.deleted_budget_ids))


def _pending(session: Session) -> _Pending:
    pending = session.info.get(_INFO_KEY)
    if pending is None:
        pending = _Pending()
        session.info[_INFO_KEY] = pending
    return pending


def record_change(session: Session, kind: str, deleted_budget_id: int | None = None) -> None:
    """
    Mark a change that the ORM unit of work cannot see (bulk delete/update
    statements, association table writes).
    """
    pending = _pending(session)
    pending.kinds.add(kind)
    if deleted_budget_id is not None:
        pending.deleted_budget_ids.add(deleted_budget_id)


class ChangeBroadcaster:
    """
    Fan-out of ``ChangeEvent`` to subscribers.

    ``attach`` wires the broadcaster to a sessionmaker (or Session class);
    ``publish`` can also be called directly, e.g. by tests.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: List[Callable[[ChangeEvent], None]] = []
        self._targets: List[object] = []

    def subscribe(self, callback: Callable[[ChangeEvent], None]) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, change: ChangeEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        logger.debug("Broadcasting change kinds=%s deleted_budgets=%s to %d subscriber(s)",
                     sorted(change.kinds), sorted(change.deleted_budget_ids), len(subscribers))
        for callback in subscribers:
            try:
                callback(change)
            except Exception:
                logger.exception("Change subscriber %r failed", callback)

    # --- SQLAlchemy wiring ---

    def attach(self, target) -> None:
        """Listen to flush/commit/rollback on a sessionmaker or Session class."""
        event.listen(target, "after_flush", self._after_flush)
        event.listen(target, "after_commit", self._after_commit)
        event.listen(target, "after_soft_rollback", self._after_rollback)
        self._targets.append(target)

    def detach(self) -> None:
        for target in self._targets:
            event.remove(target, "after_flush", self._after_flush)
            event.remove(target, "after_commit", self._after_commit)
            event.remove(target, "after_soft_rollback", self._after_rollback)
        self._targets.clear()

    def _after_flush(self, session: Session, flush_context) -> None:
        pending = _pending(session)
        for obj in list(session.new) + list(session.dirty) + list(session.deleted):
            kind = _MODEL_KINDS.get(type(obj))
            if kind is not None:
                pending.kinds.add(kind)
        for obj in session.deleted:
            if isinstance(obj, Budget) and obj.id is not None:
                pending.deleted_budget_ids.add(obj.id)

    def _after_commit(self, session: Session) -> None:
        pending = session.info.pop(_INFO_KEY, None)
        if pending is None or not pending.kinds:
            return
        self.publish(pending.freeze())

    def _after_rollback(self, session: Session, previous_transaction) -> None:
        session.info.pop(_INFO_KEY, None)
