"""
Record query gateway: read-only contract between the engine and storage.

Every call is a point-in-time read returning immutable snapshots. Storage
failures are raised as ``FetchError``; callers must never treat a failed read
as an empty result.
"""
from abc import ABC, abstractmethod
from typing import AbstractSet, List

from offshore.domain.records import (
    BudgetRecord, PlannedExpenseRecord, VariableExpenseRecord, IncomeRecord,
)
from offshore.domain.window import DateWindow
from offshore.errors import InvariantViolation


class RecordQueryGateway(ABC):

    @abstractmethod
    def fetch_budget(self, budget_id: int) -> BudgetRecord:
        """
        Load the budget header (name, own dates, attached card ids).

        Raises:
            NotFoundError: the budget does not exist (any more)
            FetchError: storage failure
        """

    @abstractmethod
    def fetch_planned_expenses(self, budget_id: int, window: DateWindow) -> List[PlannedExpenseRecord]:
        """Planned expenses owned by ``budget_id`` dated inside ``window``."""

    @abstractmethod
    def fetch_variable_expenses(self, card_ids: AbstractSet[int], window: DateWindow) -> List[VariableExpenseRecord]:
        """
        Variable expenses charged to any of ``card_ids`` inside ``window``.

        An empty ``card_ids`` must yield ``[]`` (predicate "false"), never an
        unscoped result.
        """

    @abstractmethod
    def fetch_incomes(self, budget_id: int, window: DateWindow) -> List[IncomeRecord]:
        """Income events that count towards ``budget_id`` inside ``window``."""


def require_scoped(card_ids) -> frozenset:
    """
    Guard for variable-expense queries: the card scope must be an explicit set.

    ``None`` means a caller forgot the scope and would query every card;
    that is a programmer error, not an empty result.
    """
    if card_ids is None:
        raise InvariantViolation("variable expense query requires an explicit card scope")
    return frozenset(card_ids)
