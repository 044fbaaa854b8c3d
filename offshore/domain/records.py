"""
Immutable record snapshots handed out by the record query gateway.

Snapshots are detached from any ORM session so they can be produced on a
worker thread and consumed on the controller's owner thread.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import FrozenSet, Optional

from offshore.domain.category import CategoryRef, UNCATEGORIZED

_ZERO = Decimal("0")


@dataclass(frozen=True)
class BudgetRecord:
    id: int
    name: str
    start_date: datetime
    end_date: datetime
    card_ids: FrozenSet[int] = field(default_factory=frozenset)

    @property
    def display_name(self) -> str:
        return self.name or "Untitled"


@dataclass(frozen=True)
class PlannedExpenseRecord:
    id: int
    budget_id: int
    description: str
    planned_amount: Decimal
    actual_amount: Decimal
    transaction_date: datetime
    category: CategoryRef = UNCATEGORIZED
    is_global: bool = False
    global_template_id: Optional[int] = None

    @property
    def sort_amount(self) -> Decimal:
        return self.planned_amount


@dataclass(frozen=True)
class VariableExpenseRecord:
    id: int
    card_id: int
    description: str
    amount: Decimal
    transaction_date: datetime
    category: CategoryRef = UNCATEGORIZED

    @property
    def sort_amount(self) -> Decimal:
        return self.amount


@dataclass(frozen=True)
class IncomeRecord:
    """
    Income event. A planned income counts towards the potential total, a
    received one towards the actual total.
    """
    id: int
    source: str
    amount: Decimal
    date: datetime
    is_planned: bool

    @property
    def planned_amount(self) -> Decimal:
        return self.amount if self.is_planned else _ZERO

    @property
    def actual_amount(self) -> Decimal:
        return _ZERO if self.is_planned else self.amount
