"""
BudgetSummary: derived, never persisted projection of a budget window.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from offshore.domain.sorting import Segment


@dataclass(frozen=True)
class CategorySpending:
    category_id: Optional[int]  # None = uncategorized bucket
    name: str
    color: Optional[str]
    amount: Decimal


@dataclass(frozen=True)
class BudgetSummary:
    budget_id: int
    budget_name: str
    period_start: datetime
    period_end: datetime
    period_label: str

    potential_income_total: Decimal
    actual_income_total: Decimal

    planned_expenses_planned_total: Decimal
    planned_expenses_actual_total: Decimal
    variable_expenses_total: Decimal

    # Budget-as-designed: potential income minus planned amounts (variable spend excluded)
    potential_savings_total: Decimal
    # Realized: actual income minus actual planned spend and variable spend
    actual_savings_total: Decimal

    planned_category_breakdown: Tuple[CategorySpending, ...]
    variable_category_breakdown: Tuple[CategorySpending, ...]

    selected_segment: Segment = Segment.PLANNED

    @property
    def selected_total(self) -> Decimal:
        if self.selected_segment is Segment.VARIABLE:
            return self.variable_expenses_total
        return self.planned_expenses_actual_total

    @property
    def selected_breakdown(self) -> Tuple[CategorySpending, ...]:
        if self.selected_segment is Segment.VARIABLE:
            return self.variable_category_breakdown
        return self.planned_category_breakdown
