"""
Aggregation engine: builds a BudgetSummary from fetched records.

Pure and deterministic. All money is summed as Decimal; a record only counts
when its date lies inside the window, whatever the gateway returned.
"""
import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from offshore.domain.category import CategoryRef, category_key
from offshore.domain.records import (
    BudgetRecord, PlannedExpenseRecord, VariableExpenseRecord, IncomeRecord,
)
from offshore.domain.sorting import Segment
from offshore.domain.summary import BudgetSummary, CategorySpending
from offshore.domain.window import DateWindow
from offshore.utils.money import sum_money

logger = logging.getLogger(__name__)


def _in_window(records: Iterable, window: DateWindow, date_attr: str, label: str) -> list:
    kept = []
    dropped = 0
    for record in records:
        if window.contains(getattr(record, date_attr)):
            kept.append(record)
        else:
            dropped += 1
    if dropped:
        logger.debug("Dropped %d %s record(s) outside %s", dropped, label, window.label())
    return kept


def category_breakdown(items: Iterable[Tuple[CategoryRef, Decimal]]) -> Tuple[CategorySpending, ...]:
    """
    Group (category, amount) pairs by category identity.

    Sorted by amount descending, then name, then id, so equal totals always
    come out in the same order.
    """
    buckets: Dict[Optional[int], List] = {}
    for category, amount in items:
        key = category_key(category)
        bucket = buckets.get(key)
        if bucket is None:
            buckets[key] = [category, amount]
        else:
            bucket[1] += amount

    rows = [
        CategorySpending(
            category_id=key,
            name=category.name,
            color=category.color,
            amount=total,
        )
        for key, (category, total) in buckets.items()
    ]
    rows.sort(key=lambda r: (-r.amount, r.name.casefold(), r.category_id is None, r.category_id or 0))
    return tuple(rows)


def summarize(
    budget: BudgetRecord,
    window: DateWindow,
    planned_expenses: Sequence[PlannedExpenseRecord],
    variable_expenses: Sequence[VariableExpenseRecord],
    incomes: Sequence[IncomeRecord],
    selected_segment: Segment = Segment.PLANNED,
) -> BudgetSummary:
    """
    Compute budget totals for ``window``.

    - potential income = sum of planned incomes; actual income = sum of received ones
    - planned spend uses actual_amount; the planned_amount total only feeds
      potential savings
    - potential savings = potential income - planned amounts (variable spend
      has no planned counterpart and is deliberately left out)
    - actual savings = actual income - (planned actuals + variable spend)
    """
    planned = _in_window(planned_expenses, window, "transaction_date", "planned expense")
    variable = _in_window(variable_expenses, window, "transaction_date", "variable expense")
    income = _in_window(incomes, window, "date", "income")

    potential_income = sum_money(i.planned_amount for i in income)
    actual_income = sum_money(i.actual_amount for i in income)

    planned_planned_total = sum_money(e.planned_amount for e in planned)
    planned_actual_total = sum_money(e.actual_amount for e in planned)
    variable_total = sum_money(e.amount for e in variable)

    return BudgetSummary(
        budget_id=budget.id,
        budget_name=budget.display_name,
        period_start=window.start,
        period_end=window.end,
        period_label=window.label(),
        potential_income_total=potential_income,
        actual_income_total=actual_income,
        planned_expenses_planned_total=planned_planned_total,
        planned_expenses_actual_total=planned_actual_total,
        variable_expenses_total=variable_total,
        potential_savings_total=potential_income - planned_planned_total,
        actual_savings_total=actual_income - (planned_actual_total + variable_total),
        planned_category_breakdown=category_breakdown((e.category, e.actual_amount) for e in planned),
        variable_category_breakdown=category_breakdown((e.category, e.amount) for e in variable),
        selected_segment=selected_segment,
    )


def empty_summary(budget: BudgetRecord, window: DateWindow,
                  selected_segment: Segment = Segment.PLANNED) -> BudgetSummary:
    return summarize(budget, window, (), (), (), selected_segment)
