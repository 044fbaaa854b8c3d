"""
SQLAlchemy implementation of the record query gateway.

Each call opens its own short-lived session so it is safe to run on a worker
thread; rows are converted to immutable snapshots before the session closes.
"""
import logging
from contextlib import contextmanager
from typing import AbstractSet, List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from offshore.application.gateway import RecordQueryGateway, require_scoped
from offshore.domain.category import category_from_row
from offshore.domain.records import (
    BudgetRecord, PlannedExpenseRecord, VariableExpenseRecord, IncomeRecord,
)
from offshore.domain.window import DateWindow
from offshore.errors import FetchError, NotFoundError
from offshore.infrastructure.db.models import (
    Budget, ExpenseCategory, PlannedExpense, UnplannedExpense, Income, budget_cards,
)

logger = logging.getLogger(__name__)


class SqlRecordQueryGateway(RecordQueryGateway):

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def _session(self, operation: str):
        db: Session = self.session_factory()
        try:
            yield db
        except SQLAlchemyError as exc:
            logger.warning("Gateway %s failed: %s", operation, exc)
            raise FetchError(f"Could not load {operation.replace('_', ' ')}", operation=operation) from exc
        finally:
            db.close()

    def fetch_budget(self, budget_id: int) -> BudgetRecord:
        with self._session("budget") as db:
            budget = db.get(Budget, budget_id)
            if budget is None:
                raise NotFoundError(f"Budget {budget_id} not found")
            card_ids = db.execute(
                select(budget_cards.c.card_id).where(budget_cards.c.budget_id == budget_id)
            ).scalars().all()
            return BudgetRecord(
                id=budget.id,
                name=budget.name,
                start_date=budget.start_date,
                end_date=budget.end_date,
                card_ids=frozenset(card_ids),
            )

    def fetch_planned_expenses(self, budget_id: int, window: DateWindow) -> List[PlannedExpenseRecord]:
        with self._session("planned_expenses") as db:
            rows = db.execute(
                select(PlannedExpense, ExpenseCategory)
                .outerjoin(ExpenseCategory, ExpenseCategory.id == PlannedExpense.category_id)
                .where(
                    PlannedExpense.budget_id == budget_id,
                    PlannedExpense.is_global == False,  # noqa: E712
                    PlannedExpense.transaction_date >= window.start,
                    PlannedExpense.transaction_date <= window.end,
                )
                .order_by(PlannedExpense.transaction_date.desc(), PlannedExpense.id)
            ).all()
            return [
                PlannedExpenseRecord(
                    id=pe.id,
                    budget_id=pe.budget_id,
                    description=pe.description or "",
                    planned_amount=pe.planned_amount,
                    actual_amount=pe.actual_amount,
                    transaction_date=pe.transaction_date,
                    category=category_from_row(cat.id if cat else None,
                                               cat.name if cat else None,
                                               cat.color if cat else None),
                    is_global=pe.is_global,
                    global_template_id=pe.global_template_id,
                )
                for pe, cat in rows
            ]

    def fetch_variable_expenses(self, card_ids: AbstractSet[int], window: DateWindow) -> List[VariableExpenseRecord]:
        card_ids = require_scoped(card_ids)
        if not card_ids:
            return []
        with self._session("variable_expenses") as db:
            rows = db.execute(
                select(UnplannedExpense, ExpenseCategory)
                .outerjoin(ExpenseCategory, ExpenseCategory.id == UnplannedExpense.category_id)
                .where(
                    UnplannedExpense.card_id.in_(sorted(card_ids)),
                    UnplannedExpense.transaction_date >= window.start,
                    UnplannedExpense.transaction_date <= window.end,
                )
                .order_by(UnplannedExpense.transaction_date.desc(), UnplannedExpense.id)
            ).all()
            return [
                VariableExpenseRecord(
                    id=ue.id,
                    card_id=ue.card_id,
                    description=ue.description or "",
                    amount=ue.amount,
                    transaction_date=ue.transaction_date,
                    category=category_from_row(cat.id if cat else None,
                                               cat.name if cat else None,
                                               cat.color if cat else None),
                )
                for ue, cat in rows
            ]

    def fetch_incomes(self, budget_id: int, window: DateWindow) -> List[IncomeRecord]:
        # Incomes are date-scoped only; budget_id is part of the contract
        with self._session("incomes") as db:
            incomes = db.execute(
                select(Income)
                .where(Income.date >= window.start, Income.date <= window.end)
                .order_by(Income.date, Income.id)
            ).scalars().all()
            return [
                IncomeRecord(
                    id=inc.id,
                    source=inc.source,
                    amount=inc.amount,
                    date=inc.date,
                    is_planned=inc.is_planned,
                )
                for inc in incomes
            ]
