"""
Variable (unplanned) expense use cases
"""
import logging
from datetime import date, datetime

from sqlalchemy.orm import Session

from offshore.application.planned_expenses import (
    UNSET, check_category, clean_amount, clean_date, clean_description,
)
from offshore.errors import NotFoundError
from offshore.infrastructure.db.models import Card, UnplannedExpense

logger = logging.getLogger(__name__)


def _get_expense(db: Session, expense_id: int) -> UnplannedExpense:
    expense = db.get(UnplannedExpense, expense_id)
    if expense is None:
        raise NotFoundError(f"Variable expense {expense_id} not found")
    return expense


def _check_card(db: Session, card_id: int) -> int:
    if db.get(Card, card_id) is None:
        raise NotFoundError(f"Card {card_id} not found")
    return card_id


class CreateUnplannedExpenseUseCase:
    """
    Use case: record a variable expense charged to a card
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(
        self,
        card_id: int,
        description: str,
        amount,
        transaction_date: date | datetime,
        category_id: int | None = None,
    ) -> int:
        expense = UnplannedExpense(
            card_id=_check_card(self.db, card_id),
            description=clean_description(description),
            amount=clean_amount(amount),
            transaction_date=clean_date(transaction_date),
            category_id=check_category(self.db, category_id),
        )
        self.db.add(expense)
        self.db.commit()
        logger.info("Variable expense %s created on card %s", expense.id, card_id)
        return expense.id


class UpdateUnplannedExpenseUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(
        self,
        expense_id: int,
        description: str | None = None,
        amount=None,
        transaction_date: date | datetime | None = None,
        card_id: int | None = None,
        category_id=UNSET,
    ) -> None:
        expense = _get_expense(self.db, expense_id)
        if description is not None:
            expense.description = clean_description(description)
        if amount is not None:
            expense.amount = clean_amount(amount)
        if transaction_date is not None:
            expense.transaction_date = clean_date(transaction_date)
        if card_id is not None:
            expense.card_id = _check_card(self.db, card_id)
        if category_id is not UNSET:
            expense.category_id = check_category(self.db, category_id)
        self.db.commit()


class DeleteUnplannedExpenseUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, expense_id: int) -> None:
        expense = _get_expense(self.db, expense_id)
        self.db.delete(expense)
        self.db.commit()
        logger.info("Variable expense %s deleted", expense_id)
