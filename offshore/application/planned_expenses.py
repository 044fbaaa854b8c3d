"""
Planned expense use cases, including global presets

A preset (``is_global=True``, no budget) is a template; instantiating it into
a budget creates a normal planned expense that remembers its template through
``global_template_id``. Presets never show up in a budget's own rows.
"""
import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from offshore.domain.window import start_of_day
from offshore.errors import NotFoundError, ValidationError
from offshore.infrastructure.changes import KIND_PLANNED_EXPENSE, record_change
from offshore.infrastructure.db.models import Budget, ExpenseCategory, PlannedExpense
from offshore.utils.validation import parse_amount

logger = logging.getLogger(__name__)

UNSET = object()


class ExpenseValidationError(ValidationError):
    """Expense validation error"""
    pass


def clean_description(description: str | None) -> str:
    description = (description or "").strip()
    if len(description) > 255:
        raise ExpenseValidationError("Description is too long (max 255 characters)")
    return description


def clean_amount(value, field: str = "Amount") -> Decimal:
    if value is None or value == "":
        raise ExpenseValidationError(f"{field} is required")
    try:
        amount = parse_amount(value)
    except ValueError as exc:
        raise ExpenseValidationError(f"{field}: {exc}") from exc
    if amount < 0:
        raise ExpenseValidationError(f"{field} must not be negative")
    return amount


def clean_date(value: date | datetime | None) -> datetime:
    if value is None:
        raise ExpenseValidationError("Transaction date is required")
    if isinstance(value, datetime):
        return value
    return start_of_day(value)


def check_category(db: Session, category_id: int | None) -> int | None:
    if category_id is not None and db.get(ExpenseCategory, category_id) is None:
        raise NotFoundError(f"Category {category_id} not found")
    return category_id


def _get_expense(db: Session, expense_id: int) -> PlannedExpense:
    expense = db.get(PlannedExpense, expense_id)
    if expense is None or expense.is_global:
        raise NotFoundError(f"Planned expense {expense_id} not found")
    return expense


def _get_preset(db: Session, template_id: int) -> PlannedExpense:
    preset = db.get(PlannedExpense, template_id)
    if preset is None or not preset.is_global:
        raise NotFoundError(f"Preset {template_id} not found")
    return preset


def _get_budget(db: Session, budget_id: int) -> Budget:
    budget = db.get(Budget, budget_id)
    if budget is None:
        raise NotFoundError(f"Budget {budget_id} not found")
    return budget


class CreatePlannedExpenseUseCase:
    """
    Use case: add a planned expense to a budget
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(
        self,
        budget_id: int,
        description: str,
        planned_amount,
        transaction_date: date | datetime,
        actual_amount="0",
        category_id: int | None = None,
    ) -> int:
        """
        Args:
            planned_amount / actual_amount: str, int or Decimal, at most 2 decimals, >= 0
            transaction_date: date the expense is due

        Returns:
            expense_id
        """
        _get_budget(self.db, budget_id)
        expense = PlannedExpense(
            budget_id=budget_id,
            description=clean_description(description),
            planned_amount=clean_amount(planned_amount, "Planned amount"),
            actual_amount=clean_amount(actual_amount, "Actual amount"),
            transaction_date=clean_date(transaction_date),
            category_id=check_category(self.db, category_id),
        )
        self.db.add(expense)
        self.db.commit()
        logger.info("Planned expense %s created in budget %s", expense.id, budget_id)
        return expense.id


class UpdatePlannedExpenseUseCase:
    """
    Use case: edit a planned expense. Arguments left out are not changed;
    pass ``category_id=None`` to make it uncategorized.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(
        self,
        expense_id: int,
        description: str | None = None,
        planned_amount=None,
        actual_amount=None,
        transaction_date: date | datetime | None = None,
        category_id=UNSET,
    ) -> None:
        expense = _get_expense(self.db, expense_id)
        if description is not None:
            expense.description = clean_description(description)
        if planned_amount is not None:
            expense.planned_amount = clean_amount(planned_amount, "Planned amount")
        if actual_amount is not None:
            expense.actual_amount = clean_amount(actual_amount, "Actual amount")
        if transaction_date is not None:
            expense.transaction_date = clean_date(transaction_date)
        if category_id is not UNSET:
            expense.category_id = check_category(self.db, category_id)
        self.db.commit()


class AdjustActualAmountUseCase:
    """
    Use case: add (or subtract) spending to a planned expense's actual amount
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, expense_id: int, delta) -> Decimal:
        expense = _get_expense(self.db, expense_id)
        try:
            change = parse_amount(delta)
        except ValueError as exc:
            raise ExpenseValidationError(f"Adjustment: {exc}") from exc
        new_amount = Decimal(expense.actual_amount) + change
        if new_amount < 0:
            raise ExpenseValidationError("Actual amount must not become negative")
        expense.actual_amount = new_amount
        self.db.commit()
        logger.info("Planned expense %s actual amount adjusted by %s", expense_id, change)
        return new_amount


class DeletePlannedExpenseUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, expense_id: int) -> None:
        expense = _get_expense(self.db, expense_id)
        self.db.delete(expense)
        self.db.commit()
        logger.info("Planned expense %s deleted", expense_id)


class CreatePresetUseCase:
    """
    Use case: create a global planned-expense preset (not tied to a budget)
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(
        self,
        description: str,
        planned_amount,
        category_id: int | None = None,
        transaction_date: date | datetime | None = None,
    ) -> int:
        description = clean_description(description)
        if not description:
            raise ExpenseValidationError("Preset needs a description")
        preset = PlannedExpense(
            budget_id=None,
            description=description,
            planned_amount=clean_amount(planned_amount, "Planned amount"),
            actual_amount=Decimal("0"),
            transaction_date=clean_date(transaction_date or datetime.now()),
            category_id=check_category(self.db, category_id),
            is_global=True,
        )
        self.db.add(preset)
        self.db.commit()
        logger.info("Preset %s created", preset.id)
        return preset.id


class InstantiatePresetUseCase:
    """
    Use case: copy a preset into a budget

    Idempotent per budget: when the budget already holds an instance of the
    preset, that instance's id is returned and nothing is written.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, template_id: int, budget_id: int,
                transaction_date: date | datetime | None = None) -> int:
        preset = _get_preset(self.db, template_id)
        budget = _get_budget(self.db, budget_id)

        existing = self.db.scalars(
            select(PlannedExpense.id).where(
                PlannedExpense.budget_id == budget_id,
                PlannedExpense.global_template_id == template_id,
            )
        ).first()
        if existing is not None:
            return existing

        child = PlannedExpense(
            budget_id=budget_id,
            description=preset.description,
            planned_amount=preset.planned_amount,
            actual_amount=Decimal("0"),
            transaction_date=clean_date(transaction_date or budget.start_date),
            category_id=preset.category_id,
            is_global=False,
            global_template_id=template_id,
        )
        self.db.add(child)
        self.db.commit()
        logger.info("Preset %s instantiated into budget %s as %s", template_id, budget_id, child.id)
        return child.id


class DeletePresetUseCase:
    """
    Use case: delete a preset and every instance created from it (one transaction)
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, template_id: int) -> int:
        preset = _get_preset(self.db, template_id)
        try:
            removed = self.db.execute(
                delete(PlannedExpense).where(PlannedExpense.global_template_id == template_id)
            ).rowcount
            self.db.delete(preset)
            record_change(self.db, KIND_PLANNED_EXPENSE)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Preset %s deleted with %d instance(s)", template_id, removed)
        return removed
