"""
Expense category use cases
"""
import logging
import re

from sqlalchemy import update
from sqlalchemy.orm import Session

from offshore.errors import NotFoundError, ValidationError
from offshore.infrastructure.changes import KIND_PLANNED_EXPENSE, KIND_UNPLANNED_EXPENSE, record_change
from offshore.infrastructure.db.models import ExpenseCategory, PlannedExpense, UnplannedExpense

logger = logging.getLogger(__name__)

_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


class CategoryValidationError(ValidationError):
    """Category validation error"""
    pass


def _clean(name: str | None, color: str | None) -> tuple[str, str | None]:
    name = (name or "").strip()
    if not name:
        raise CategoryValidationError("Category name must not be empty")
    if color is not None:
        color = color.strip() or None
    if color is not None and not _COLOR_RE.match(color):
        raise CategoryValidationError(f"Invalid color «{color}», expected #RRGGBB")
    return name, color.upper() if color else None


class CreateCategoryUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, name: str, color: str | None = None) -> int:
        name, color = _clean(name, color)
        category = ExpenseCategory(name=name, color=color)
        self.db.add(category)
        self.db.commit()
        logger.info("Category %s created", category.id)
        return category.id


class UpdateCategoryUseCase:
    def __init__(self, db: Session):
        self.db = db

    def execute(self, category_id: int, name: str, color: str | None = None) -> None:
        category = self.db.get(ExpenseCategory, category_id)
        if category is None:
            raise NotFoundError(f"Category {category_id} not found")
        category.name, category.color = _clean(name, color)
        self.db.commit()


class DeleteCategoryUseCase:
    """
    Use case: delete a category; its expenses become uncategorized
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, category_id: int) -> None:
        category = self.db.get(ExpenseCategory, category_id)
        if category is None:
            raise NotFoundError(f"Category {category_id} not found")
        try:
            self.db.execute(
                update(PlannedExpense).where(PlannedExpense.category_id == category_id).values(category_id=None)
            )
            self.db.execute(
                update(UnplannedExpense).where(UnplannedExpense.category_id == category_id).values(category_id=None)
            )
            self.db.delete(category)
            record_change(self.db, KIND_PLANNED_EXPENSE)
            record_change(self.db, KIND_UNPLANNED_EXPENSE)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Category %s deleted", category_id)
