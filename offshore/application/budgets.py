"""
Budget use cases - create, update and delete budgets
"""
import logging
from datetime import date, datetime
from typing import Iterable

from sqlalchemy import delete, insert, select
from sqlalchemy.orm import Session

from offshore.config import get_settings
from offshore.domain.period import BudgetPeriod, DEFAULT_CALENDAR, PeriodCalendar
from offshore.domain.window import start_of_day
from offshore.errors import NotFoundError, ValidationError
from offshore.infrastructure.changes import KIND_BUDGET, KIND_PLANNED_EXPENSE, record_change
from offshore.infrastructure.db.models import Budget, Card, PlannedExpense, budget_cards

logger = logging.getLogger(__name__)


class BudgetValidationError(ValidationError):
    """Budget validation error"""
    pass


def _clean_name(name: str | None) -> str:
    name = (name or "").strip()
    if not name:
        raise BudgetValidationError("Budget name must not be empty")
    if len(name) > 255:
        raise BudgetValidationError("Budget name is too long (max 255 characters)")
    return name


def _clean_dates(start: date | datetime, end: date | datetime) -> tuple[datetime, datetime]:
    if start is None or end is None:
        raise BudgetValidationError("Budget needs both a start and an end date")
    start, end = start_of_day(start), start_of_day(end)
    if start > end:
        raise BudgetValidationError("Budget start date must not be after its end date")
    return start, end


def _load_cards(db: Session, card_ids: Iterable[int]) -> set[int]:
    wanted = set(card_ids)
    if not wanted:
        return set()
    found = set(db.scalars(select(Card.id).where(Card.id.in_(wanted))).all())
    missing = wanted - found
    if missing:
        raise NotFoundError(f"Card(s) not found: {sorted(missing)}")
    return found


def _parse_recurrence(raw: BudgetPeriod | str) -> BudgetPeriod:
    if isinstance(raw, BudgetPeriod):
        period = raw
    else:
        key = str(raw).strip().lower().replace("-", "").replace("_", "")
        try:
            period = BudgetPeriod(key)
        except ValueError:
            raise BudgetValidationError(f"Unknown recurrence type: {raw}")
    if period is BudgetPeriod.CUSTOM:
        raise BudgetValidationError("A custom budget cannot recur")
    return period


def budget_dates_for(period: BudgetPeriod, ref: date | datetime,
                     cal: PeriodCalendar = DEFAULT_CALENDAR) -> tuple[datetime, datetime]:
    """Calendar dates (both at 00:00) of the period containing ``ref``."""
    start, end = cal.range_containing(period, ref)
    return start, start_of_day(end)


class CreateBudgetUseCase:
    """
    Use case: create a budget and attach cards to it
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(
        self,
        name: str,
        start_date: date | datetime,
        end_date: date | datetime,
        card_ids: Iterable[int] = (),
        recurrence_type: BudgetPeriod | str | None = None,
    ) -> int:
        """
        Create a budget

        Args:
            name: display name (non-empty)
            start_date / end_date: inclusive calendar dates, start <= end
            card_ids: cards whose variable expenses count towards the budget
            recurrence_type: repeating period kind, None for a one-off budget

        Returns:
            budget_id
        """
        name = _clean_name(name)
        start, end = _clean_dates(start_date, end_date)
        cards = _load_cards(self.db, card_ids)

        recurrence = _parse_recurrence(recurrence_type) if recurrence_type else None

        budget = Budget(
            name=name,
            start_date=start,
            end_date=end,
            is_recurring=recurrence is not None,
            recurrence_type=recurrence.value if recurrence else None,
        )
        self.db.add(budget)
        self.db.flush()

        if cards:
            self.db.execute(insert(budget_cards), [{"budget_id": budget.id, "card_id": c} for c in sorted(cards)])

        self.db.commit()
        logger.info("Budget %s created (%s .. %s, %d card(s))", budget.id, start.date(), end.date(), len(cards))
        return budget.id


class CreatePeriodBudgetUseCase:
    """
    Use case: create a recurring budget covering the period that contains a date

    Week-based periods start on Settings.WEEK_STARTS_ON unless a calendar is given.
    """

    def __init__(self, db: Session, calendar: PeriodCalendar | None = None):
        self.db = db
        self.calendar = calendar or PeriodCalendar(first_weekday=get_settings().WEEK_STARTS_ON)

    def execute(
        self,
        period: BudgetPeriod | str,
        ref: date | datetime,
        card_ids: Iterable[int] = (),
        name: str | None = None,
    ) -> int:
        period = _parse_recurrence(period)
        start, end = budget_dates_for(period, ref, self.calendar)
        if not name:
            name = self.calendar.title(period, start)
        return CreateBudgetUseCase(self.db).execute(name, start, end, card_ids, recurrence_type=period)


class UpdateBudgetUseCase:
    """
    Use case: rename / re-date a budget or replace its card set

    Arguments left as None are not changed.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(
        self,
        budget_id: int,
        name: str | None = None,
        start_date: date | datetime | None = None,
        end_date: date | datetime | None = None,
        card_ids: Iterable[int] | None = None,
    ) -> None:
        budget = self.db.get(Budget, budget_id)
        if budget is None:
            raise NotFoundError(f"Budget {budget_id} not found")

        if name is not None:
            budget.name = _clean_name(name)
        if start_date is not None or end_date is not None:
            budget.start_date, budget.end_date = _clean_dates(
                start_date if start_date is not None else budget.start_date,
                end_date if end_date is not None else budget.end_date,
            )

        if card_ids is not None:
            cards = _load_cards(self.db, card_ids)
            self.db.execute(delete(budget_cards).where(budget_cards.c.budget_id == budget_id))
            if cards:
                self.db.execute(insert(budget_cards), [{"budget_id": budget_id, "card_id": c} for c in sorted(cards)])
            record_change(self.db, KIND_BUDGET)

        self.db.commit()
        logger.info("Budget %s updated", budget_id)


class DeleteBudgetUseCase:
    """
    Use case: delete a budget together with its planned expenses and card links

    Everything happens in one transaction: observers either see the budget
    with all its children or nothing at all.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, budget_id: int) -> None:
        budget = self.db.get(Budget, budget_id)
        if budget is None:
            raise NotFoundError(f"Budget {budget_id} not found")

        try:
            removed = self.db.execute(
                delete(PlannedExpense).where(PlannedExpense.budget_id == budget_id)
            ).rowcount
            self.db.execute(delete(budget_cards).where(budget_cards.c.budget_id == budget_id))
            self.db.delete(budget)
            record_change(self.db, KIND_PLANNED_EXPENSE)
            record_change(self.db, KIND_BUDGET, deleted_budget_id=budget_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Budget %s deleted with %d planned expense(s)", budget_id, removed)
