"""
Income use cases

An income is either planned (expected) or actual (received); it counts
towards every budget whose window contains its date.

Recurring incomes are materialized as a series when created: the first
occurrence keeps the recurrence, later occurrences point at it through
``parent_id``. Without an explicit end date a series runs for one year.
"""
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from offshore.domain.period import BudgetPeriod, DEFAULT_CALENDAR, PeriodCalendar, add_months
from offshore.domain.window import start_of_day
from offshore.errors import NotFoundError, ValidationError
from offshore.infrastructure.db.models import Income
from offshore.utils.validation import parse_amount

logger = logging.getLogger(__name__)

MAX_SERIES_LENGTH = 1000


class IncomeValidationError(ValidationError):
    """Income validation error"""
    pass


class SeriesScope(str, Enum):
    """Which occurrences of a recurring income an edit or delete touches"""
    INSTANCE = "instance"
    FUTURE = "future"
    ALL = "all"


def _clean_source(source: str | None) -> str:
    source = (source or "").strip()
    if not source:
        raise IncomeValidationError("Income source must not be empty")
    if len(source) > 255:
        raise IncomeValidationError("Income source is too long (max 255 characters)")
    return source


def _clean_amount(value) -> Decimal:
    try:
        amount = parse_amount(value)
    except (ValueError, TypeError) as exc:
        raise IncomeValidationError(f"Amount: {exc}") from exc
    if amount <= 0:
        raise IncomeValidationError("Income amount must be greater than zero")
    return amount


def _clean_date(value: date | datetime | None) -> datetime:
    if value is None:
        raise IncomeValidationError("Income date is required")
    return value if isinstance(value, datetime) else start_of_day(value)


def _clean_recurrence(raw: BudgetPeriod | str | None) -> BudgetPeriod | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, BudgetPeriod):
        period = raw
    else:
        key = str(raw).strip().lower().replace("-", "").replace("_", "")
        try:
            period = BudgetPeriod(key)
        except ValueError:
            raise IncomeValidationError(f"Unknown recurrence: {raw}")
    if period is BudgetPeriod.CUSTOM:
        raise IncomeValidationError("Income recurrence must be a fixed period")
    return period


def _get_income(db: Session, income_id: int) -> Income:
    income = db.get(Income, income_id)
    if income is None:
        raise NotFoundError(f"Income {income_id} not found")
    return income


def series_dates(
    period: BudgetPeriod,
    first: datetime,
    until: datetime,
    calendar: PeriodCalendar = DEFAULT_CALENDAR,
) -> list[datetime]:
    """
    Occurrence dates from ``first`` through ``until`` (inclusive, by day).

    Each date is computed from ``first`` rather than from the previous
    occurrence, so a series on the 31st stays on month ends.
    """
    last_day = start_of_day(until)
    dates = []
    step = 0
    while True:
        current = calendar.advance(period, first, step)
        if start_of_day(current) > last_day:
            break
        dates.append(current)
        if len(dates) > MAX_SERIES_LENGTH:
            raise IncomeValidationError(f"Recurring income would create more than {MAX_SERIES_LENGTH} entries")
        step += 1
    return dates


def _series(db: Session, income: Income) -> list[Income]:
    """Every occurrence of the series ``income`` belongs to, ordered by date."""
    series_id = income.parent_id or income.id
    return list(db.scalars(
        select(Income)
        .where(or_(Income.id == series_id, Income.parent_id == series_id))
        .order_by(Income.date, Income.id)
    ).all())


class CreateIncomeUseCase:
    """
    Use case: record an income, optionally as a recurring series
    """

    def __init__(self, db: Session, calendar: PeriodCalendar = DEFAULT_CALENDAR):
        self.db = db
        self.calendar = calendar

    def execute(
        self,
        source: str,
        amount,
        income_date: date | datetime,
        is_planned: bool = False,
        recurrence: BudgetPeriod | str | None = None,
        recurrence_end_date: date | datetime | None = None,
    ) -> int:
        """
        Create an income

        Args:
            recurrence: repeating period (daily ... yearly), None for a one-off income
            recurrence_end_date: last day of the series; one year after the
                first occurrence when omitted

        Returns:
            id of the (first) income
        """
        source = _clean_source(source)
        amount = _clean_amount(amount)
        first = _clean_date(income_date)
        period = _clean_recurrence(recurrence)

        end = None
        if period is not None:
            end = start_of_day(recurrence_end_date) if recurrence_end_date is not None else None
            if end is not None and end < start_of_day(first):
                raise IncomeValidationError("Recurrence end date must not be before the income date")

        base = Income(
            source=source,
            amount=amount,
            date=first,
            is_planned=bool(is_planned),
            recurrence=period.value if period else None,
            recurrence_end_date=end,
        )
        self.db.add(base)
        self.db.flush()

        extra = 0
        if period is not None:
            until = end if end is not None else add_months(first, 12)
            for occurrence in series_dates(period, first, until, self.calendar)[1:]:
                self.db.add(Income(
                    source=source,
                    amount=amount,
                    date=occurrence,
                    is_planned=base.is_planned,
                    recurrence=base.recurrence,
                    recurrence_end_date=end,
                    parent_id=base.id,
                ))
                extra += 1

        self.db.commit()
        logger.info("Income %s created (%s, %d further occurrence(s))",
                    base.id, "planned" if base.is_planned else "actual", extra)
        return base.id


class UpdateIncomeUseCase:
    """
    Use case: edit an income

    With a series scope, source/amount/planned flag are applied to the chosen
    occurrences; the date only ever moves the given occurrence.
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(
        self,
        income_id: int,
        source: str | None = None,
        amount=None,
        income_date: date | datetime | None = None,
        is_planned: bool | None = None,
        scope: SeriesScope = SeriesScope.INSTANCE,
    ) -> None:
        income = _get_income(self.db, income_id)
        scope = SeriesScope(scope)

        source = _clean_source(source) if source is not None else None
        amount = _clean_amount(amount) if amount is not None else None

        if scope is SeriesScope.INSTANCE:
            targets = [income]
        elif scope is SeriesScope.FUTURE:
            targets = [i for i in _series(self.db, income) if i.date >= income.date]
        else:
            targets = _series(self.db, income)

        for target in targets:
            if source is not None:
                target.source = source
            if amount is not None:
                target.amount = amount
            if is_planned is not None:
                target.is_planned = bool(is_planned)
        if income_date is not None:
            income.date = _clean_date(income_date)

        self.db.commit()
        logger.info("Income %s updated (%s, %d occurrence(s))", income_id, scope.value, len(targets))


class DeleteIncomeUseCase:
    """
    Use case: delete an income or part of its series

    - instance: only this occurrence; deleting the first occurrence promotes
      the next one to head the series
    - future: this occurrence and every later one; the series now ends the
      day before
    - all: the whole series
    """

    def __init__(self, db: Session):
        self.db = db

    def execute(self, income_id: int, scope: SeriesScope = SeriesScope.ALL) -> int:
        """
        Returns:
            number of incomes removed
        """
        income = _get_income(self.db, income_id)
        scope = SeriesScope(scope)
        series = _series(self.db, income)

        if scope is SeriesScope.ALL:
            doomed = series
        elif scope is SeriesScope.FUTURE:
            doomed = [i for i in series if i.date >= income.date]
            kept = [i for i in series if i.date < income.date]
            new_end = start_of_day(income.date) - timedelta(days=1)
            for remaining in kept:
                if remaining.recurrence:
                    remaining.recurrence_end_date = new_end
        else:
            doomed = [income]
            if income.parent_id is None and len(series) > 1:
                self._promote_next(income, series)

        # Occurrences go before their series head: parent_id cascades on delete
        for target in sorted(doomed, key=lambda i: i.parent_id is None):
            self.db.delete(target)
            self.db.flush()

        self.db.commit()
        logger.info("Income %s deleted (%s, %d removed)", income_id, scope.value, len(doomed))
        return len(doomed)

    def _promote_next(self, head: Income, series: list[Income]) -> None:
        children = [i for i in series if i.id != head.id]
        new_head = children[0]
        new_head.parent_id = None
        new_head.recurrence = head.recurrence
        new_head.recurrence_end_date = head.recurrence_end_date
        for child in children[1:]:
            child.parent_id = new_head.id
        self.db.flush()
