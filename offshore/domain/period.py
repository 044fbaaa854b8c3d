"""
Budget period calculator.

Maps a reference date and a period kind to the inclusive calendar range that
contains it. Pure functions over naive datetimes; every range is day-aligned
(start at 00:00, end at 23:59:59.999999).

Kinds:
- DAILY: the calendar day
- WEEKLY: calendar week, first weekday from the calendar authority
- BIWEEKLY: 14 days starting at the week start
- MONTHLY: first..last day of the month
- QUARTERLY: first day of the quarter..last day of its third month
- YEARLY: Jan 1..Dec 31
- CUSTOM: the reference day itself
"""
import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Tuple

from offshore.domain.window import end_of_day, start_of_day


class BudgetPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    CUSTOM = "custom"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @classmethod
    def selectable(cls) -> list["BudgetPeriod"]:
        """Periods offered in pickers (custom is implied by free dates)."""
        return [p for p in cls if p is not cls.CUSTOM]

    @classmethod
    def parse(cls, raw: str | None, default: "BudgetPeriod" = None) -> "BudgetPeriod":
        """Tolerant lookup ("biWeekly", "Monthly", ...); falls back to default."""
        if raw:
            key = raw.strip().lower().replace("-", "").replace("_", "")
            for period in cls:
                if period.value == key:
                    return period
        return default if default is not None else cls.MONTHLY


_DISPLAY_NAMES = {
    BudgetPeriod.DAILY: "Daily",
    BudgetPeriod.WEEKLY: "Weekly",
    BudgetPeriod.BIWEEKLY: "Bi-Weekly",
    BudgetPeriod.MONTHLY: "Monthly",
    BudgetPeriod.QUARTERLY: "Quarterly",
    BudgetPeriod.YEARLY: "Yearly",
    BudgetPeriod.CUSTOM: "Custom",
}


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(d: datetime, n: int) -> datetime:
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    day = min(d.day, last_day_of_month(year, month))
    return d.replace(year=year, month=month, day=day)


def _as_datetime(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


@dataclass(frozen=True)
class PeriodCalendar:
    """
    Single calendar authority for period math.

    first_weekday: 0 = Monday ... 6 = Sunday (same convention as ``datetime.weekday``).
    """
    first_weekday: int = 0

    def __post_init__(self):
        if not 0 <= self.first_weekday <= 6:
            raise ValueError("first_weekday must be in 0..6")

    def start_of(self, period: BudgetPeriod, ref: date | datetime) -> datetime:
        """Inclusive start of the period containing ``ref``."""
        day = start_of_day(_as_datetime(ref))
        if period in (BudgetPeriod.DAILY, BudgetPeriod.CUSTOM):
            return day
        if period in (BudgetPeriod.WEEKLY, BudgetPeriod.BIWEEKLY):
            offset = (day.weekday() - self.first_weekday) % 7
            return day - timedelta(days=offset)
        if period is BudgetPeriod.MONTHLY:
            return day.replace(day=1)
        if period is BudgetPeriod.QUARTERLY:
            first_month = ((day.month - 1) // 3) * 3 + 1
            return day.replace(month=first_month, day=1)
        return day.replace(month=1, day=1)

    def range_containing(self, period: BudgetPeriod, ref: date | datetime) -> Tuple[datetime, datetime]:
        """Inclusive ``(start, end)`` of the period containing ``ref``."""
        start = self.start_of(period, ref)
        if period in (BudgetPeriod.DAILY, BudgetPeriod.CUSTOM):
            last_day = start
        elif period is BudgetPeriod.WEEKLY:
            last_day = start + timedelta(days=6)
        elif period is BudgetPeriod.BIWEEKLY:
            last_day = start + timedelta(days=13)
        elif period is BudgetPeriod.MONTHLY:
            last_day = start.replace(day=last_day_of_month(start.year, start.month))
        elif period is BudgetPeriod.QUARTERLY:
            last = add_months(start, 2)
            last_day = last.replace(day=last_day_of_month(last.year, last.month))
        else:
            last_day = start.replace(month=12, day=31)
        return start, end_of_day(last_day)

    def advance(self, period: BudgetPeriod, ref: date | datetime, delta: int) -> datetime:
        """Move ``ref`` forward (or back, for negative ``delta``) by whole periods."""
        ref = _as_datetime(ref)
        if period is BudgetPeriod.DAILY:
            return ref + timedelta(days=delta)
        if period is BudgetPeriod.WEEKLY:
            return ref + timedelta(weeks=delta)
        if period is BudgetPeriod.BIWEEKLY:
            return ref + timedelta(days=14 * delta)
        if period is BudgetPeriod.MONTHLY:
            return add_months(ref, delta)
        if period is BudgetPeriod.QUARTERLY:
            return add_months(ref, 3 * delta)
        if period is BudgetPeriod.YEARLY:
            return add_months(ref, 12 * delta)
        return ref

    def matches(self, period: BudgetPeriod, start: date | datetime, end: date | datetime) -> bool:
        """True when ``start..end`` is exactly one whole period of this kind."""
        if period is BudgetPeriod.CUSTOM:
            return True
        expected_start, expected_end = self.range_containing(period, start)
        return (
            expected_start == start_of_day(_as_datetime(start))
            and expected_end.date() == _as_datetime(end).date()
        )

    def detect(self, start: date | datetime, end: date | datetime) -> BudgetPeriod:
        """First selectable period that exactly spans ``start..end``; CUSTOM otherwise."""
        for period in BudgetPeriod.selectable():
            if self.matches(period, start, end):
                return period
        return BudgetPeriod.CUSTOM

    def title(self, period: BudgetPeriod, ref: date | datetime) -> str:
        """Human readable title of the period containing ``ref``."""
        start, end = self.range_containing(period, ref)
        if period is BudgetPeriod.DAILY:
            return _short(start, with_year=True)
        if period in (BudgetPeriod.WEEKLY, BudgetPeriod.BIWEEKLY):
            return f"{_short(start)} - {_short(end, with_year=True)}"
        if period is BudgetPeriod.MONTHLY:
            return f"{start:%B} {start.year}"
        if period is BudgetPeriod.QUARTERLY:
            return f"Q{(start.month - 1) // 3 + 1} {start.year}"
        if period is BudgetPeriod.YEARLY:
            return str(start.year)
        return ""


def _short(d: datetime, with_year: bool = False) -> str:
    text = f"{d:%b} {d.day}"
    return f"{text}, {d.year}" if with_year else text


DEFAULT_CALENDAR = PeriodCalendar()


def period_range(period: BudgetPeriod, ref: date | datetime,
                 cal: PeriodCalendar = DEFAULT_CALENDAR) -> Tuple[datetime, datetime]:
    """Module-level shortcut for ``cal.range_containing``."""
    return cal.range_containing(period, ref)
