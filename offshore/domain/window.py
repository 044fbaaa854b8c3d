"""
Date window normalizer.

A budget window is always a closed, day-aligned range: the start is the first
instant of its day, the end is the last representable instant of its day, and
start <= end. Inverted input is swapped rather than rejected.
"""
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Tuple


def start_of_day(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value.replace(hour=0, minute=0, second=0, microsecond=0)
    return datetime.combine(value, time.min)


def end_of_day(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value.replace(hour=23, minute=59, second=59, microsecond=999999)
    return datetime.combine(value, time.max)


@dataclass(frozen=True)
class DateWindow:
    """Inclusive [start, end] window. Build through ``normalize_window``."""
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError("DateWindow start must be <= end; use normalize_window()")

    def contains(self, moment: date | datetime) -> bool:
        if not isinstance(moment, datetime):
            moment = start_of_day(moment)
        return self.start <= moment <= self.end

    def as_tuple(self) -> Tuple[datetime, datetime]:
        return self.start, self.end

    @property
    def days(self) -> int:
        return (self.end.date() - self.start.date()).days + 1

    def label(self) -> str:
        """Display label, e.g. "Jan 1, 2025 through Jan 31, 2025"."""
        return f"{_fmt(self.start)} through {_fmt(self.end)}"


def _fmt(d: datetime) -> str:
    return f"{d:%b} {d.day}, {d.year}"


def normalize_window(start: date | datetime, end: date | datetime) -> DateWindow:
    """
    Clamp an arbitrary start/end pair to whole-day boundaries.

    Same-day input spans that whole day; an inverted pair is swapped so the
    earlier moment becomes the start.
    """
    lower = start_of_day(start)
    upper = start_of_day(end)
    if upper < lower:
        lower, upper = upper, lower
    return DateWindow(start=lower, end=end_of_day(upper))
