"""
Sort/filter policy applied to fetched rows (never pushed into the query).

All sorts are stable: rows with equal keys keep their fetch order, so a
refresh with unchanged data never reorders the list.
"""
from enum import Enum
from typing import Iterable, List, TypeVar

EMPTY_DESCRIPTION = "Untitled"

R = TypeVar("R")


class Segment(str, Enum):
    PLANNED = "planned"
    VARIABLE = "variable"


class SortMode(str, Enum):
    TITLE_AZ = "title_az"
    AMOUNT_LOW_HIGH = "amount_low_high"
    AMOUNT_HIGH_LOW = "amount_high_low"
    DATE_OLD_NEW = "date_old_new"
    DATE_NEW_OLD = "date_new_old"


def parse_enum(enum_cls, raw, default):
    """Lenient enum lookup for values coming from preferences or query strings."""
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw).strip().lower())
    except ValueError:
        return default


def _title_key(row) -> str:
    return (row.description or EMPTY_DESCRIPTION).casefold()


def sort_records(rows: Iterable[R], mode: SortMode) -> List[R]:
    """
    Return a new list ordered by ``mode``.

    Rows need ``description``, ``transaction_date`` and ``sort_amount``.
    Date orders break ties alphabetically.
    """
    rows = list(rows)
    if mode is SortMode.TITLE_AZ:
        return sorted(rows, key=_title_key)
    if mode is SortMode.AMOUNT_LOW_HIGH:
        return sorted(rows, key=lambda r: r.sort_amount)
    if mode is SortMode.AMOUNT_HIGH_LOW:
        return sorted(rows, key=lambda r: r.sort_amount, reverse=True)

    by_title = sorted(rows, key=_title_key)
    if mode is SortMode.DATE_OLD_NEW:
        return sorted(by_title, key=lambda r: r.transaction_date)
    return sorted(by_title, key=lambda r: r.transaction_date, reverse=True)


def filter_records(rows: Iterable[R], query: str | None, include_category: bool = False) -> List[R]:
    """
    Case-insensitive substring search over description (and the category name
    when ``include_category``). Blank query keeps everything.
    """
    rows = list(rows)
    needle = (query or "").strip().casefold()
    if not needle:
        return rows

    def _hit(row) -> bool:
        if needle in (row.description or "").casefold():
            return True
        if not include_category:
            return False
        return needle in (row.category.name or "").casefold()

    return [r for r in rows if _hit(r)]
