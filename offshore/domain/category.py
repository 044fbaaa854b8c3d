"""
Expense category reference.

An expense either points at a real category or is explicitly uncategorized.
Aggregation groups by ``category_key`` so two categories that share a name
never merge, and the uncategorized bucket never collides with a real one.
"""
from dataclasses import dataclass
from typing import Optional, Union

UNCATEGORIZED_NAME = "Uncategorized"
UNCATEGORIZED_COLOR = "#9E9E9E"


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    color: Optional[str] = None


@dataclass(frozen=True)
class Uncategorized:
    name: str = UNCATEGORIZED_NAME
    color: str = UNCATEGORIZED_COLOR


UNCATEGORIZED = Uncategorized()

CategoryRef = Union[Category, Uncategorized]


def category_key(ref: CategoryRef) -> Optional[int]:
    """Grouping key: category id, or None for the uncategorized bucket."""
    if isinstance(ref, Category):
        return ref.id
    return None


def category_from_row(category_id: Optional[int], name: Optional[str], color: Optional[str]) -> CategoryRef:
    """Build a reference from nullable storage columns."""
    if category_id is None:
        return UNCATEGORIZED
    return Category(id=category_id, name=name or UNCATEGORIZED_NAME, color=color)
