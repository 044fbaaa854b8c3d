"""
Validation utilities
"""
import re
from decimal import Decimal, InvalidOperation


def normalize_decimal_input(value: str) -> str:
    """
    Normalize an amount typed by a user: strip blanks and currency
    grouping, accept a comma as the decimal separator.

    Example:
        >>> normalize_decimal_input("100,50")
        "100.50"
        >>> normalize_decimal_input(" 1 200.5 ")
        "1200.5"
    """
    value = value.strip().replace(" ", "")
    if "," in value and "." not in value:
        value = value.replace(",", ".")
    else:
        value = value.replace(",", "")
    return value


def validate_decimal_amount(value: str, max_decimal_places: int = 2) -> tuple[bool, str | None]:
    """
    Validate a money amount.

    Returns:
        (is_valid, error_message)

    Example:
        >>> validate_decimal_amount("100.50")
        (True, None)
        >>> validate_decimal_amount("100.505")
        (False, "At most 2 decimal places")
    """
    normalized = normalize_decimal_input(value)

    try:
        Decimal(normalized)
    except (InvalidOperation, ValueError):
        return False, "Invalid amount"

    pattern = rf"^-?\d+(\.\d{{1,{max_decimal_places}}})?$"
    if not re.match(pattern, normalized):
        return False, f"At most {max_decimal_places} decimal places"

    return True, None


def parse_amount(value, max_decimal_places: int = 2) -> Decimal:
    """
    Validate and convert an amount to Decimal (raise ValueError on failure).

    Accepts str, int and Decimal. Floats go through ``repr`` so that
    ``0.1`` becomes ``Decimal("0.1")`` and not its binary expansion.

    Example:
        >>> parse_amount("100,50")
        Decimal("100.50")
        >>> parse_amount("100.505")
        ValueError: At most 2 decimal places
    """
    if isinstance(value, Decimal):
        value = format(value, "f")
    elif isinstance(value, (int, float)):
        value = repr(value)

    is_valid, error = validate_decimal_amount(value, max_decimal_places)
    if not is_valid:
        raise ValueError(error)

    return Decimal(normalize_decimal_input(value))
