"""
Unified money helpers for the whole project.

Usage:
    from offshore.utils.money import format_money, sum_money

    format_money(Decimal("1500"), "USD")      -> "1,500.00 USD"
    format_money(Decimal("-12.5"), "EUR")     -> "-12.50 EUR"
    sum_money([Decimal("0.1")] * 3)           -> Decimal("0.30")
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def quantize(amount) -> Decimal:
    """Round to whole cents (banker-free, half-up like a receipt)."""
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def sum_money(amounts: Iterable[Decimal]) -> Decimal:
    """
    Sum amounts with Decimal arithmetic.

    Floats are converted through ``str`` so binary drift never enters the total.
    """
    total = ZERO
    for amount in amounts:
        total += amount if isinstance(amount, Decimal) else Decimal(str(amount))
    return quantize(total)


def format_money(amount, currency: str = "USD", decimals: int = 2) -> str:
    """
    Format an amount with thousands separators and a currency suffix.

    Args:
        amount: number (int / float / Decimal / str)
        currency: ISO currency code (USD, EUR ...)
        decimals: digits after the decimal point

    Returns:
        "1,500.00 USD" / "-12.50 EUR"
    """
    if isinstance(amount, str):
        amount = Decimal(amount)
    fmt = f"{{:,.{decimals}f}}"
    return f"{fmt.format(amount)} {currency}"
