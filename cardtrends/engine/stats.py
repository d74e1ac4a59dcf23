"""
Card Trends — Price statistics helpers

All money values use Decimal and are rounded half-up to cents.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

CENTS = Decimal("0.01")
_HUNDRED = Decimal("100")
_ZERO = Decimal("0")


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def mean_price(prices: Iterable[Decimal]) -> Decimal:
    """Arithmetic mean rounded to cents. Decimal('0.00') for no prices."""
    values = list(prices)
    if not values:
        return to_cents(_ZERO)
    return to_cents(sum(values, _ZERO) / len(values))


def percentage_change(current: Decimal, previous: Decimal) -> Decimal:
    """
    Percent change from `previous` to `current`, rounded to cents.

    A zero baseline has no meaningful ratio: any positive current value
    reports 100, otherwise 0.

    Examples:
        >>> percentage_change(Decimal("110"), Decimal("100"))
        Decimal('10.00')
    """
    if previous == _ZERO:
        return to_cents(_HUNDRED if current > _ZERO else _ZERO)
    return to_cents((current - previous) / previous * _HUNDRED)
