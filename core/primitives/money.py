"""
POS Money Primitive — Integer Minor Units
===========================================
All amounts are integer minor units (cents/paise) — NO floats.
Percentages are Decimal. Every percentage product is rounded to
the minor unit with ROUND_HALF_UP, per line, before any summing.

This file contains NO persistence logic.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

PercentLike = Union[Decimal, int, str, float]

ONE_HUNDRED = Decimal(100)


def to_percent(value: PercentLike, *, field_name: str = "percent") -> Decimal:
    """Normalize a percentage to Decimal (floats go through str to avoid binary noise)."""
    if isinstance(value, bool):
        raise TypeError(f"{field_name} must be numeric, got bool.")
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field_name} must be numeric, got {value!r}.") from exc


def round_minor(value: Decimal) -> int:
    """Round a Decimal amount of minor units to an int, half away from zero."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def percent_of(amount: int, percent: PercentLike) -> int:
    """
    `percent`% of `amount` minor units, rounded to the minor unit.

    percent_of(2000, 10) == 200
    percent_of(1800, 5) == 90
    percent_of(333, Decimal("12.5")) == 42
    """
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise TypeError(
            f"amount must be int (minor units), got {type(amount).__name__}."
        )
    return round_minor(Decimal(amount) * to_percent(percent) / ONE_HUNDRED)


def require_minor_units(value, *, field_name: str, allow_zero: bool = True) -> int:
    """Validate an integer minor-unit amount."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(
            f"{field_name} must be int (minor units), "
            f"got {type(value).__name__}. Use cents, not decimals."
        )
    if value < 0 or (value == 0 and not allow_zero):
        bound = ">= 0" if allow_zero else "> 0"
        raise ValueError(f"{field_name} must be {bound}.")
    return value
