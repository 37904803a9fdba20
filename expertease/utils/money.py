# expertease/utils/money.py
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Union

from ..errors import InvalidAmount

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[str, int, float, Decimal]


def to_decimal(value: Number) -> Decimal:
    """Convert a numeric value to Decimal without going through binary floats."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Invalid monetary value: {value!r}")


def to_money(value: Number) -> Decimal:
    """Round to 2 decimal places, half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Number) -> int:
    """RON -> bani, as the payment processor expects it."""
    return int((to_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    return to_money(Decimal(amount) / 100)
