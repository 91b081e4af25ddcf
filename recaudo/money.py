"""
Money Helpers Module

Decimal conversion and rounding for monetary amounts. NEVER uses float for
monetary values; amounts are kept exact internally and rounded only when they
are presented (route entries, charges, summaries).
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from typing import Union

from .errors import ValidationError

# High precision for intermediate results (installment = total / count)
getcontext().prec = 28

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

Amount = Union[Decimal, int, str]


def to_decimal(value: Amount) -> Decimal:
    """
    Convert a value to Decimal without passing through float.

    Raises:
        TypeError: value is a float
        ValidationError: value is not a number, or is NaN or infinite
    """
    if isinstance(value, float):
        raise TypeError("Monetary amounts must not be floats")
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"Not a decimal amount: {value!r}")
    if not value.is_finite():
        raise ValidationError(f"Amount must be a finite number, got {value}")
    return value


def round_money(value: Decimal) -> Decimal:
    """Round to cents, half-up"""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def percentage_of(amount: Decimal, percentage: Decimal) -> Decimal:
    """Return ``percentage`` percent of ``amount``"""
    return amount * percentage / HUNDRED
