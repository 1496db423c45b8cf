# llave_system/utils/money.py
"""
Currency helpers. All money is Decimal, rounded half-up to cents.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0")


def toDecimal(value: Union[int, float, str, Decimal, None]) -> Decimal:
    """Convert numeric input to Decimal without float artifacts."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def roundMoney(value: Union[int, float, str, Decimal]) -> Decimal:
    """Round to 2 decimal places, half-up."""
    return toDecimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
