"""Decimal money helpers.

Every DR amount is a Decimal with two fractional digits. Rounding happens
at the point an amount is computed (per charge, per commission level),
always ROUND_HALF_UP. Floats never touch money.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from src.dr_common.errors import ValidationError

ZERO = Decimal("0.00")
_CENT = Decimal("0.01")
_RATE_STEP = Decimal("0.0001")


def to_money(value: Decimal | int | str) -> Decimal:
    """Quantize to 0.01 with ROUND_HALF_UP.

    Accepts Decimal, int or numeric string. Float is rejected because its
    binary representation makes half-up rounding unreliable.
    """
    if isinstance(value, float):
        raise TypeError("float is not accepted for money; use Decimal or str")
    try:
        return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"Not a valid amount: {value!r}") from None


def to_rate(value: Decimal | int | str) -> Decimal:
    """Quantize a fractional rate to 0.0001 with ROUND_HALF_UP."""
    if isinstance(value, float):
        raise TypeError("float is not accepted for rates; use Decimal or str")
    try:
        return Decimal(value).quantize(_RATE_STEP, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"Not a valid rate: {value!r}") from None


def require_positive(amount: Decimal, field: str = "amount") -> Decimal:
    """Quantize and assert > 0, raising ValidationError otherwise."""
    quantized = to_money(amount)
    if quantized <= ZERO:
        raise ValidationError(f"{field} must be greater than 0, got {amount}")
    return quantized


def money_display(amount: Decimal) -> str:
    """Format as thousands-separated string with 2 decimals.

    Examples:
        Decimal("1500") -> "1,500.00"
        Decimal("-30")  -> "-30.00"
    """
    return f"{to_money(amount):,.2f}"
