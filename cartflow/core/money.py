# cartflow/core/money.py
"""
Decimal money helpers.

Amounts are never floats inside the engine. Line-level values are kept at
INTERNAL_SCALE so sums stay exact; rounding to cents happens only when a
value is displayed or persisted as a cart total.
"""
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from cartflow.core.errors import ValidationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")
INTERNAL_SCALE = Decimal("0.000001")
DISPLAY_SCALE = Decimal("0.01")


def to_money(value: Decimal | int | float | str, field: str = "amount") -> Decimal:
    """
    Parse a non-negative money amount.

    Floats go through str() so 19.99 stays 19.99 rather than its binary
    approximation.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", field=field)
    if not amount.is_finite():
        raise ValidationError(f"{field} must be finite", field=field)
    if amount < ZERO:
        raise ValidationError(f"{field} cannot be negative", field=field)
    return amount


def validate_percentage(value: Decimal | int | float | str) -> Decimal:
    """Discount percentages are 0..100 inclusive."""
    try:
        pct = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("discount_percentage must be a number")
    if not pct.is_finite() or pct < ZERO or pct > HUNDRED:
        raise ValidationError(
            "discount_percentage must be between 0 and 100",
            field="discount_percentage",
        )
    return pct


def quantize_internal(amount: Decimal) -> Decimal:
    return amount.quantize(INTERNAL_SCALE, rounding=ROUND_HALF_UP)


def quantize_display(amount: Decimal) -> Decimal:
    return amount.quantize(DISPLAY_SCALE, rounding=ROUND_HALF_UP)


def line_gross(unit_price: Decimal, quantity: int) -> Decimal:
    return unit_price * quantity


def percent_of(amount: Decimal, percentage: Decimal) -> Decimal:
    """`percentage`% of `amount`, held at internal scale."""
    return quantize_internal(amount * percentage / HUNDRED)


def money_str(amount: Decimal) -> str:
    """Cents-rounded string, used in logs and error payloads."""
    return str(quantize_display(amount))
