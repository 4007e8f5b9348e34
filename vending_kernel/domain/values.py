"""
Monetary rounding.

round_money() is the single sanctioned rounding function: 2 decimal
places, half away from zero (ROUND_HALF_UP on Decimal). Every monetary
value leaving an aggregation passes through it so that float drift from a
database driver never reaches a caller.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MONEY_DECIMAL_PLACES = 2
# Numeric(15, 2) on sales_orders.price and collections.amount
MONEY_PRECISION = 15
# Smallest magnitude that no longer fits those columns
MONEY_LIMIT = Decimal(10) ** (MONEY_PRECISION - MONEY_DECIMAL_PLACES)
DEFAULT_ROUNDING = ROUND_HALF_UP

_MONEY_QUANTUM = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)


def round_money(value: Decimal | int | float | str | None) -> Decimal:
    """
    Round a monetary value to 2 decimal places, half away from zero.

    Floats are converted through ``repr`` so that binary representation
    noise (e.g. 0.1 + 0.2) does not leak into the result. ``None`` is 0.

    Raises:
        ValueError: if the value is not numeric.
    """
    if value is None:
        return Decimal("0.00")
    if isinstance(value, float):
        value = repr(value)
    try:
        dec = value if isinstance(value, Decimal) else Decimal(value)
        result = dec.quantize(_MONEY_QUANTUM, rounding=DEFAULT_ROUNDING)
    except InvalidOperation as exc:
        raise ValueError(f"Not a monetary value: {value!r}") from exc
    # Normalize negative zero
    if result == 0:
        return Decimal("0.00")
    return result
