"""
Module: shop_kernel.db.types
Responsibility: Decimal coercion and the money rounding helper.
    Centralizes precision and rounding so that every model and service uses
    identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - round_money() is the ONLY sanctioned rounding function for monetary
      values (bill tax, line totals).
    - No floats.  All monetary amounts use Decimal with explicit precision.
"""

from decimal import Decimal, ROUND_HALF_UP


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce an int, str or Decimal to Decimal.

    Floats are rejected: a float has already lost the exact amount.

    Raises:
        TypeError: If value is a float or another unsupported type.
        decimal.InvalidOperation: If a string is not numeric.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Monetary values must not be float or bool: {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)):
        return Decimal(value)
    raise TypeError(f"Unsupported monetary value type: {type(value).__name__}")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the currency's smallest unit.

    This is the ONLY sanctioned rounding function for monetary values.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)
