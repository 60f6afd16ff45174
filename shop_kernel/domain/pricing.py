"""
Pricing -- unit price resolution and bill arithmetic.

Responsibility:
    Pure functions that decide which price applies to a stock item and how
    bill lines roll up into subtotal, tax and total.

Architecture position:
    Kernel > Domain -- functional core, no I/O, no session.

Invariants enforced:
    - A part has two prices; the pricing mode picks one.  An accessory has a
      single price and takes no mode.
    - subtotal == sum(line totals); tax_amount == round_money(subtotal *
      tax_rate / 100); total_amount == subtotal + tax_amount.
    - round_money() (HALF_UP, 0.01) is the only rounding applied.

Failure modes:
    - InvalidArgumentError for an unknown or missing pricing mode, a
      non-positive quantity, or a tax rate outside [0, 100].
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from shop_kernel.db.types import round_money, to_decimal
from shop_kernel.domain.values import PricingMode, parse_enum
from shop_kernel.exceptions import InvalidArgumentError

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class BillTotals:
    """Money totals of a bill."""

    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def parse_pricing_mode(value: PricingMode | str | None) -> PricingMode:
    """Coerce a raw mode ("repair" / "seal") to PricingMode."""
    if value is None:
        raise InvalidArgumentError("pricing_mode", value, "required for parts")
    return parse_enum(PricingMode, value, "pricing_mode")


def resolve_unit_price(item, pricing_mode: PricingMode | str | None = None) -> Decimal:
    """
    Return the canonical unit price of ``item`` for ``pricing_mode``.

    Args:
        item: A Part or Accessory (anything with repair_price/sealing_price,
            or price).
        pricing_mode: Required for parts, must be None for accessories.

    Raises:
        InvalidArgumentError: Missing/unknown mode for a part, or a mode
            supplied for an accessory.
    """
    if hasattr(item, "repair_price"):
        mode = parse_pricing_mode(pricing_mode)
        if mode is PricingMode.REPAIR:
            return item.repair_price
        return item.sealing_price

    if pricing_mode is not None:
        raise InvalidArgumentError(
            "pricing_mode", pricing_mode, "accessories have a single price"
        )
    return item.price


def line_total(unit_price: Decimal, quantity: int) -> Decimal:
    """quantity x unit_price, at money precision."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidArgumentError("quantity", quantity, "must be a positive integer")
    return round_money(to_decimal(unit_price) * quantity)


def validate_tax_rate(tax_rate: Decimal | int | str) -> Decimal:
    """Return tax_rate as Decimal, rejecting values outside [0, 100]."""
    try:
        rate = to_decimal(tax_rate)
    except (TypeError, ArithmeticError):
        raise InvalidArgumentError("tax_rate", tax_rate, "must be a decimal percentage") from None
    if not rate.is_finite() or rate < 0 or rate > _HUNDRED:
        raise InvalidArgumentError("tax_rate", tax_rate, "must be between 0 and 100")
    return rate


def compute_bill_totals(
    line_totals: Iterable[Decimal],
    tax_rate: Decimal | int | str,
) -> BillTotals:
    """
    Roll line totals up into a bill's subtotal, tax and total.

    Example:
        >>> compute_bill_totals([Decimal("80.00"), Decimal("15.00")], Decimal("10"))
        BillTotals(subtotal=Decimal('95.00'), tax_amount=Decimal('9.50'), total_amount=Decimal('104.50'))
    """
    rate = validate_tax_rate(tax_rate)
    subtotal = round_money(sum((to_decimal(t) for t in line_totals), Decimal("0")))
    tax_amount = round_money(subtotal * rate / _HUNDRED)
    return BillTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        total_amount=subtotal + tax_amount,
    )
