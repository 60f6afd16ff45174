"""
AccessorySaleRecorder -- point-of-sale accessory transactions.

Responsibility:
    Debits accessory stock and writes the AccessorySale history row in the
    same unit of work.

Architecture position:
    Kernel > Services.  Uses InventoryLedger.  Also used by BillComposer,
    which reserves stock for a whole cart itself and then calls
    record_sale() per line.

Invariants enforced:
    - quantity > 0 and unit_price > 0, in whole cents.
    - The sale row exists only if its stock debit succeeded.
    - total_price == quantity_sold * unit_price.

Failure modes:
    - StockItemNotFoundError, InsufficientStockError, InvalidArgumentError.

Notes:
    unit_price is supplied by the caller for each sale so the counter can
    discount.  It is not re-read from the accessory's canonical price.
"""

from decimal import Decimal
from uuid import UUID

from shop_kernel.db.types import round_money, to_decimal
from shop_kernel.domain.dtos import AccessorySaleInfo
from shop_kernel.domain.pricing import line_total
from shop_kernel.domain.values import ItemType
from shop_kernel.exceptions import InvalidArgumentError
from shop_kernel.logging_config import get_logger
from shop_kernel.models.sales import AccessorySale
from shop_kernel.models.stock import Accessory
from shop_kernel.services.base import BaseService
from shop_kernel.services.inventory_ledger import InventoryLedger

logger = get_logger("services.accessory_sales")


def _positive_price(unit_price) -> Decimal:
    try:
        price = to_decimal(unit_price)
    except (TypeError, ArithmeticError):
        raise InvalidArgumentError("unit_price", unit_price, "must be a decimal amount") from None
    if not price.is_finite() or price <= 0:
        raise InvalidArgumentError("unit_price", unit_price, "must be greater than zero")
    if price != round_money(price):
        raise InvalidArgumentError("unit_price", unit_price, "must not have fractional cents")
    return price


class AccessorySaleRecorder(BaseService):
    """Sells accessories over the counter."""

    def __init__(self, session, clock=None, ledger: InventoryLedger | None = None):
        super().__init__(session, clock)
        self.ledger = ledger or InventoryLedger(session, self.clock)

    def sell(
        self,
        accessory_id: UUID,
        quantity: int,
        unit_price: Decimal | int | str,
        actor_id: UUID,
    ) -> AccessorySaleInfo:
        """
        Reserve ``quantity`` units and record the sale at ``unit_price``.

        Raises:
            InvalidArgumentError: quantity or unit_price not positive.
            StockItemNotFoundError: Unknown accessory.
            InsufficientStockError: Not enough on hand; nothing changes.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise InvalidArgumentError("quantity", quantity, "must be a positive integer")
        price = _positive_price(unit_price)

        accessory = self.ledger.check_available(ItemType.ACCESSORY, accessory_id, quantity)
        self.ledger.reserve(ItemType.ACCESSORY, accessory_id, quantity, actor_id)
        return self.record_sale(accessory, quantity, price, actor_id)

    def record_sale(
        self,
        accessory: Accessory,
        quantity: int,
        unit_price: Decimal,
        actor_id: UUID,
    ) -> AccessorySaleInfo:
        """
        Write the sale row for stock the caller has already reserved.

        Does not touch the ledger.
        """
        sale = AccessorySale(
            accessory_id=accessory.id,
            quantity_sold=quantity,
            unit_price=unit_price,
            total_price=line_total(unit_price, quantity),
            sold_by=actor_id,
            created_by_id=actor_id,
        )
        self.session.add(sale)
        self.session.flush()

        logger.info(
            "accessory_sold",
            extra={
                "sale_id": str(sale.id),
                "accessory_id": str(accessory.id),
                "quantity_sold": quantity,
                "unit_price": unit_price,
                "total_price": sale.total_price,
            },
        )
        return AccessorySaleInfo.from_model(sale)
