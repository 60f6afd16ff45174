"""
InventoryLedger -- the only writer of stock quantities.

Responsibility:
    Debits (reserve), credits (release) and administrative overrides
    (adjust) of part and accessory quantities, plus the guarded deletion of
    a stock item.

Architecture position:
    Kernel > Services.  Called by RepairPartsTracker, AccessorySaleRecorder,
    BillComposer and the operation facade.  Runs inside the caller's unit of
    work and never commits.

Invariants enforced:
    - quantity >= 0 after every operation.  reserve() checks sufficiency
      against the row it holds locked, in the same transaction as the debit.
    - Every quantity change stamps updated_by_id (updated_at via onupdate).

Failure modes:
    - StockItemNotFoundError: unknown item.
    - InsufficientStockError: reserve/check_available beyond quantity on hand.
    - InvalidArgumentError: non-positive quantity, bad mode or item type.
    - StockItemReferencedError: delete_item on an item with history.
"""

from typing import Iterable
from uuid import UUID

from sqlalchemy import exists, select

from shop_kernel.domain.dtos import StockLevel
from shop_kernel.domain.values import AdjustMode, ItemType, parse_enum
from shop_kernel.exceptions import (
    InsufficientStockError,
    InvalidArgumentError,
    StockItemNotFoundError,
    StockItemReferencedError,
)
from shop_kernel.logging_config import get_logger
from shop_kernel.models.repair import RepairPartUsage
from shop_kernel.models.sales import AccessorySale
from shop_kernel.models.stock import STOCK_MODELS
from shop_kernel.services.base import BaseService

logger = get_logger("services.inventory_ledger")


def _require_positive(field: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgumentError(field, value, "must be a positive integer")
    return value


class InventoryLedger(BaseService):
    """
    Stock quantity ledger for parts and accessories.

    Contract:
        Every mutating call locks the item row (``SELECT ... FOR UPDATE``),
        validates against the locked quantity and flushes.  Returns the new
        StockLevel.

    Non-goals:
        - Does not write usage or sale history; the tracker and recorder do.
    """

    def _model(self, item_type: ItemType | str):
        return STOCK_MODELS[parse_enum(ItemType, item_type, "item_type")]

    def lock_item(self, item_type: ItemType | str, item_id: UUID):
        model = self._model(item_type)
        item = self.session.execute(
            select(model)
            .where(model.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise StockItemNotFoundError(model.item_type.value, str(item_id))
        return item

    def lock_items(self, item_type: ItemType | str, item_ids: Iterable[UUID]) -> dict:
        """
        Lock several items of one type in ascending id order.

        A fixed lock order keeps two carts over the same accessories from
        deadlocking each other.

        Raises:
            StockItemNotFoundError: For the first id that does not exist.
        """
        return {
            item_id: self.lock_item(item_type, item_id)
            for item_id in sorted(set(item_ids), key=str)
        }

    def get_level(self, item_type: ItemType | str, item_id: UUID) -> StockLevel:
        """Current quantity of an item, without locking."""
        model = self._model(item_type)
        item = self.session.get(model, item_id)
        if item is None:
            raise StockItemNotFoundError(model.item_type.value, str(item_id))
        return StockLevel.from_model(item)

    def check_available(self, item_type: ItemType | str, item_id: UUID, quantity: int):
        """
        Lock the item and verify ``quantity`` is on hand, without debiting.

        Returns:
            The locked Part/Accessory row.
        """
        _require_positive("quantity", quantity)
        item = self.lock_item(item_type, item_id)
        if quantity > item.quantity:
            raise InsufficientStockError(
                item.item_type.value, str(item.id), quantity, item.quantity,
            )
        return item

    def reserve(
        self,
        item_type: ItemType | str,
        item_id: UUID,
        quantity: int,
        actor_id: UUID,
    ) -> StockLevel:
        """
        Debit ``quantity`` units if that many are on hand.

        Raises:
            InsufficientStockError: quantity exceeds the locked current
                quantity.  Nothing is changed.
        """
        item = self.check_available(item_type, item_id, quantity)
        before = item.quantity
        item.quantity = before - quantity
        item.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "stock_reserved",
            extra={
                "item_type": item.item_type.value,
                "item_id": str(item.id),
                "quantity": quantity,
                "quantity_before": before,
                "quantity_after": item.quantity,
            },
        )
        if item.is_low_stock:
            logger.warning(
                "stock_low",
                extra={
                    "item_type": item.item_type.value,
                    "item_id": str(item.id),
                    "quantity": item.quantity,
                    "min_quantity": item.min_quantity,
                },
            )
        return StockLevel.from_model(item)

    def release(
        self,
        item_type: ItemType | str,
        item_id: UUID,
        quantity: int,
        actor_id: UUID,
    ) -> StockLevel:
        """Credit ``quantity`` units back, reversing an earlier reservation."""
        _require_positive("quantity", quantity)
        item = self.lock_item(item_type, item_id)
        before = item.quantity
        item.quantity = before + quantity
        item.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "stock_released",
            extra={
                "item_type": item.item_type.value,
                "item_id": str(item.id),
                "quantity": quantity,
                "quantity_before": before,
                "quantity_after": item.quantity,
            },
        )
        return StockLevel.from_model(item)

    def adjust(
        self,
        item_type: ItemType | str,
        item_id: UUID,
        amount: int,
        mode: AdjustMode | str,
        actor_id: UUID,
    ) -> StockLevel:
        """
        Administrative override of an item's quantity.

        Modes:
            add:      quantity + amount (amount > 0)
            subtract: max(0, quantity - amount) (amount > 0)
            set:      amount (amount >= 0)
        """
        adjust_mode = parse_enum(AdjustMode, mode, "mode")
        if adjust_mode is AdjustMode.SET:
            if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
                raise InvalidArgumentError("amount", amount, "must be a non-negative integer")
        else:
            _require_positive("amount", amount)

        item = self.lock_item(item_type, item_id)
        before = item.quantity
        if adjust_mode is AdjustMode.ADD:
            item.quantity = before + amount
        elif adjust_mode is AdjustMode.SUBTRACT:
            item.quantity = max(0, before - amount)
        else:
            item.quantity = amount
        item.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "stock_adjusted",
            extra={
                "item_type": item.item_type.value,
                "item_id": str(item.id),
                "mode": adjust_mode.value,
                "amount": amount,
                "quantity_before": before,
                "quantity_after": item.quantity,
            },
        )
        return StockLevel.from_model(item)

    def delete_item(self, item_type: ItemType | str, item_id: UUID, actor_id: UUID) -> None:
        """
        Delete a part or accessory that has no usage or sale history.

        Raises:
            StockItemReferencedError: History rows reference the item.
        """
        item = self.lock_item(item_type, item_id)
        if item.item_type is ItemType.PART:
            history = exists().where(RepairPartUsage.part_id == item.id)
        else:
            history = exists().where(AccessorySale.accessory_id == item.id)

        if self.session.execute(select(history)).scalar():
            raise StockItemReferencedError(item.item_type.value, str(item.id))

        self.session.delete(item)
        self.session.flush()
        logger.info(
            "stock_item_deleted",
            extra={
                "item_type": item.item_type.value,
                "item_id": str(item_id),
                "deleted_by": str(actor_id),
            },
        )
