"""
DTOs -- immutable snapshots returned across the kernel boundary.

Responsibility:
    Services and selectors return these frozen dataclasses rather than ORM
    instances, so callers never hold rows that are bound to a closed session.

Architecture position:
    Kernel > Domain.  from_model() class methods are boundary converters
    invoked from services and selectors only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from shop_kernel.domain.values import (
    ItemType,
    PaymentStatus,
    PricingMode,
    RepairStatus,
)

if TYPE_CHECKING:
    from shop_kernel.models.billing import Bill as BillModel
    from shop_kernel.models.billing import BillItem as BillItemModel
    from shop_kernel.models.repair import RepairJob as RepairJobModel
    from shop_kernel.models.repair import RepairPartUsage as RepairPartUsageModel
    from shop_kernel.models.sales import AccessorySale as AccessorySaleModel


@dataclass(frozen=True)
class StockLevel:
    """Quantity on hand of one part or accessory."""

    item_type: ItemType
    item_id: UUID
    name: str
    quantity: int
    min_quantity: int

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_quantity

    @classmethod
    def from_model(cls, model) -> StockLevel:
        return cls(
            item_type=model.item_type,
            item_id=model.id,
            name=model.name,
            quantity=model.quantity,
            min_quantity=model.min_quantity,
        )


@dataclass(frozen=True)
class CartLine:
    """One requested accessory line of a cart bill."""

    accessory_id: UUID
    quantity: int


@dataclass(frozen=True)
class RepairJobInfo:
    """Snapshot of a repair job header."""

    id: UUID
    customer_id: UUID
    device_model: str
    reported_issue: str
    status: RepairStatus
    completed_at: datetime | None = None
    assigned_technician_id: UUID | None = None

    @classmethod
    def from_model(cls, model: RepairJobModel) -> RepairJobInfo:
        return cls(
            id=model.id,
            customer_id=model.customer_id,
            device_model=model.device_model,
            reported_issue=model.reported_issue,
            status=model.status_enum,
            completed_at=model.completed_at,
            assigned_technician_id=model.assigned_technician_id,
        )


@dataclass(frozen=True)
class RepairPartUsageInfo:
    """
    A part consumed by a repair, with the price snapshot taken when it was
    recorded.
    """

    id: UUID
    repair_id: UUID
    part_id: UUID
    line_no: int
    quantity_used: int
    pricing_mode: PricingMode
    unit_price: Decimal
    total_price: Decimal

    @classmethod
    def from_model(cls, model: RepairPartUsageModel) -> RepairPartUsageInfo:
        return cls(
            id=model.id,
            repair_id=model.repair_id,
            part_id=model.part_id,
            line_no=model.line_no,
            quantity_used=model.quantity_used,
            pricing_mode=model.pricing_mode_enum,
            unit_price=model.unit_price,
            total_price=model.total_price,
        )


@dataclass(frozen=True)
class AccessorySaleInfo:
    """An accessory stock debit and what it was sold for."""

    id: UUID
    accessory_id: UUID
    quantity_sold: int
    unit_price: Decimal
    total_price: Decimal
    sold_by: UUID
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, model: AccessorySaleModel) -> AccessorySaleInfo:
        return cls(
            id=model.id,
            accessory_id=model.accessory_id,
            quantity_sold=model.quantity_sold,
            unit_price=model.unit_price,
            total_price=model.total_price,
            sold_by=model.sold_by,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class BillItemInfo:
    """One line of a bill."""

    position: int
    item_type: ItemType
    item_id: UUID
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    pricing_mode: PricingMode | None = None

    @classmethod
    def from_model(cls, model: BillItemModel) -> BillItemInfo:
        return cls(
            position=model.position,
            item_type=model.item_type_enum,
            item_id=model.item_id,
            quantity=model.quantity,
            unit_price=model.unit_price,
            total_price=model.total_price,
            pricing_mode=model.pricing_mode_enum,
        )


@dataclass(frozen=True)
class BillInfo:
    """
    A bill header with its ordered lines.

    Guarantees (as written by BillComposer):
        - subtotal == sum(item.total_price for item in items)
        - total_amount == subtotal + tax_amount
    """

    id: UUID
    bill_number: str
    repair_id: UUID | None
    customer_id: UUID
    currency: str
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    payment_status: PaymentStatus
    payment_method: str | None
    items: tuple[BillItemInfo, ...] = ()
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, model: BillModel) -> BillInfo:
        return cls(
            id=model.id,
            bill_number=model.bill_number,
            repair_id=model.repair_id,
            customer_id=model.customer_id,
            currency=model.currency,
            subtotal=model.subtotal,
            tax_rate=model.tax_rate,
            tax_amount=model.tax_amount,
            total_amount=model.total_amount,
            payment_status=model.payment_status_enum,
            payment_method=model.payment_method,
            items=tuple(BillItemInfo.from_model(i) for i in model.items),
            created_at=model.created_at,
        )
