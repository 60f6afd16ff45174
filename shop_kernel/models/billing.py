"""
Module: shop_kernel.models.billing
Responsibility: ORM persistence for bills and their line items.
Architecture position: Kernel > Models.  May import from db/ and
    domain/values.py only.

Invariants enforced:
    - bill_number is unique (uq constraint, allocated from a locked counter).
    - repair_id is unique when present: a repair has at most one bill.
      The composer checks first; the constraint settles races.
    - subtotal == sum(item.total_price); total_amount == subtotal + tax_amount.
      Written once by BillComposer, never recomputed here.
    - pricing_mode is present exactly when item_type is 'part'.
    - item_id is polymorphic over parts/accessories and carries no FK.

Failure modes:
    - IntegrityError on a duplicate bill_number or a second bill for the
      same repair.  TransactionCoordinator maps it to ConflictError.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shop_kernel.db.base import TrackedBase, UUIDString
from shop_kernel.domain.values import ItemType, PaymentStatus, PricingMode


class Bill(TrackedBase):
    """
    A bill for a completed repair or for an accessory cart.

    Guarantees:
        - items are ordered by position.
        - Deleting a bill deletes its items (ORM cascade and ON DELETE CASCADE).
        - Deleting a bill never touches stock, usages or sales.
    """

    __tablename__ = "bills"

    __table_args__ = (
        UniqueConstraint("bill_number", name="uq_bills_number"),
        UniqueConstraint("repair_id", name="uq_bills_repair"),
        CheckConstraint(
            "payment_status IN ('pending', 'partial', 'paid')",
            name="ck_bills_payment_status",
        ),
        CheckConstraint("subtotal >= 0", name="ck_bills_subtotal"),
        CheckConstraint("tax_rate >= 0 AND tax_rate <= 100", name="ck_bills_tax_rate"),
        Index("idx_bills_customer", "customer_id"),
        Index("idx_bills_payment_status", "payment_status"),
    )

    bill_number: Mapped[str] = mapped_column(String(50), nullable=False)

    # Null for accessory cart bills
    repair_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("repairs.id"),
        nullable=True,
    )

    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("customers.id"),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(nullable=False)

    # Percentage, e.g. 8.5 means 8.5%
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)

    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    payment_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING.value,
    )

    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)

    items: Mapped[list["BillItem"]] = relationship(
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="BillItem.position",
        passive_deletes=True,
    )

    @property
    def payment_status_enum(self) -> PaymentStatus:
        if isinstance(self.payment_status, PaymentStatus):
            return self.payment_status
        return PaymentStatus(self.payment_status)

    @property
    def is_repair_bill(self) -> bool:
        return self.repair_id is not None

    def __repr__(self) -> str:
        return f"<Bill {self.bill_number} total={self.total_amount}>"


class BillItem(TrackedBase):
    """One priced line of a bill."""

    __tablename__ = "bill_items"

    __table_args__ = (
        UniqueConstraint("bill_id", "position", name="uq_bill_items_position"),
        CheckConstraint("quantity > 0", name="ck_bill_items_quantity"),
        CheckConstraint(
            "item_type IN ('part', 'accessory')",
            name="ck_bill_items_item_type",
        ),
        CheckConstraint(
            "(item_type = 'part' AND pricing_mode IS NOT NULL "
            "AND pricing_mode IN ('repair', 'seal')) "
            "OR (item_type = 'accessory' AND pricing_mode IS NULL)",
            name="ck_bill_items_pricing_mode",
        ),
        Index("idx_bill_items_bill", "bill_id"),
    )

    bill_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("bills.id", ondelete="CASCADE"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    item_type: Mapped[str] = mapped_column(String(20), nullable=False)

    # Part or accessory id, by item_type (no FK)
    item_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(nullable=False)

    total_price: Mapped[Decimal] = mapped_column(nullable=False)

    pricing_mode: Mapped[str | None] = mapped_column(String(10), nullable=True)

    bill: Mapped[Bill] = relationship(back_populates="items")

    @property
    def item_type_enum(self) -> ItemType:
        return ItemType(self.item_type)

    @property
    def pricing_mode_enum(self) -> PricingMode | None:
        if self.pricing_mode is None:
            return None
        return PricingMode(self.pricing_mode)

    def __repr__(self) -> str:
        return (
            f"<BillItem {self.position} {self.item_type}:{self.item_id} "
            f"qty={self.quantity} total={self.total_price}>"
        )
