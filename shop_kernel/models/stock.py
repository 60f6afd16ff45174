"""
Module: shop_kernel.models.stock
Responsibility: ORM persistence for stocked items: parts (dual pricing) and
    accessories (single price).  Together they form the StockItem concept
    owned by the inventory ledger.
Architecture position: Kernel > Models.  May import from db/ and
    domain/values.py only.

Invariants enforced:
    - quantity >= 0 (ck_*_quantity_non_negative).  The ledger checks
      sufficiency under a row lock before every debit; the constraint is
      the last line.
    - Prices are Decimal Numeric(12, 2), never float, and never negative.
    - quantity is mutated only through InventoryLedger.

Failure modes:
    - IntegrityError on a negative quantity or price reaching the database.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from shop_kernel.db.base import TrackedBase
from shop_kernel.domain.values import ItemType

DEFAULT_MIN_QUANTITY = 5


class StockItemMixin:
    """Columns and behavior shared by parts and accessories."""

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    # Quantity on hand, whole units
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Low-stock threshold (read-only signaling)
    min_quantity: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_MIN_QUANTITY,
    )

    @property
    def is_low_stock(self) -> bool:
        """True when quantity has fallen to or below the threshold."""
        return self.quantity <= self.min_quantity


class Part(StockItemMixin, TrackedBase):
    """
    Repair part with a repair price and a sealing price.

    Guarantees:
        - repair_price and sealing_price are both required.
        - box_id references a storage box owned outside the kernel (no FK).
    """

    __tablename__ = "parts"

    item_type = ItemType.PART

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_parts_quantity_non_negative"),
        CheckConstraint("repair_price >= 0", name="ck_parts_repair_price"),
        CheckConstraint("sealing_price >= 0", name="ck_parts_sealing_price"),
        Index("idx_parts_box", "box_id"),
    )

    # Storage box reference (no FK)
    box_id: Mapped[UUID | None] = mapped_column(nullable=True)

    repair_price: Mapped[Decimal] = mapped_column(nullable=False)

    sealing_price: Mapped[Decimal] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<Part {self.id} {self.name!r} qty={self.quantity}>"


class Accessory(StockItemMixin, TrackedBase):
    """Accessory sold over the counter at a single canonical price."""

    __tablename__ = "accessories"

    item_type = ItemType.ACCESSORY

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_accessories_quantity_non_negative"),
        CheckConstraint("price >= 0", name="ck_accessories_price"),
    )

    price: Mapped[Decimal] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<Accessory {self.id} {self.name!r} qty={self.quantity}>"


STOCK_MODELS: dict[ItemType, type[Part] | type[Accessory]] = {
    ItemType.PART: Part,
    ItemType.ACCESSORY: Accessory,
}
