"""
Module: shop_kernel.models.sales
Responsibility: ORM persistence for accessory point-of-sale debits.

Invariants enforced:
    - Append-only: a sale is never updated (db/immutability.py).
    - total_price == quantity_sold * unit_price.
    - A sale is independent of any bill.  Cart bills write a sale per line
      whose quantity and prices agree with the bill item.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from shop_kernel.db.base import TrackedBase, UUIDString


class AccessorySale(TrackedBase):
    """An accessory stock debit with its price snapshot and seller."""

    __tablename__ = "accessory_sales"

    __table_args__ = (
        CheckConstraint("quantity_sold > 0", name="ck_accessory_sales_quantity"),
        CheckConstraint("unit_price > 0", name="ck_accessory_sales_unit_price"),
        Index("idx_accessory_sales_accessory", "accessory_id"),
        Index("idx_accessory_sales_sold_by", "sold_by"),
    )

    accessory_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accessories.id"),
        nullable=False,
    )

    quantity_sold: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(nullable=False)

    total_price: Mapped[Decimal] = mapped_column(nullable=False)

    # Actor who performed the sale (auth layer user, no FK)
    sold_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<AccessorySale {self.id} accessory={self.accessory_id} "
            f"qty={self.quantity_sold} total={self.total_price}>"
        )
