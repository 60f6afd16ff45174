"""
Module: shop_kernel.models.customer
Responsibility: Minimal customer record.  Repairs and bills reference it;
    customer maintenance itself lives outside the kernel.
"""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from shop_kernel.db.base import TrackedBase


class Customer(TrackedBase):
    """Customer the shop repairs devices for or sells accessories to."""

    __tablename__ = "customers"

    __table_args__ = (
        Index("idx_customer_phone", "phone"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    email: Mapped[str | None] = mapped_column(String(200), nullable=True)

    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<Customer {self.id} {self.name!r}>"
