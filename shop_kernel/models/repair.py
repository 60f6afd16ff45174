"""
Module: shop_kernel.models.repair
Responsibility: ORM persistence for repair jobs and the parts they consumed.
Architecture position: Kernel > Models.  May import from db/ and
    domain/values.py only.

Invariants enforced:
    - RepairPartUsage is append-only: unit_price and total_price are a
      snapshot of the part's price for the chosen mode at recording time.
      Later price changes on the Part never alter it.  Updates are refused
      by the ORM listener in db/immutability.py.
    - total_price == quantity_used * unit_price (written by the tracker).
    - quantity_used > 0 and pricing_mode in (repair, seal) at the database.
    - line_no orders a repair's usages; the most recent usage of a part is
      the one with the highest line_no.

Failure modes:
    - IntegrityError on a usage pointing at a missing repair or part.
    - ImmutabilityViolationError on any UPDATE of a usage row.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shop_kernel.db.base import TrackedBase, UUIDString
from shop_kernel.domain.values import PricingMode, RepairStatus


class RepairJob(TrackedBase):
    """
    A device repair for a customer.

    Guarantees:
        - status is one of RepairStatus values.
        - completed_at is stamped when the job enters COMPLETED.
        - usages are ordered by line_no.

    Non-goals:
        - Transition rules are enforced by RepairPartsTracker, not here.
    """

    __tablename__ = "repairs"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed', 'cancelled')",
            name="ck_repairs_status",
        ),
        Index("idx_repairs_customer", "customer_id"),
        Index("idx_repairs_status", "status"),
    )

    customer_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("customers.id"),
        nullable=False,
    )

    device_model: Mapped[str] = mapped_column(String(200), nullable=False)

    reported_issue: Mapped[str] = mapped_column(String(2000), nullable=False)

    # Technician user, owned by the auth layer (no FK)
    assigned_technician_id: Mapped[UUID | None] = mapped_column(nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=RepairStatus.PENDING.value,
    )

    estimated_completion_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    usages: Mapped[list["RepairPartUsage"]] = relationship(
        back_populates="repair",
        cascade="all, delete-orphan",
        order_by="RepairPartUsage.line_no",
    )

    @property
    def status_enum(self) -> RepairStatus:
        """Return status as RepairStatus enum (normalizes raw DB strings)."""
        if isinstance(self.status, RepairStatus):
            return self.status
        return RepairStatus(self.status)

    def __repr__(self) -> str:
        return f"<RepairJob {self.id} status={self.status}>"


class RepairPartUsage(TrackedBase):
    """
    A quantity of a part consumed by a repair, with its price snapshot.

    Maps to the ``repair_parts`` table.
    """

    __tablename__ = "repair_parts"

    __table_args__ = (
        UniqueConstraint("repair_id", "line_no", name="uq_repair_parts_line"),
        CheckConstraint("quantity_used > 0", name="ck_repair_parts_quantity"),
        CheckConstraint(
            "pricing_mode IN ('repair', 'seal')",
            name="ck_repair_parts_pricing_mode",
        ),
        Index("idx_repair_parts_repair", "repair_id"),
        Index("idx_repair_parts_part", "part_id"),
    )

    repair_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("repairs.id"),
        nullable=False,
    )

    part_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("parts.id"),
        nullable=False,
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    quantity_used: Mapped[int] = mapped_column(Integer, nullable=False)

    pricing_mode: Mapped[str] = mapped_column(String(10), nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(nullable=False)

    total_price: Mapped[Decimal] = mapped_column(nullable=False)

    repair: Mapped[RepairJob] = relationship(back_populates="usages")

    @property
    def pricing_mode_enum(self) -> PricingMode:
        if isinstance(self.pricing_mode, PricingMode):
            return self.pricing_mode
        return PricingMode(self.pricing_mode)

    def __repr__(self) -> str:
        return (
            f"<RepairPartUsage {self.id} repair={self.repair_id} part={self.part_id} "
            f"qty={self.quantity_used} mode={self.pricing_mode}>"
        )
