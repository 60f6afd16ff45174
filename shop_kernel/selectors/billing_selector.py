"""
Module: shop_kernel.selectors.billing_selector
Responsibility: Read access to bills and their items.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from shop_kernel.domain.dtos import BillInfo
from shop_kernel.domain.values import PaymentStatus, parse_enum
from shop_kernel.exceptions import BillNotFoundError
from shop_kernel.models.billing import Bill
from shop_kernel.selectors.base import BaseSelector


class BillSelector(BaseSelector):
    """Bill lookups."""

    def get(self, bill_id: UUID) -> BillInfo:
        """
        Bill with its items in position order.

        Raises:
            BillNotFoundError: No bill with that id.
        """
        bill = self.session.execute(
            select(Bill).where(Bill.id == bill_id).options(selectinload(Bill.items))
        ).scalar_one_or_none()
        if bill is None:
            raise BillNotFoundError(str(bill_id))
        return BillInfo.from_model(bill)

    def get_by_number(self, bill_number: str) -> BillInfo | None:
        bill = self.session.execute(
            select(Bill)
            .where(Bill.bill_number == bill_number)
            .options(selectinload(Bill.items))
        ).scalar_one_or_none()
        return BillInfo.from_model(bill) if bill else None

    def for_repair(self, repair_id: UUID) -> BillInfo | None:
        """The bill of a repair, if it has been billed."""
        bill = self.session.execute(
            select(Bill)
            .where(Bill.repair_id == repair_id)
            .options(selectinload(Bill.items))
        ).scalar_one_or_none()
        return BillInfo.from_model(bill) if bill else None

    def list_bills(
        self,
        customer_id: UUID | None = None,
        payment_status: PaymentStatus | str | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        limit: int = 100,
    ) -> list[BillInfo]:
        """Bills matching every given filter, newest first."""
        query = select(Bill).options(selectinload(Bill.items))
        if customer_id is not None:
            query = query.where(Bill.customer_id == customer_id)
        if payment_status is not None:
            status = parse_enum(PaymentStatus, payment_status, "payment_status")
            query = query.where(Bill.payment_status == status.value)
        if created_from is not None:
            query = query.where(Bill.created_at >= created_from)
        if created_to is not None:
            query = query.where(Bill.created_at <= created_to)
        query = query.order_by(Bill.created_at.desc(), Bill.bill_number.desc()).limit(limit)
        return [BillInfo.from_model(b) for b in self.session.execute(query).scalars()]
