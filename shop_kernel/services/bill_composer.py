"""
BillComposer -- bills from a completed repair or from an accessory cart.

Responsibility:
    Builds a Bill with its BillItems, computes subtotal/tax/total through
    domain/pricing.py, allocates the bill number, updates payment metadata
    and deletes bills.

Architecture position:
    Kernel > Services.  Uses SequenceService for bill numbers,
    InventoryLedger and AccessorySaleRecorder for cart bills.  Runs inside
    the caller's unit of work.

Invariants enforced:
    - A repair has at most one bill.  Checked under the repair row lock,
      backed by the unique constraint on bills.repair_id.
    - subtotal == sum(item.total_price), tax_amount == round(subtotal *
      tax_rate / 100), total_amount == subtotal + tax_amount.
    - Repair bills never touch stock; the parts were debited when added.
    - Cart bills check every line against locked stock before the first
      write, so a short line late in the cart leaves nothing behind.
    - Bill numbers come from the locked "bill_number" counter:
      ``{prefix}-{YYYYMMDD}-{sequence:06d}``.

Failure modes:
    - RepairNotFoundError, CustomerNotFoundError, BillNotFoundError,
      StockItemNotFoundError.
    - InvalidRepairStateError: repair is not completed.
    - AlreadyBilledError: repair already has a bill.
    - EmptyBillError: repair without usages, or an empty cart.
    - InsufficientStockError: a cart line exceeds stock (nothing written).
    - InvalidArgumentError: bad quantity, tax rate or payment status.

Notes:
    Deleting a bill removes the bill and its items only.  Stock debits,
    accessory sales and repair usages stay as they are: a bill deletion
    corrects the financial record, it does not return goods to the shelf.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from shop_kernel.domain.dtos import BillInfo, CartLine
from shop_kernel.domain.pricing import (
    compute_bill_totals,
    line_total,
    resolve_unit_price,
    validate_tax_rate,
)
from shop_kernel.domain.values import ItemType, PaymentStatus, RepairStatus, parse_enum
from shop_kernel.exceptions import (
    AlreadyBilledError,
    BillNotFoundError,
    CustomerNotFoundError,
    EmptyBillError,
    InsufficientStockError,
    InvalidArgumentError,
    InvalidRepairStateError,
    RepairNotFoundError,
)
from shop_kernel.logging_config import get_logger
from shop_kernel.models.billing import Bill, BillItem
from shop_kernel.models.customer import Customer
from shop_kernel.models.repair import RepairJob, RepairPartUsage
from shop_kernel.services.accessory_sales_service import AccessorySaleRecorder
from shop_kernel.services.base import BaseService
from shop_kernel.services.inventory_ledger import InventoryLedger
from shop_kernel.services.sequence_service import SequenceService

logger = get_logger("services.bill_composer")


@dataclass(frozen=True)
class BillingSettings:
    """Shop-wide billing parameters (built from configuration)."""

    currency: str = "USD"
    default_tax_rate: Decimal = Decimal("0")
    bill_number_prefix: str = "BILL"


def _cart_line(raw) -> CartLine:
    if isinstance(raw, CartLine):
        line = raw
    elif isinstance(raw, Mapping):
        try:
            line = CartLine(accessory_id=raw["accessory_id"], quantity=raw["quantity"])
        except KeyError as exc:
            raise InvalidArgumentError("lines", raw, f"missing {exc.args[0]}") from None
    else:
        raise InvalidArgumentError("lines", raw, "expected accessory_id and quantity")

    quantity = line.quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidArgumentError("quantity", quantity, "must be a positive integer")
    try:
        accessory_id = UUID(str(line.accessory_id))
    except ValueError:
        raise InvalidArgumentError("accessory_id", line.accessory_id, "must be a UUID") from None
    return CartLine(accessory_id=accessory_id, quantity=quantity)


class BillComposer(BaseService):
    """
    Bill construction, payment metadata and deletion.

    Contract:
        Each generate_* call writes one Bill plus its items (and, for
        carts, the stock debits and sales) and flushes.  The caller's unit
        of work commits or discards all of it together.
    """

    def __init__(
        self,
        session,
        clock=None,
        settings: BillingSettings | None = None,
        ledger: InventoryLedger | None = None,
        recorder: AccessorySaleRecorder | None = None,
    ):
        super().__init__(session, clock)
        self.settings = settings or BillingSettings()
        self.ledger = ledger or InventoryLedger(session, self.clock)
        self.recorder = recorder or AccessorySaleRecorder(session, self.clock, self.ledger)
        self.sequences = SequenceService(session)

    def _next_bill_number(self) -> str:
        seq = self.sequences.next_value(SequenceService.BILL_NUMBER)
        return f"{self.settings.bill_number_prefix}-{self.clock.today():%Y%m%d}-{seq:06d}"

    def _tax_rate(self, tax_rate) -> Decimal:
        if tax_rate is None:
            tax_rate = self.settings.default_tax_rate
        return validate_tax_rate(tax_rate)

    def _get_bill(self, bill_id: UUID) -> Bill:
        bill = self.session.get(Bill, bill_id)
        if bill is None:
            raise BillNotFoundError(str(bill_id))
        return bill

    def generate_from_repair(
        self,
        repair_id: UUID,
        actor_id: UUID,
        tax_rate: Decimal | int | str | None = None,
        payment_method: str | None = None,
    ) -> BillInfo:
        """
        Bill a completed repair for the parts it consumed.

        One ``part`` item per usage, in recorded order, carrying the usage's
        pricing mode and price snapshot.
        """
        rate = self._tax_rate(tax_rate)

        repair = self.session.execute(
            select(RepairJob)
            .where(RepairJob.id == repair_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if repair is None:
            raise RepairNotFoundError(str(repair_id))

        if repair.status_enum is not RepairStatus.COMPLETED:
            raise InvalidRepairStateError(str(repair.id), repair.status, "billing")

        existing = self.session.execute(
            select(Bill.id).where(Bill.repair_id == repair.id)
        ).scalar_one_or_none()
        if existing is not None:
            raise AlreadyBilledError(str(repair.id), str(existing))

        usages = list(
            self.session.execute(
                select(RepairPartUsage)
                .where(RepairPartUsage.repair_id == repair.id)
                .order_by(RepairPartUsage.line_no)
            ).scalars()
        )
        if not usages:
            raise EmptyBillError("repair has no recorded parts")

        totals = compute_bill_totals([u.total_price for u in usages], rate)
        bill = Bill(
            bill_number=self._next_bill_number(),
            repair_id=repair.id,
            customer_id=repair.customer_id,
            currency=self.settings.currency,
            subtotal=totals.subtotal,
            tax_rate=rate,
            tax_amount=totals.tax_amount,
            total_amount=totals.total_amount,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=payment_method,
            created_by_id=actor_id,
            items=[
                BillItem(
                    position=position,
                    item_type=ItemType.PART.value,
                    item_id=usage.part_id,
                    quantity=usage.quantity_used,
                    unit_price=usage.unit_price,
                    total_price=usage.total_price,
                    pricing_mode=usage.pricing_mode,
                    created_by_id=actor_id,
                )
                for position, usage in enumerate(usages, start=1)
            ],
        )
        self.session.add(bill)
        self.session.flush()

        logger.info(
            "bill_generated",
            extra={
                "bill_id": str(bill.id),
                "bill_number": bill.bill_number,
                "source": "repair",
                "repair_id": str(repair.id),
                "item_count": len(usages),
                "subtotal": totals.subtotal,
                "tax_amount": totals.tax_amount,
                "total_amount": totals.total_amount,
            },
        )
        return BillInfo.from_model(bill)

    def generate_for_accessories(
        self,
        customer_id: UUID,
        lines: Iterable[CartLine | Mapping],
        actor_id: UUID,
        tax_rate: Decimal | int | str | None = None,
        payment_method: str | None = None,
    ) -> BillInfo:
        """
        Bill an accessory cart at canonical prices and take the stock.

        Pass 1 (no writes): validate every line, lock the accessories in id
        order and check the cart's aggregate demand per accessory.
        Pass 2: bill header, then per line a BillItem, a stock debit and an
        AccessorySale.
        """
        rate = self._tax_rate(tax_rate)
        cart = [_cart_line(raw) for raw in lines]
        if not cart:
            raise EmptyBillError("cart is empty")

        if self.session.get(Customer, customer_id) is None:
            raise CustomerNotFoundError(str(customer_id))

        demand: dict[UUID, int] = {}
        for line in cart:
            demand[line.accessory_id] = demand.get(line.accessory_id, 0) + line.quantity

        accessories = self.ledger.lock_items(ItemType.ACCESSORY, demand.keys())
        for accessory_id, requested in demand.items():
            accessory = accessories[accessory_id]
            if requested > accessory.quantity:
                raise InsufficientStockError(
                    ItemType.ACCESSORY.value, str(accessory_id), requested, accessory.quantity,
                )
            if accessory.price <= 0:
                raise InvalidArgumentError(
                    "price", accessory.price, f"accessory {accessory_id} has no sale price",
                )

        priced = []
        for line in cart:
            unit_price = resolve_unit_price(accessories[line.accessory_id])
            priced.append((line, unit_price, line_total(unit_price, line.quantity)))
        totals = compute_bill_totals([total for _, _, total in priced], rate)

        bill = Bill(
            bill_number=self._next_bill_number(),
            repair_id=None,
            customer_id=customer_id,
            currency=self.settings.currency,
            subtotal=totals.subtotal,
            tax_rate=rate,
            tax_amount=totals.tax_amount,
            total_amount=totals.total_amount,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=payment_method,
            created_by_id=actor_id,
        )
        self.session.add(bill)

        for position, (line, unit_price, total) in enumerate(priced, start=1):
            bill.items.append(
                BillItem(
                    position=position,
                    item_type=ItemType.ACCESSORY.value,
                    item_id=line.accessory_id,
                    quantity=line.quantity,
                    unit_price=unit_price,
                    total_price=total,
                    pricing_mode=None,
                    created_by_id=actor_id,
                )
            )
            self.ledger.reserve(ItemType.ACCESSORY, line.accessory_id, line.quantity, actor_id)
            self.recorder.record_sale(
                accessories[line.accessory_id], line.quantity, unit_price, actor_id,
            )

        self.session.flush()

        logger.info(
            "bill_generated",
            extra={
                "bill_id": str(bill.id),
                "bill_number": bill.bill_number,
                "source": "accessory_cart",
                "customer_id": str(customer_id),
                "item_count": len(priced),
                "subtotal": totals.subtotal,
                "tax_amount": totals.tax_amount,
                "total_amount": totals.total_amount,
            },
        )
        return BillInfo.from_model(bill)

    def set_payment_status(
        self,
        bill_id: UUID,
        status: PaymentStatus | str,
        payment_method: str | None,
        actor_id: UUID,
    ) -> BillInfo:
        """
        Record payment progress.  Metadata only, no stock effect.

        The method is replaced on every update; None or "" clears it.
        """
        target = parse_enum(PaymentStatus, status, "payment_status")
        bill = self._get_bill(bill_id)

        previous = bill.payment_status
        bill.payment_status = target.value
        bill.payment_method = payment_method or None
        bill.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "bill_payment_updated",
            extra={
                "bill_id": str(bill.id),
                "from_status": previous,
                "to_status": target.value,
                "payment_method": bill.payment_method,
            },
        )
        return BillInfo.from_model(bill)

    def delete_bill(self, bill_id: UUID, actor_id: UUID) -> BillInfo:
        """
        Delete a bill and its items.

        Stock, sales and usages are left untouched.

        Returns:
            Snapshot of the deleted bill.
        """
        bill = self._get_bill(bill_id)
        snapshot = BillInfo.from_model(bill)

        self.session.delete(bill)
        self.session.flush()

        logger.info(
            "bill_deleted",
            extra={
                "bill_id": str(bill_id),
                "bill_number": snapshot.bill_number,
                "repair_id": str(snapshot.repair_id) if snapshot.repair_id else None,
                "deleted_by": str(actor_id),
            },
        )
        return snapshot
