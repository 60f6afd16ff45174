"""
RepairPartsTracker -- repair jobs and the parts they consume.

Responsibility:
    Creates repair jobs, moves them through their status lifecycle, and
    records part consumption.  Adding a part debits stock, removing it
    credits the same quantity back, and deleting a job credits back every
    usage.

Architecture position:
    Kernel > Services.  Uses InventoryLedger for every quantity change and
    domain/pricing.py for the price snapshot.  Runs inside the caller's unit
    of work; the repair row is locked for the duration of each mutation.

Invariants enforced:
    - A usage is written only after its stock reservation succeeded, in the
      same transaction.  A failed reservation leaves no usage behind.
    - Usage unit_price is the part's price for the chosen mode at the time
      of recording; total_price == quantity_used * unit_price.
    - Parts change only while the repair is pending or in_progress.
    - Status moves forward only (pending -> in_progress -> completed |
      cancelled) unless an explicit correction is requested.
    - A billed repair cannot change status and cannot be deleted.

Failure modes:
    - RepairNotFoundError, CustomerNotFoundError, StockItemNotFoundError.
    - InsufficientStockError from the ledger (nothing written).
    - InvalidRepairStateError for a closed repair or a forbidden transition.
    - RepairPartUsageNotFoundError when removing a part that was never added.
    - AlreadyBilledError when a bill references the repair.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import func, select

from shop_kernel.domain.dtos import RepairJobInfo, RepairPartUsageInfo
from shop_kernel.domain.pricing import line_total, parse_pricing_mode, resolve_unit_price
from shop_kernel.domain.values import (
    REPAIR_OPEN_STATUSES,
    REPAIR_TRANSITIONS,
    ItemType,
    PricingMode,
    RepairStatus,
    parse_enum,
)
from shop_kernel.exceptions import (
    AlreadyBilledError,
    CustomerNotFoundError,
    InvalidArgumentError,
    InvalidRepairStateError,
    RepairNotFoundError,
    RepairPartUsageNotFoundError,
)
from shop_kernel.logging_config import get_logger
from shop_kernel.models.billing import Bill
from shop_kernel.models.customer import Customer
from shop_kernel.models.repair import RepairJob, RepairPartUsage
from shop_kernel.services.base import BaseService
from shop_kernel.services.inventory_ledger import InventoryLedger

logger = get_logger("services.repair")


class RepairPartsTracker(BaseService):
    """
    Repair job lifecycle and part consumption.

    Contract:
        Every mutating method locks the repair row first, then validates,
        then touches stock.  Callers wrap each call in a unit of work.
    """

    def __init__(self, session, clock=None, ledger: InventoryLedger | None = None):
        super().__init__(session, clock)
        self.ledger = ledger or InventoryLedger(session, self.clock)

    # Lookups

    def _lock_repair(self, repair_id: UUID) -> RepairJob:
        repair = self.session.execute(
            select(RepairJob)
            .where(RepairJob.id == repair_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if repair is None:
            raise RepairNotFoundError(str(repair_id))
        return repair

    def _bill_id_for(self, repair_id: UUID) -> UUID | None:
        return self.session.execute(
            select(Bill.id).where(Bill.repair_id == repair_id)
        ).scalar_one_or_none()

    def _require_open(self, repair: RepairJob, operation: str) -> None:
        if repair.status_enum not in REPAIR_OPEN_STATUSES:
            raise InvalidRepairStateError(str(repair.id), repair.status, operation)

    def _usages(self, repair_id: UUID) -> list[RepairPartUsage]:
        return list(
            self.session.execute(
                select(RepairPartUsage)
                .where(RepairPartUsage.repair_id == repair_id)
                .order_by(RepairPartUsage.line_no)
            ).scalars()
        )

    # Lifecycle

    def create_repair(
        self,
        customer_id: UUID,
        device_model: str,
        reported_issue: str,
        actor_id: UUID,
        assigned_technician_id: UUID | None = None,
        estimated_completion_date: date | None = None,
        notes: str | None = None,
    ) -> RepairJobInfo:
        """Open a pending repair job for an existing customer."""
        if not device_model or not device_model.strip():
            raise InvalidArgumentError("device_model", device_model, "must not be empty")
        if not reported_issue or not reported_issue.strip():
            raise InvalidArgumentError("reported_issue", reported_issue, "must not be empty")
        if self.session.get(Customer, customer_id) is None:
            raise CustomerNotFoundError(str(customer_id))

        repair = RepairJob(
            customer_id=customer_id,
            device_model=device_model.strip(),
            reported_issue=reported_issue.strip(),
            assigned_technician_id=assigned_technician_id,
            estimated_completion_date=estimated_completion_date,
            notes=notes,
            status=RepairStatus.PENDING.value,
            created_by_id=actor_id,
        )
        self.session.add(repair)
        self.session.flush()

        logger.info(
            "repair_created",
            extra={"repair_id": str(repair.id), "customer_id": str(customer_id)},
        )
        return RepairJobInfo.from_model(repair)

    def get_repair(self, repair_id: UUID) -> RepairJobInfo:
        repair = self.session.get(RepairJob, repair_id)
        if repair is None:
            raise RepairNotFoundError(str(repair_id))
        return RepairJobInfo.from_model(repair)

    def set_status(
        self,
        repair_id: UUID,
        status: RepairStatus | str,
        actor_id: UUID,
        correction: bool = False,
    ) -> RepairJobInfo:
        """
        Move a repair to ``status``.

        Forward transitions follow REPAIR_TRANSITIONS.  With
        ``correction=True`` any transition is accepted (e.g. reopening a
        completed job to fix its parts) as long as no bill exists.

        Raises:
            AlreadyBilledError: A bill references the repair.
            InvalidRepairStateError: Transition not allowed.
        """
        target = parse_enum(RepairStatus, status, "status")
        repair = self._lock_repair(repair_id)

        bill_id = self._bill_id_for(repair.id)
        if bill_id is not None:
            raise AlreadyBilledError(str(repair.id), str(bill_id))

        current = repair.status_enum
        if current is target:
            return RepairJobInfo.from_model(repair)

        if target not in REPAIR_TRANSITIONS[current] and not correction:
            raise InvalidRepairStateError(
                str(repair.id), current.value, f"transition to '{target.value}'",
            )

        repair.status = target.value
        if target is RepairStatus.COMPLETED:
            repair.completed_at = self.clock.now()
        elif current is RepairStatus.COMPLETED:
            repair.completed_at = None
        repair.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "repair_status_changed",
            extra={
                "repair_id": str(repair.id),
                "from_status": current.value,
                "to_status": target.value,
                "correction": correction,
            },
        )
        return RepairJobInfo.from_model(repair)

    # Part consumption

    def add_part(
        self,
        repair_id: UUID,
        part_id: UUID,
        quantity_used: int,
        pricing_mode: PricingMode | str,
        actor_id: UUID,
    ) -> RepairPartUsageInfo:
        """
        Consume ``quantity_used`` units of a part on a repair.

        Steps, all in the caller's unit of work:
            1. Lock the repair and check it is open.
            2. Lock the part and snapshot its price for ``pricing_mode``.
            3. Reserve the stock (fails without side effects if short).
            4. Persist the usage as the repair's next line.
        """
        mode = parse_pricing_mode(pricing_mode)
        if isinstance(quantity_used, bool) or not isinstance(quantity_used, int) or quantity_used <= 0:
            raise InvalidArgumentError("quantity_used", quantity_used, "must be a positive integer")

        repair = self._lock_repair(repair_id)
        self._require_open(repair, "adding parts")

        part = self.ledger.lock_item(ItemType.PART, part_id)
        unit_price = resolve_unit_price(part, mode)
        self.ledger.reserve(ItemType.PART, part_id, quantity_used, actor_id)

        last_line = self.session.execute(
            select(func.max(RepairPartUsage.line_no))
            .where(RepairPartUsage.repair_id == repair.id)
        ).scalar()

        usage = RepairPartUsage(
            repair_id=repair.id,
            part_id=part.id,
            line_no=(last_line or 0) + 1,
            quantity_used=quantity_used,
            pricing_mode=mode.value,
            unit_price=unit_price,
            total_price=line_total(unit_price, quantity_used),
            created_by_id=actor_id,
        )
        self.session.add(usage)
        self.session.flush()

        logger.info(
            "repair_part_added",
            extra={
                "repair_id": str(repair.id),
                "part_id": str(part.id),
                "quantity_used": quantity_used,
                "pricing_mode": mode.value,
                "unit_price": unit_price,
                "total_price": usage.total_price,
            },
        )
        return RepairPartUsageInfo.from_model(usage)

    def remove_part(
        self,
        repair_id: UUID,
        part_id: UUID,
        actor_id: UUID,
    ) -> RepairPartUsageInfo:
        """
        Undo the most recent usage of ``part_id`` on the repair.

        Credits back exactly the quantity that usage debited and deletes it.

        Returns:
            Snapshot of the removed usage.
        """
        repair = self._lock_repair(repair_id)
        self._require_open(repair, "removing parts")

        usage = self.session.execute(
            select(RepairPartUsage)
            .where(
                RepairPartUsage.repair_id == repair.id,
                RepairPartUsage.part_id == part_id,
            )
            .order_by(RepairPartUsage.line_no.desc())
            .limit(1)
        ).scalar_one_or_none()
        if usage is None:
            raise RepairPartUsageNotFoundError(str(repair.id), str(part_id))

        removed = RepairPartUsageInfo.from_model(usage)
        self.ledger.release(ItemType.PART, part_id, usage.quantity_used, actor_id)
        self.session.delete(usage)
        self.session.flush()

        logger.info(
            "repair_part_removed",
            extra={
                "repair_id": str(repair.id),
                "part_id": str(part_id),
                "quantity_released": removed.quantity_used,
                "line_no": removed.line_no,
            },
        )
        return removed

    def delete_repair(self, repair_id: UUID, actor_id: UUID) -> list[RepairPartUsageInfo]:
        """
        Delete a repair, crediting back every part it consumed.

        Fails before touching anything if a bill references the repair.

        Returns:
            Snapshots of the usages that were released.
        """
        repair = self._lock_repair(repair_id)

        bill_id = self._bill_id_for(repair.id)
        if bill_id is not None:
            raise AlreadyBilledError(str(repair.id), str(bill_id))

        released = []
        for usage in self._usages(repair.id):
            released.append(RepairPartUsageInfo.from_model(usage))
            self.ledger.release(ItemType.PART, usage.part_id, usage.quantity_used, actor_id)
            self.session.delete(usage)

        self.session.delete(repair)
        self.session.flush()

        logger.info(
            "repair_deleted",
            extra={
                "repair_id": str(repair_id),
                "usages_released": len(released),
                "deleted_by": str(actor_id),
            },
        )
        return released

    def list_usages(self, repair_id: UUID) -> list[RepairPartUsageInfo]:
        """Usages of a repair in recorded order."""
        if self.session.get(RepairJob, repair_id) is None:
            raise RepairNotFoundError(str(repair_id))
        return [RepairPartUsageInfo.from_model(u) for u in self._usages(repair_id)]
