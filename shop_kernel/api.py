"""
Operation facade -- one call per operation the request layer exposes.

Responsibility:
    Checks the actor's role, runs the operation in its own unit of work and
    returns an OperationResult instead of raising.  Kernel errors become a
    failed result carrying the error code; anything else propagates.

Architecture position:
    Kernel > API.  Outermost kernel layer.  The HTTP adapter (out of scope)
    authenticates, parses payloads and maps results to responses.

Role gates:
    sell / bill / payment                 admin, cashier
    repair parts / repair jobs / status   admin, technician
    part stock adjust                     admin, technician
    accessory stock adjust                admin
    delete repair / delete bill           admin
    read bill                             any role

Usage:
    ops = ShopOperations(get_session_factory(), settings=billing_settings)
    result = ops.sell_accessory(actor, accessory_id, quantity=2, unit_price="15.00")
    if not result.is_success:
        respond(status=409, code=result.error_code, message=result.message)
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Callable
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from shop_kernel.domain.clock import Clock
from shop_kernel.domain.dtos import CartLine
from shop_kernel.domain.values import ItemType, Role, parse_enum
from shop_kernel.exceptions import PermissionDeniedError, ShopKernelError
from shop_kernel.logging_config import LogContext, get_logger
from shop_kernel.selectors.billing_selector import BillSelector
from shop_kernel.services.accessory_sales_service import AccessorySaleRecorder
from shop_kernel.services.bill_composer import BillComposer, BillingSettings
from shop_kernel.services.inventory_ledger import InventoryLedger
from shop_kernel.services.repair_service import RepairPartsTracker
from shop_kernel.services.transaction import TransactionCoordinator

logger = get_logger("api")

_ADMIN = frozenset({Role.ADMIN})
_TECHNICIAN = frozenset({Role.ADMIN, Role.TECHNICIAN})
_CASHIER = frozenset({Role.ADMIN, Role.CASHIER})
_ANY = frozenset(Role)

OPERATION_ROLES: dict[str, frozenset[Role]] = {
    "sell_accessory": _CASHIER,
    "generate_bill_from_repair": _CASHIER,
    "generate_accessory_bill": _CASHIER,
    "update_bill_payment_status": _CASHIER,
    "add_repair_part": _TECHNICIAN,
    "remove_repair_part": _TECHNICIAN,
    "create_repair_job": _TECHNICIAN,
    "update_repair_status": _TECHNICIAN,
    "delete_repair_job": _ADMIN,
    "delete_bill": _ADMIN,
    "get_bill": _ANY,
}

# Stock overrides are gated by what is being adjusted
ADJUST_ROLES: dict[ItemType, frozenset[Role]] = {
    ItemType.PART: _TECHNICIAN,
    ItemType.ACCESSORY: _ADMIN,
}


@dataclass(frozen=True)
class Actor:
    """Already-authenticated caller."""

    actor_id: UUID
    role: Role | str


class OperationStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class OperationResult:
    """
    Outcome of one facade call.

    On success ``data`` holds the operation's DTO; on failure
    ``error_code`` is the kernel error's code and ``error`` the exception.
    """

    status: OperationStatus
    data: Any = None
    error_code: str | None = None
    message: str | None = None
    error: ShopKernelError | None = None

    @property
    def is_success(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    @classmethod
    def success(cls, data: Any = None) -> "OperationResult":
        return cls(status=OperationStatus.SUCCESS, data=data)

    @classmethod
    def failure(cls, error: ShopKernelError) -> "OperationResult":
        return cls(
            status=OperationStatus.FAILED,
            error_code=error.code,
            message=str(error),
            error=error,
        )


class ShopOperations:
    """Synchronous entry points for the request layer."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: BillingSettings | None = None,
        clock: Clock | None = None,
    ):
        self._coordinator = TransactionCoordinator(session_factory)
        self._settings = settings or BillingSettings()
        self._clock = clock

    # Plumbing

    def _authorize(self, actor: Actor, operation: str, allowed: frozenset[Role]) -> None:
        role = parse_enum(Role, actor.role, "role")
        if role not in allowed:
            raise PermissionDeniedError(str(actor.actor_id), role.value, operation)

    def _execute(
        self,
        operation: str,
        actor: Actor,
        fn: Callable[[Session], Any],
        allowed: frozenset[Role] | None = None,
        **context: Any,
    ) -> OperationResult:
        correlation_id = LogContext.get_all().get("correlation_id") or str(uuid4())
        with LogContext.bind(
            correlation_id=correlation_id,
            actor_id=actor.actor_id,
            operation=operation,
            **context,
        ):
            try:
                self._authorize(actor, operation, allowed or OPERATION_ROLES[operation])
                with self._coordinator.unit_of_work(operation) as session:
                    data = fn(session)
            except ShopKernelError as exc:
                logger.warning(
                    "operation_failed",
                    extra={"error_code": exc.code, "error_message": str(exc)},
                )
                return OperationResult.failure(exc)

            logger.info("operation_succeeded")
            return OperationResult.success(data)

    def _composer(self, session: Session) -> BillComposer:
        return BillComposer(session, self._clock, settings=self._settings)

    # Sales and billing

    def sell_accessory(
        self,
        actor: Actor,
        accessory_id: UUID,
        quantity: int,
        unit_price: Decimal | int | str,
    ) -> OperationResult:
        return self._execute(
            "sell_accessory",
            actor,
            lambda s: AccessorySaleRecorder(s, self._clock).sell(
                accessory_id, quantity, unit_price, actor.actor_id,
            ),
        )

    def generate_bill_from_repair(
        self,
        actor: Actor,
        repair_id: UUID,
        tax_rate: Decimal | int | str | None = None,
        payment_method: str | None = None,
    ) -> OperationResult:
        return self._execute(
            "generate_bill_from_repair",
            actor,
            lambda s: self._composer(s).generate_from_repair(
                repair_id, actor.actor_id, tax_rate=tax_rate, payment_method=payment_method,
            ),
            repair_id=repair_id,
        )

    def generate_accessory_bill(
        self,
        actor: Actor,
        customer_id: UUID,
        lines: Iterable[CartLine | Mapping],
        tax_rate: Decimal | int | str | None = None,
        payment_method: str | None = None,
    ) -> OperationResult:
        cart = list(lines)
        return self._execute(
            "generate_accessory_bill",
            actor,
            lambda s: self._composer(s).generate_for_accessories(
                customer_id, cart, actor.actor_id, tax_rate=tax_rate, payment_method=payment_method,
            ),
        )

    def update_bill_payment_status(
        self,
        actor: Actor,
        bill_id: UUID,
        payment_status: str,
        payment_method: str | None = None,
    ) -> OperationResult:
        return self._execute(
            "update_bill_payment_status",
            actor,
            lambda s: self._composer(s).set_payment_status(
                bill_id, payment_status, payment_method, actor.actor_id,
            ),
            bill_id=bill_id,
        )

    def delete_bill(self, actor: Actor, bill_id: UUID) -> OperationResult:
        return self._execute(
            "delete_bill",
            actor,
            lambda s: self._composer(s).delete_bill(bill_id, actor.actor_id),
            bill_id=bill_id,
        )

    def get_bill(self, actor: Actor, bill_id: UUID) -> OperationResult:
        return self._execute(
            "get_bill",
            actor,
            lambda s: BillSelector(s).get(bill_id),
            bill_id=bill_id,
        )

    # Repairs

    def create_repair_job(
        self,
        actor: Actor,
        customer_id: UUID,
        device_model: str,
        reported_issue: str,
        assigned_technician_id: UUID | None = None,
        estimated_completion_date: date | None = None,
        notes: str | None = None,
    ) -> OperationResult:
        return self._execute(
            "create_repair_job",
            actor,
            lambda s: RepairPartsTracker(s, self._clock).create_repair(
                customer_id,
                device_model,
                reported_issue,
                actor.actor_id,
                assigned_technician_id=assigned_technician_id,
                estimated_completion_date=estimated_completion_date,
                notes=notes,
            ),
        )

    def update_repair_status(
        self,
        actor: Actor,
        repair_id: UUID,
        status: str,
        correction: bool = False,
    ) -> OperationResult:
        return self._execute(
            "update_repair_status",
            actor,
            lambda s: RepairPartsTracker(s, self._clock).set_status(
                repair_id, status, actor.actor_id, correction=correction,
            ),
            repair_id=repair_id,
        )

    def add_repair_part(
        self,
        actor: Actor,
        repair_id: UUID,
        part_id: UUID,
        quantity_used: int,
        pricing_mode: str,
    ) -> OperationResult:
        return self._execute(
            "add_repair_part",
            actor,
            lambda s: RepairPartsTracker(s, self._clock).add_part(
                repair_id, part_id, quantity_used, pricing_mode, actor.actor_id,
            ),
            repair_id=repair_id,
        )

    def remove_repair_part(self, actor: Actor, repair_id: UUID, part_id: UUID) -> OperationResult:
        return self._execute(
            "remove_repair_part",
            actor,
            lambda s: RepairPartsTracker(s, self._clock).remove_part(
                repair_id, part_id, actor.actor_id,
            ),
            repair_id=repair_id,
        )

    def delete_repair_job(self, actor: Actor, repair_id: UUID) -> OperationResult:
        return self._execute(
            "delete_repair_job",
            actor,
            lambda s: RepairPartsTracker(s, self._clock).delete_repair(repair_id, actor.actor_id),
            repair_id=repair_id,
        )

    # Stock

    def adjust_stock_quantity(
        self,
        actor: Actor,
        item_type: ItemType | str,
        item_id: UUID,
        amount: int,
        mode: str,
    ) -> OperationResult:
        try:
            kind = parse_enum(ItemType, item_type, "item_type")
        except ShopKernelError as exc:
            return OperationResult.failure(exc)

        return self._execute(
            "adjust_stock_quantity",
            actor,
            lambda s: InventoryLedger(s, self._clock).adjust(
                kind, item_id, amount, mode, actor.actor_id,
            ),
            allowed=ADJUST_ROLES[kind],
        )
