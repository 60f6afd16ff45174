"""
Closed enumerations shared by models, services and the operation facade.

Every discriminator in the shop kernel is a ``str`` enum so that values
round-trip through String columns and JSON unchanged, while invalid values
are rejected at the boundary by ``parse_enum``.
"""

from enum import Enum
from typing import TypeVar

from shop_kernel.exceptions import InvalidArgumentError


class ItemType(str, Enum):
    """Kind of stocked item a bill line or ledger call refers to."""

    PART = "part"
    ACCESSORY = "accessory"


class PricingMode(str, Enum):
    """Which of a part's two prices applies to a usage."""

    REPAIR = "repair"
    SEAL = "seal"


class RepairStatus(str, Enum):
    """Repair job lifecycle status."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment state of a bill."""

    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class AdjustMode(str, Enum):
    """Administrative stock override modes."""

    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"


class Role(str, Enum):
    """Already-authenticated actor role supplied by the request layer."""

    ADMIN = "admin"
    TECHNICIAN = "technician"
    CASHIER = "cashier"


# Forward moves only; leaving a terminal state needs an explicit correction
REPAIR_TRANSITIONS: dict[RepairStatus, frozenset[RepairStatus]] = {
    RepairStatus.PENDING: frozenset({
        RepairStatus.IN_PROGRESS, RepairStatus.COMPLETED, RepairStatus.CANCELLED,
    }),
    RepairStatus.IN_PROGRESS: frozenset({
        RepairStatus.COMPLETED, RepairStatus.CANCELLED,
    }),
    RepairStatus.COMPLETED: frozenset(),
    RepairStatus.CANCELLED: frozenset(),
}

# Statuses in which parts may still be added to or removed from a repair
REPAIR_OPEN_STATUSES: frozenset[RepairStatus] = frozenset({
    RepairStatus.PENDING, RepairStatus.IN_PROGRESS,
})


E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: type[E], value: E | str, field: str) -> E:
    """
    Coerce ``value`` to a member of ``enum_cls``.

    Raises:
        InvalidArgumentError: If value is not a member or a member's value.
    """
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidArgumentError(field, value, f"expected one of: {allowed}") from None
