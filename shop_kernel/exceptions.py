"""
Typed Exception Hierarchy for the Shop Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock and billing errors are handled by a request layer that maps them to
user-facing responses. Matching on message text is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:

    try:
        recorder.sell(accessory_id, quantity=25, unit_price=price, actor_id=actor)
    except InsufficientStockError as e:
        api_response(code=e.code, available=e.available, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ShopKernelError:

    ShopKernelError (base)
    |
    +-- NotFoundError
    |   +-- StockItemNotFoundError
    |   +-- CustomerNotFoundError
    |   +-- RepairNotFoundError
    |   +-- RepairPartUsageNotFoundError
    |   +-- BillNotFoundError
    |
    +-- InsufficientStockError
    +-- AlreadyBilledError
    +-- EmptyBillError
    +-- InvalidArgumentError
    +-- InvalidRepairStateError
    +-- StockItemReferencedError
    +-- ConflictError
    +-- ImmutabilityViolationError
    +-- PermissionDeniedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                   | When Raised
-----------------------|--------------------------------------------------
NOT_FOUND              | Referenced part/accessory/customer/repair/bill missing
INSUFFICIENT_STOCK     | Requested quantity exceeds available quantity
ALREADY_BILLED         | Repair already has a bill (generate, delete, reopen)
EMPTY_BILL             | Nothing billable (no usages, empty cart)
INVALID_ARGUMENT       | Bad enum value, non-positive quantity or price
INVALID_REPAIR_STATE   | Status forbids the operation or the transition
STOCK_ITEM_REFERENCED  | Stock item has usage/sale history, cannot delete
CONFLICT               | Concurrent modification detected by the datastore
IMMUTABILITY_VIOLATION | Update of a usage/sale price snapshot
PERMISSION_DENIED      | Actor role lacks the capability

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Inherit from Exception, not ValueError/LookupError, so domain errors can
   be caught as a group without mixing in programming errors.

2. ``code`` is a class attribute: usable without instantiation and stable
   for API documentation.

3. ConflictError is never retried inside the kernel. The request layer
   decides whether to retry.

===============================================================================
"""


class ShopKernelError(Exception):
    """
    Base exception for all shop kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SHOP_KERNEL_ERROR"


# Lookup failures


class NotFoundError(ShopKernelError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class StockItemNotFoundError(NotFoundError):
    """Part or accessory was not found."""

    def __init__(self, item_type: str, item_id: str):
        self.item_type = item_type
        super().__init__(item_type, item_id)


class CustomerNotFoundError(NotFoundError):
    """Customer was not found."""

    def __init__(self, customer_id: str):
        super().__init__("customer", customer_id)


class RepairNotFoundError(NotFoundError):
    """Repair job was not found."""

    def __init__(self, repair_id: str):
        super().__init__("repair", repair_id)


class RepairPartUsageNotFoundError(NotFoundError):
    """No usage of the part is recorded on the repair."""

    def __init__(self, repair_id: str, part_id: str):
        self.repair_id = repair_id
        self.part_id = part_id
        super().__init__("repair_part", f"{part_id} on repair {repair_id}")


class BillNotFoundError(NotFoundError):
    """Bill was not found."""

    def __init__(self, bill_id: str):
        super().__init__("bill", bill_id)


# Stock


class InsufficientStockError(ShopKernelError):
    """Requested quantity exceeds the quantity on hand."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, item_type: str, item_id: str, requested: int, available: int):
        self.item_type = item_type
        self.item_id = item_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {item_type} {item_id}: "
            f"requested {requested}, available {available}"
        )


class StockItemReferencedError(ShopKernelError):
    """Stock item cannot be deleted because history references it."""

    code: str = "STOCK_ITEM_REFERENCED"

    def __init__(self, item_type: str, item_id: str):
        self.item_type = item_type
        self.item_id = item_id
        super().__init__(
            f"{item_type} {item_id} cannot be deleted: referenced by usage or sale history"
        )


# Billing


class AlreadyBilledError(ShopKernelError):
    """Repair already has a bill."""

    code: str = "ALREADY_BILLED"

    def __init__(self, repair_id: str, bill_id: str | None = None):
        self.repair_id = repair_id
        self.bill_id = bill_id
        super().__init__(f"Repair {repair_id} is already billed")


class EmptyBillError(ShopKernelError):
    """Nothing billable was supplied."""

    code: str = "EMPTY_BILL"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Nothing to bill: {reason}")


# Validation and state


class InvalidArgumentError(ShopKernelError):
    """Argument value is outside the accepted domain."""

    code: str = "INVALID_ARGUMENT"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class InvalidRepairStateError(ShopKernelError):
    """Repair status does not allow the requested operation."""

    code: str = "INVALID_REPAIR_STATE"

    def __init__(self, repair_id: str, status: str, operation: str):
        self.repair_id = repair_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Repair {repair_id} in status '{status}' does not allow {operation}"
        )


# Concurrency


class ConflictError(ShopKernelError):
    """Concurrent modification detected by the datastore."""

    code: str = "CONFLICT"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Conflict during {operation}: {detail}")


# Immutability


class ImmutabilityViolationError(ShopKernelError):
    """Attempted to modify an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Capability


class PermissionDeniedError(ShopKernelError):
    """Actor role is not allowed to perform the operation."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, actor_id: str, role: str, operation: str):
        self.actor_id = actor_id
        self.role = role
        self.operation = operation
        super().__init__(f"Role '{role}' may not perform {operation}")
