"""
ORM-Level Immutability and History Guards.

===============================================================================
WHY THIS EXISTS
===============================================================================

Usage and sale rows are the stock history of the shop.  Their price
snapshots feed bills, so a silently edited unit_price would change what a
customer was charged after the fact.  The services never update these rows;
this module makes sure nothing else does either.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database:

    session.flush()
         |
         v
    [before_flush]  --> _check_history_deletions() --> StockItemReferencedError
         |                                         --> AlreadyBilledError
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | Rule
------------------|-------------------------------------------------------
RepairPartUsage   | Never updated. Deleted only by the tracker (remove part,
                  | delete repair).
AccessorySale     | Never updated.
Part / Accessory  | Not deletable while usage or sale rows reference it.
RepairJob         | Not deletable while a bill references it.

updated_at / updated_by_id are audit metadata and may change.

===============================================================================
USAGE
===============================================================================

init_engine_from_url() registers the listeners.  Registration is
idempotent.  Tests that need to write forbidden rows can call
unregister_immutability_listeners() and register again afterwards.

===============================================================================
"""

from sqlalchemy import event, exists, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from shop_kernel.exceptions import (
    AlreadyBilledError,
    ImmutabilityViolationError,
    StockItemReferencedError,
)
from shop_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Audit metadata that may change on an otherwise immutable row
_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _changed_fields(target) -> list[str]:
    changed = []
    for attr in target.__mapper__.column_attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if get_history(target, attr.key).has_changes():
            changed.append(attr.key)
    return changed


def _refuse_update(target, entity_type: str) -> None:
    changed = _changed_fields(target)
    if not changed:
        return
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "fields": changed,
        },
    )
    raise ImmutabilityViolationError(
        entity_type,
        str(target.id),
        f"append-only record, attempted change to {', '.join(changed)}",
    )


def _check_usage_immutability(mapper, connection, target):
    """RepairPartUsage price snapshots are frozen at insert."""
    _refuse_update(target, "RepairPartUsage")


def _check_sale_immutability(mapper, connection, target):
    """AccessorySale rows are frozen at insert."""
    _refuse_update(target, "AccessorySale")


def _check_history_deletions(session, flush_context, instances):
    """
    Refuse deletion of stock items with history and of billed repairs.

    Runs in before_flush, before the flush plan is fixed; mapper-level
    before_delete fires too late to keep the row.
    """
    from shop_kernel.models.billing import Bill
    from shop_kernel.models.repair import RepairJob, RepairPartUsage
    from shop_kernel.models.sales import AccessorySale
    from shop_kernel.models.stock import Accessory, Part

    for obj in list(session.deleted):
        if isinstance(obj, Part):
            query = select(exists().where(RepairPartUsage.part_id == obj.id))
        elif isinstance(obj, Accessory):
            query = select(exists().where(AccessorySale.accessory_id == obj.id))
        elif isinstance(obj, RepairJob):
            with session.no_autoflush:
                bill_id = session.execute(
                    select(Bill.id).where(Bill.repair_id == obj.id)
                ).scalar_one_or_none()
            if bill_id is not None:
                logger.error(
                    "immutability_violation_blocked",
                    extra={
                        "entity_type": "RepairJob",
                        "entity_id": str(obj.id),
                        "operation": "DELETE",
                        "reason": "repair_is_billed",
                    },
                )
                raise AlreadyBilledError(str(obj.id), str(bill_id))
            continue
        else:
            continue

        with session.no_autoflush:
            referenced = session.execute(query).scalar()

        if referenced:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": type(obj).__name__,
                    "entity_id": str(obj.id),
                    "operation": "DELETE",
                    "reason": "stock_item_has_history",
                },
            )
            raise StockItemReferencedError(obj.item_type.value, str(obj.id))


def _listeners():
    from shop_kernel.models.repair import RepairPartUsage
    from shop_kernel.models.sales import AccessorySale

    return [
        (Session, "before_flush", _check_history_deletions),
        (RepairPartUsage, "before_update", _check_usage_immutability),
        (AccessorySale, "before_update", _check_sale_immutability),
    ]


def register_immutability_listeners():
    """
    Register the immutability and history event listeners.

    Safe to call more than once; an already registered listener is skipped.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the immutability event listeners.

    WARNING: Only use this in tests that must write forbidden rows.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
