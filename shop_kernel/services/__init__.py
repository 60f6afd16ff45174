"""Kernel services: stock ledger, repair tracking, sales, billing, transactions."""

from shop_kernel.services.accessory_sales_service import AccessorySaleRecorder
from shop_kernel.services.bill_composer import BillComposer, BillingSettings
from shop_kernel.services.inventory_ledger import InventoryLedger
from shop_kernel.services.repair_service import RepairPartsTracker
from shop_kernel.services.sequence_service import SequenceCounter, SequenceService
from shop_kernel.services.transaction import TransactionCoordinator

__all__ = [
    "AccessorySaleRecorder",
    "BillComposer",
    "BillingSettings",
    "InventoryLedger",
    "RepairPartsTracker",
    "SequenceCounter",
    "SequenceService",
    "TransactionCoordinator",
]
