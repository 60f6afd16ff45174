"""SQLAlchemy ORM models for the shop kernel."""

from shop_kernel.models.billing import Bill, BillItem
from shop_kernel.models.customer import Customer
from shop_kernel.models.repair import RepairJob, RepairPartUsage
from shop_kernel.models.sales import AccessorySale
from shop_kernel.models.stock import (
    DEFAULT_MIN_QUANTITY,
    STOCK_MODELS,
    Accessory,
    Part,
)

__all__ = [
    "Accessory",
    "AccessorySale",
    "Bill",
    "BillItem",
    "Customer",
    "DEFAULT_MIN_QUANTITY",
    "Part",
    "RepairJob",
    "RepairPartUsage",
    "STOCK_MODELS",
]
