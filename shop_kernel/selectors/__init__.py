"""Read-only query selectors."""

from shop_kernel.selectors.base import BaseSelector
from shop_kernel.selectors.billing_selector import BillSelector
from shop_kernel.selectors.stock_selector import StockSelector

__all__ = ["BaseSelector", "BillSelector", "StockSelector"]
