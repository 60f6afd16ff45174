"""
Module: shop_kernel.selectors.stock_selector
Responsibility: Read access to stock levels, low-stock items, accessory
    sales history and repair usages.
"""

from uuid import UUID

from sqlalchemy import select

from shop_kernel.domain.dtos import AccessorySaleInfo, RepairPartUsageInfo, StockLevel
from shop_kernel.domain.values import ItemType, parse_enum
from shop_kernel.models.repair import RepairPartUsage
from shop_kernel.models.sales import AccessorySale
from shop_kernel.models.stock import STOCK_MODELS
from shop_kernel.selectors.base import BaseSelector


class StockSelector(BaseSelector):
    """Stock and history queries."""

    def levels(self, item_type: ItemType | str) -> list[StockLevel]:
        model = STOCK_MODELS[parse_enum(ItemType, item_type, "item_type")]
        rows = self.session.execute(select(model).order_by(model.name)).scalars()
        return [StockLevel.from_model(r) for r in rows]

    def low_stock(self, item_type: ItemType | str | None = None) -> list[StockLevel]:
        """Items at or below their minimum quantity, lowest first."""
        if item_type is None:
            types = list(ItemType)
        else:
            types = [parse_enum(ItemType, item_type, "item_type")]

        result: list[StockLevel] = []
        for kind in types:
            model = STOCK_MODELS[kind]
            rows = self.session.execute(
                select(model)
                .where(model.quantity <= model.min_quantity)
                .order_by(model.quantity, model.name)
            ).scalars()
            result.extend(StockLevel.from_model(r) for r in rows)
        return sorted(result, key=lambda level: level.quantity)

    def sales_history(
        self,
        accessory_id: UUID | None = None,
        sold_by: UUID | None = None,
        limit: int = 100,
    ) -> list[AccessorySaleInfo]:
        """Accessory sales, newest first."""
        query = select(AccessorySale)
        if accessory_id is not None:
            query = query.where(AccessorySale.accessory_id == accessory_id)
        if sold_by is not None:
            query = query.where(AccessorySale.sold_by == sold_by)
        query = query.order_by(AccessorySale.created_at.desc()).limit(limit)
        return [AccessorySaleInfo.from_model(s) for s in self.session.execute(query).scalars()]

    def part_usage_history(self, part_id: UUID) -> list[RepairPartUsageInfo]:
        """Every recorded consumption of a part across repairs."""
        rows = self.session.execute(
            select(RepairPartUsage)
            .where(RepairPartUsage.part_id == part_id)
            .order_by(RepairPartUsage.created_at, RepairPartUsage.line_no)
        ).scalars()
        return [RepairPartUsageInfo.from_model(u) for u in rows]
