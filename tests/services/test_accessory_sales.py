"""Tests for AccessorySaleRecorder (counter sales)."""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from shop_kernel.exceptions import (
    InsufficientStockError,
    InvalidArgumentError,
    StockItemNotFoundError,
)
from shop_kernel.models import AccessorySale


def _sale_count(session) -> int:
    return session.execute(select(func.count()).select_from(AccessorySale)).scalar_one()


class TestSell:
    def test_sale_debits_stock_and_records_history(
        self, recorder, session, make_accessory, test_actor_id,
    ):
        accessory = make_accessory(quantity=20, price="15.00")

        sale = recorder.sell(accessory.id, 2, Decimal("15.00"), test_actor_id)

        assert accessory.quantity == 18
        assert sale.quantity_sold == 2
        assert sale.unit_price == Decimal("15.00")
        assert sale.total_price == Decimal("30.00")
        assert sale.sold_by == test_actor_id
        assert _sale_count(session) == 1

    def test_oversell_changes_nothing(self, recorder, session, make_accessory, test_actor_id):
        accessory = make_accessory(quantity=20)
        recorder.sell(accessory.id, 2, "15.00", test_actor_id)

        with pytest.raises(InsufficientStockError) as exc_info:
            recorder.sell(accessory.id, 25, "15.00", test_actor_id)

        assert exc_info.value.available == 18
        assert accessory.quantity == 18
        assert _sale_count(session) == 1

    def test_caller_price_overrides_canonical_price(self, recorder, make_accessory, test_actor_id):
        accessory = make_accessory(price="15.00")

        sale = recorder.sell(accessory.id, 3, "12.50", test_actor_id)

        assert sale.total_price == Decimal("37.50")

    def test_sell_entire_stock(self, recorder, make_accessory, test_actor_id):
        accessory = make_accessory(quantity=4)

        recorder.sell(accessory.id, 4, "15.00", test_actor_id)

        assert accessory.quantity == 0

    @pytest.mark.parametrize("quantity", [0, -1, True, "2"])
    def test_invalid_quantity(self, recorder, session, make_accessory, test_actor_id, quantity):
        accessory = make_accessory(quantity=20)

        with pytest.raises(InvalidArgumentError) as exc_info:
            recorder.sell(accessory.id, quantity, "15.00", test_actor_id)

        assert exc_info.value.field == "quantity"
        assert accessory.quantity == 20
        assert _sale_count(session) == 0

    @pytest.mark.parametrize("price", ["0", "-5.00", 15.0, "free", None])
    def test_invalid_price(self, recorder, make_accessory, test_actor_id, price):
        accessory = make_accessory(quantity=20)

        with pytest.raises(InvalidArgumentError) as exc_info:
            recorder.sell(accessory.id, 1, price, test_actor_id)

        assert exc_info.value.field == "unit_price"
        assert accessory.quantity == 20

    @pytest.mark.parametrize("price", ["0.015", "0.001", "12.499"])
    def test_fractional_cent_price_rejected(
        self, recorder, session, make_accessory, test_actor_id, price,
    ):
        accessory = make_accessory(quantity=20)

        with pytest.raises(InvalidArgumentError) as exc_info:
            recorder.sell(accessory.id, 3, price, test_actor_id)

        assert exc_info.value.field == "unit_price"
        assert accessory.quantity == 20
        assert _sale_count(session) == 0

    def test_whole_cent_price_stored_consistently(
        self, recorder, session, make_accessory, test_actor_id,
    ):
        accessory = make_accessory(quantity=20)

        recorder.sell(accessory.id, 3, "0.35", test_actor_id)

        stored = session.execute(select(AccessorySale)).scalar_one()
        session.refresh(stored)
        assert stored.unit_price * stored.quantity_sold == stored.total_price == Decimal("1.05")

    def test_unknown_accessory(self, recorder, test_actor_id):
        with pytest.raises(StockItemNotFoundError):
            recorder.sell(uuid4(), 1, "15.00", test_actor_id)

    def test_sale_logged(self, recorder, make_accessory, test_actor_id, captured_logs):
        accessory = make_accessory(quantity=20)

        recorder.sell(accessory.id, 2, "15.00", test_actor_id)

        sold = [r for r in captured_logs() if r["message"] == "accessory_sold"]
        assert len(sold) == 1
        assert sold[0]["total_price"] == "30.00"
        assert sold[0]["accessory_id"] == str(accessory.id)
