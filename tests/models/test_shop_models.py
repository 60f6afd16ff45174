"""
Tests for ORM models, database constraints and the history guards.

The services never write these states; the tests bypass them to prove the
database and the ORM listeners hold the line on their own.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from shop_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from shop_kernel.domain.values import ItemType, PaymentStatus
from shop_kernel.exceptions import AlreadyBilledError, ImmutabilityViolationError
from shop_kernel.models import AccessorySale, Bill, BillItem, RepairPartUsage


class TestStockConstraints:
    def test_negative_quantity_rejected_by_database(self, session, make_part):
        part = make_part(quantity=1)

        part.quantity = -1
        with pytest.raises(IntegrityError):
            session.flush()

    def test_low_stock_property(self, make_part):
        assert make_part(quantity=2, min_quantity=2).is_low_stock
        assert not make_part(quantity=3, min_quantity=2).is_low_stock

    def test_item_type_discriminators(self, make_part, make_accessory):
        assert make_part().item_type is ItemType.PART
        assert make_accessory().item_type is ItemType.ACCESSORY


class TestUsageImmutability:
    def test_usage_price_cannot_be_edited(self, tracker, session, make_part, make_repair, test_actor_id):
        part = make_part(quantity=10)
        repair = make_repair()
        info = tracker.add_part(repair.id, part.id, 2, "repair", test_actor_id)
        usage = session.get(RepairPartUsage, info.id)

        usage.unit_price = Decimal("1.00")
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert "unit_price" in exc_info.value.reason

    def test_usage_quantity_cannot_be_edited(self, tracker, session, make_part, make_repair, test_actor_id):
        part = make_part(quantity=10)
        repair = make_repair()
        info = tracker.add_part(repair.id, part.id, 2, "repair", test_actor_id)
        usage = session.get(RepairPartUsage, info.id)

        usage.quantity_used = 1
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_audit_fields_may_change(self, tracker, session, make_part, make_repair, test_actor_id):
        part = make_part(quantity=10)
        repair = make_repair()
        info = tracker.add_part(repair.id, part.id, 1, "seal", test_actor_id)
        usage = session.get(RepairPartUsage, info.id)

        usage.updated_by_id = uuid4()
        session.flush()


class TestSaleImmutability:
    def test_sale_total_cannot_be_edited(self, recorder, session, make_accessory, test_actor_id):
        accessory = make_accessory(quantity=10)
        info = recorder.sell(accessory.id, 1, "15.00", test_actor_id)
        sale = session.get(AccessorySale, info.id)

        sale.total_price = Decimal("0.01")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_listeners_can_be_unregistered(self, recorder, session, make_accessory, test_actor_id):
        accessory = make_accessory(quantity=10)
        info = recorder.sell(accessory.id, 1, "15.00", test_actor_id)
        sale = session.get(AccessorySale, info.id)

        unregister_immutability_listeners()
        try:
            sale.total_price = Decimal("14.00")
            session.flush()
        finally:
            register_immutability_listeners()


class TestBilledRepairGuard:
    def test_orm_delete_of_billed_repair_is_refused(
        self, tracker, composer, session, make_part, make_repair, test_actor_id,
    ):
        part = make_part(quantity=10)
        repair = make_repair()
        tracker.add_part(repair.id, part.id, 1, "repair", test_actor_id)
        tracker.set_status(repair.id, "completed", test_actor_id)
        composer.generate_from_repair(repair.id, test_actor_id)

        session.delete(repair)
        with pytest.raises(AlreadyBilledError):
            session.flush()


class TestBillConstraints:
    def _bill(self, customer_id, actor_id, number="BILL-T-1") -> Bill:
        return Bill(
            bill_number=number,
            customer_id=customer_id,
            currency="USD",
            subtotal=Decimal("10.00"),
            tax_rate=Decimal("0"),
            tax_amount=Decimal("0.00"),
            total_amount=Decimal("10.00"),
            payment_status=PaymentStatus.PENDING.value,
            created_by_id=actor_id,
        )

    def test_accessory_item_must_not_carry_pricing_mode(
        self, session, make_customer, make_accessory, test_actor_id,
    ):
        accessory = make_accessory()
        bill = self._bill(make_customer().id, test_actor_id)
        bill.items.append(
            BillItem(
                position=1,
                item_type="accessory",
                item_id=accessory.id,
                quantity=1,
                unit_price=Decimal("10.00"),
                total_price=Decimal("10.00"),
                pricing_mode="seal",
                created_by_id=test_actor_id,
            )
        )
        session.add(bill)

        with pytest.raises(IntegrityError):
            session.flush()

    def test_part_item_requires_pricing_mode(self, session, make_customer, make_part, test_actor_id):
        part = make_part()
        bill = self._bill(make_customer().id, test_actor_id)
        bill.items.append(
            BillItem(
                position=1,
                item_type="part",
                item_id=part.id,
                quantity=1,
                unit_price=Decimal("10.00"),
                total_price=Decimal("10.00"),
                pricing_mode=None,
                created_by_id=test_actor_id,
            )
        )
        session.add(bill)

        with pytest.raises(IntegrityError):
            session.flush()

    def test_bill_numbers_are_unique(self, session, make_customer, test_actor_id):
        customer = make_customer()
        session.add(self._bill(customer.id, test_actor_id, number="BILL-DUP"))
        session.flush()
        session.add(self._bill(customer.id, test_actor_id, number="BILL-DUP"))

        with pytest.raises(IntegrityError):
            session.flush()
