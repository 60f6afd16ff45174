"""
Tests for TransactionCoordinator and SequenceService.

These use real units of work (committed data), so they seed through the
``seed`` fixture and never hold the shared ``session`` open.
"""

from types import SimpleNamespace

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError, OperationalError

from shop_kernel.domain.values import ItemType
from shop_kernel.exceptions import ConflictError, InsufficientStockError
from shop_kernel.models import AccessorySale, Part
from shop_kernel.services.accessory_sales_service import AccessorySaleRecorder
from shop_kernel.services.inventory_ledger import InventoryLedger
from shop_kernel.services.sequence_service import SequenceService
from shop_kernel.services.transaction import is_conflict


class TestUnitOfWork:
    def test_commit_on_success(self, coordinator, seed, read, test_actor_id):
        part_id = seed.part(quantity=10)

        with coordinator.unit_of_work("reserve") as session:
            InventoryLedger(session).reserve(ItemType.PART, part_id, 3, test_actor_id)

        assert read(lambda s: s.get(Part, part_id).quantity) == 7

    def test_rollback_on_kernel_error(self, coordinator, seed, read, test_actor_id):
        part_id = seed.part(quantity=10)

        with pytest.raises(InsufficientStockError):
            with coordinator.unit_of_work("reserve") as session:
                ledger = InventoryLedger(session)
                ledger.reserve(ItemType.PART, part_id, 3, test_actor_id)
                ledger.reserve(ItemType.PART, part_id, 30, test_actor_id)

        assert read(lambda s: s.get(Part, part_id).quantity) == 10

    def test_rollback_on_unexpected_error(self, coordinator, seed, read, test_actor_id):
        accessory_id = seed.accessory(quantity=20)

        with pytest.raises(RuntimeError):
            with coordinator.unit_of_work("sell") as session:
                AccessorySaleRecorder(session).sell(accessory_id, 2, "15.00", test_actor_id)
                raise RuntimeError("request aborted")

        count = read(lambda s: s.execute(select(func.count()).select_from(AccessorySale)).scalar_one())
        assert count == 0

    def test_run_passes_session(self, coordinator, seed, read, test_actor_id):
        part_id = seed.part(quantity=10)

        def _take_two(session, item_id):
            return InventoryLedger(session).reserve(ItemType.PART, item_id, 2, test_actor_id)

        level = coordinator.run(_take_two, part_id)

        assert level.quantity == 8
        assert read(lambda s: s.get(Part, part_id).quantity) == 8


class TestIsConflict:
    @staticmethod
    def _error(orig) -> DBAPIError:
        return OperationalError("UPDATE parts ...", {}, orig)

    @pytest.mark.parametrize("pgcode", ["40001", "40P01", "55P03", "23505"])
    def test_postgres_conflict_codes(self, pgcode):
        assert is_conflict(self._error(SimpleNamespace(pgcode=pgcode)))

    def test_postgres_other_code(self):
        assert not is_conflict(self._error(SimpleNamespace(pgcode="23503")))

    def test_sqlite_busy(self):
        assert is_conflict(self._error(Exception("database is locked")))

    def test_sqlite_unique(self):
        assert is_conflict(self._error(Exception("UNIQUE constraint failed: bills.repair_id")))

    def test_unrelated_error(self):
        assert not is_conflict(self._error(Exception("no such table: parts")))

    def test_conflict_error_code(self):
        assert ConflictError("sell_accessory", "deadlock").code == "CONFLICT"


class TestSequenceService:
    def test_first_value_is_one(self, session):
        assert SequenceService(session).next_value("test_seq") == 1

    def test_strictly_increasing(self, session):
        sequences = SequenceService(session)
        values = [sequences.next_value(SequenceService.BILL_NUMBER) for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]

    def test_independent_names(self, session):
        sequences = SequenceService(session)
        sequences.next_value("a")
        sequences.next_value("a")
        assert sequences.next_value("b") == 1

    def test_current_value_and_reset(self, session):
        sequences = SequenceService(session)
        assert sequences.current_value("x") is None
        sequences.next_value("x")
        sequences.reset("x", 41)
        assert sequences.current_value("x") == 41
        assert sequences.next_value("x") == 42

    def test_rolled_back_allocation_is_returned(self, coordinator):
        with pytest.raises(RuntimeError):
            with coordinator.unit_of_work() as session:
                SequenceService(session).next_value("bill_number")
                raise RuntimeError("abort")

        with coordinator.unit_of_work() as session:
            assert SequenceService(session).next_value("bill_number") == 1
