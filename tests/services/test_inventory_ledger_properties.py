"""
Property-based tests for InventoryLedger.

Random sequences of reserve, release and adjust calls run against one part
while a plain integer model tracks the expected quantity.  Refused reserves
must leave the quantity untouched and subtracts floor at zero.
"""

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from shop_kernel.domain.values import ItemType
from shop_kernel.exceptions import InsufficientStockError

stock_operations = st.lists(
    st.one_of(
        st.tuples(st.sampled_from(["reserve", "release", "add", "subtract"]), st.integers(1, 15)),
        st.tuples(st.just("set"), st.integers(0, 15)),
    ),
    min_size=1,
    max_size=25,
)


class TestStockSequenceProperties:
    @given(start=st.integers(0, 20), operations=stock_operations)
    @settings(
        max_examples=50,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    def test_quantity_follows_applied_changes(
        self, ledger, make_part, test_actor_id, start, operations,
    ):
        part = make_part(quantity=start)
        expected = start

        for op, amount in operations:
            if op == "reserve":
                if amount > expected:
                    with pytest.raises(InsufficientStockError) as exc_info:
                        ledger.reserve(ItemType.PART, part.id, amount, test_actor_id)
                    assert exc_info.value.available == expected
                else:
                    ledger.reserve(ItemType.PART, part.id, amount, test_actor_id)
                    expected -= amount
            elif op == "release":
                ledger.release(ItemType.PART, part.id, amount, test_actor_id)
                expected += amount
            else:
                ledger.adjust(ItemType.PART, part.id, amount, op, test_actor_id)
                if op == "add":
                    expected += amount
                elif op == "subtract":
                    expected = max(0, expected - amount)
                else:
                    expected = amount

            level = ledger.get_level(ItemType.PART, part.id)
            assert level.quantity == expected
            assert level.quantity >= 0
