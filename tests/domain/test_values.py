"""Tests for shared enumerations, repair transitions and the test clock."""

from datetime import date, datetime, timezone

import pytest

from shop_kernel.domain.clock import DeterministicClock
from shop_kernel.domain.values import (
    REPAIR_OPEN_STATUSES,
    REPAIR_TRANSITIONS,
    ItemType,
    PaymentStatus,
    RepairStatus,
    parse_enum,
)
from shop_kernel.exceptions import InvalidArgumentError


class TestParseEnum:
    def test_member_passthrough(self):
        assert parse_enum(ItemType, ItemType.PART, "item_type") is ItemType.PART

    def test_value_parsed(self):
        assert parse_enum(PaymentStatus, "partial", "payment_status") is PaymentStatus.PARTIAL

    def test_invalid_value_names_allowed_values(self):
        with pytest.raises(InvalidArgumentError) as exc_info:
            parse_enum(PaymentStatus, "refunded", "payment_status")
        assert exc_info.value.field == "payment_status"
        assert "pending, partial, paid" in exc_info.value.reason


class TestRepairTransitions:
    def test_every_status_has_an_entry(self):
        assert set(REPAIR_TRANSITIONS) == set(RepairStatus)

    def test_terminal_statuses_have_no_forward_moves(self):
        assert REPAIR_TRANSITIONS[RepairStatus.COMPLETED] == frozenset()
        assert REPAIR_TRANSITIONS[RepairStatus.CANCELLED] == frozenset()

    def test_no_backward_moves(self):
        assert RepairStatus.PENDING not in REPAIR_TRANSITIONS[RepairStatus.IN_PROGRESS]

    def test_open_statuses(self):
        assert REPAIR_OPEN_STATUSES == {RepairStatus.PENDING, RepairStatus.IN_PROGRESS}


class TestDeterministicClock:
    def test_fixed_until_advanced(self):
        fixed = datetime(2024, 3, 15, 23, 59, 59, tzinfo=timezone.utc)
        clock = DeterministicClock(fixed)
        assert clock.now() == clock.now() == fixed
        assert clock.today() == date(2024, 3, 15)

        clock.advance(1)
        assert clock.today() == date(2024, 3, 16)

    def test_set_time_resets_advance(self):
        clock = DeterministicClock()
        clock.advance(3600)
        target = datetime(2025, 1, 2, tzinfo=timezone.utc)
        clock.set_time(target)
        assert clock.now() == target
