"""
Tests for the status history log and duration computation.
"""

import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from printshop.core.exceptions import NotFoundError
from printshop.services.history.audit_log import (
    AuditLog,
    compute_durations,
    format_duration,
)
from printshop.services.orders.enums import OrderStatus

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def entry(sequence: int, created_at: datetime, status: OrderStatus):
    return SimpleNamespace(sequence=sequence, created_at=created_at, new_status=status)


class TestFormatDuration:
    @pytest.mark.parametrize(
        "duration,expected",
        [
            (timedelta(seconds=0), "< 1m"),
            (timedelta(seconds=59), "< 1m"),
            (timedelta(seconds=90), "1m"),
            (timedelta(hours=1), "1h"),
            (timedelta(hours=2, minutes=15), "2h 15m"),
            (timedelta(days=1), "1 day"),
            (timedelta(days=3), "3 days"),
            (timedelta(days=2, hours=3, minutes=5), "2d 3h"),
        ],
    )
    def test_formats(self, duration, expected):
        assert format_duration(int(duration.total_seconds() * 1000)) == expected

    def test_negative_is_less_than_a_minute(self):
        assert format_duration(-5000) == "< 1m"


class TestComputeDurations:
    def test_each_entry_lasts_until_the_next(self):
        entries = [
            entry(1, T0, OrderStatus.READY_FOR_DESIGN),
            entry(2, T0 + timedelta(hours=2), OrderStatus.IN_DESIGN),
            entry(3, T0 + timedelta(days=1, hours=2), OrderStatus.DESIGN_APPROVAL),
        ]

        durations = compute_durations(entries, now=T0 + timedelta(days=1, hours=2, minutes=30))

        assert [d.duration for d in durations] == [
            timedelta(hours=2),
            timedelta(days=1),
            timedelta(minutes=30),
        ]
        assert [d.is_current for d in durations] == [False, False, True]
        assert durations[1].display == "1 day"
        assert durations[2].duration_ms == 30 * 60 * 1000

    def test_input_order_does_not_matter(self):
        entries = [
            entry(2, T0 + timedelta(hours=1), OrderStatus.IN_DESIGN),
            entry(1, T0, OrderStatus.READY_FOR_DESIGN),
        ]

        durations = compute_durations(entries, now=T0 + timedelta(hours=3))

        assert [d.entry.sequence for d in durations] == [1, 2]
        assert durations[0].duration == timedelta(hours=1)

    def test_same_timestamp_orders_by_sequence(self):
        entries = [
            entry(2, T0, OrderStatus.IN_DESIGN),
            entry(1, T0, OrderStatus.READY_FOR_DESIGN),
        ]

        durations = compute_durations(entries, now=T0 + timedelta(minutes=5))

        assert [d.entry.sequence for d in durations] == [1, 2]
        assert durations[0].duration == timedelta(0)

    def test_clock_skew_clamps_to_zero(self):
        entries = [entry(1, T0, OrderStatus.READY_FOR_DESIGN)]

        durations = compute_durations(entries, now=T0 - timedelta(minutes=5))

        assert durations[0].duration == timedelta(0)

    def test_naive_timestamps_are_treated_as_utc(self):
        entries = [entry(1, T0.replace(tzinfo=None), OrderStatus.READY_FOR_DESIGN)]

        durations = compute_durations(entries, now=T0 + timedelta(hours=1))

        assert durations[0].duration == timedelta(hours=1)

    def test_empty_history(self):
        assert compute_durations([]) == []


class TestAuditLog:
    async def test_order_creation_writes_first_entry(self, session, create_order):
        order_id = await create_order()

        entries = await AuditLog(session).list_history(order_id)

        assert len(entries) == 1
        assert entries[0].previous_status is None
        assert entries[0].new_status is OrderStatus.READY_FOR_DESIGN
        assert entries[0].action_details == "Order created"
        assert entries[0].sequence == 1

    async def test_append_allocates_sequence(self, session, create_order):
        order_id = await create_order()
        audit_log = AuditLog(session)

        entry_ = await audit_log.append_history(
            order_id,
            OrderStatus.READY_FOR_DESIGN,
            OrderStatus.IN_DESIGN,
            uuid.uuid4(),
            "Started working on design",
        )
        await session.commit()

        latest = await audit_log.latest_entry(order_id)
        assert entry_.sequence == 2
        assert latest.id == entry_.id

    async def test_backfill_only_fills_empty_details(self, session, create_order):
        order_id = await create_order()
        audit_log = AuditLog(session)
        entry_ = await audit_log.append_history(
            order_id, OrderStatus.READY_FOR_DESIGN, OrderStatus.IN_DESIGN, None
        )

        assert await audit_log.backfill_action_details(entry_.id, "Started") is True
        assert await audit_log.backfill_action_details(entry_.id, "Again") is False

        entries = await audit_log.list_history(order_id)
        assert entries[-1].action_details == "Started"

    async def test_backfill_missing_entry(self, session, seed):
        with pytest.raises(NotFoundError):
            await AuditLog(session).backfill_action_details(uuid.uuid4(), "x")
