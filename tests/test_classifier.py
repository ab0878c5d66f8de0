"""
Tests for status classification, partitioning, statistics and queries.
"""

from datetime import date
from decimal import Decimal

import pytest

from recurring_cycles.engine.classifier import (
    classify_cycles,
    classify_status,
    compute_statistics,
    partition_cycles,
)
from recurring_cycles.engine.generator import generate_cycles
from recurring_cycles.engine.matcher import match_activity
from recurring_cycles.engine.queries import (
    cycles_needing_bills,
    find_cycle_for_date,
    get_cycle_by_number,
)
from recurring_cycles.models.activity import Bill, BillStatus, ScheduledPayment, Transaction
from recurring_cycles.models.cycle import CycleStatus, TimingStatus
from recurring_cycles.models.recurrence import CycleOverride


TODAY = date(2024, 3, 1)


@pytest.fixture
def cycles(jan31_rule):
    return generate_cycles(jan31_rule, 4)


def with_bill(cycle, status: BillStatus):
    b = Bill(id=f"b{cycle.cycle_number}", due_date=cycle.expected_date, status=status)
    return cycle.model_copy(update={"bills": [b], "representative_bill": b})


def with_payment(cycle, amount: str = "-20"):
    t = Transaction(id=f"t{cycle.cycle_number}", transaction_date=cycle.expected_date, amount=Decimal(amount))
    return cycle.model_copy(update={"matched_transaction": t})


class TestStatusRules:
    """Tests for each classification rule, in order."""

    def test_fixed_today_scenario(self, cycles):
        """Test today = 2024-03-01 against the Jan-31 schedule."""
        classified = classify_cycles(cycles, TODAY)
        assert [c.status for c in classified] == [
            CycleStatus.OVERDUE,
            CycleStatus.OVERDUE,
            CycleStatus.UPCOMING,
            CycleStatus.UPCOMING,
        ]

        partition = partition_cycles(classified, TODAY)
        assert [c.cycle_number for c in partition.past] == [1, 2]
        assert partition.current == []
        assert [c.cycle_number for c in partition.upcoming] == [3, 4]

    def test_due_today_is_current(self, cycles):
        """Test that a cycle due today is CURRENT and in the current bucket."""
        today = date(2024, 2, 29)
        assert classify_status(cycles[1], today) == CycleStatus.CURRENT
        assert [c.cycle_number for c in partition_cycles(cycles, today).current] == [2]

    def test_matched_transaction_means_paid(self, cycles):
        """Test that a settled match wins over everything else."""
        cycle = with_bill(with_payment(cycles[0]), BillStatus.CANCELLED)
        assert classify_status(cycle, TODAY) == CycleStatus.PAID

    @pytest.mark.parametrize("bill_status,expected", [
        (BillStatus.PAID, CycleStatus.PAID),
        (BillStatus.SKIPPED, CycleStatus.SKIPPED),
        (BillStatus.CANCELLED, CycleStatus.CANCELLED),
        (BillStatus.POSTPONED, CycleStatus.POSTPONED),
    ])
    def test_bill_status_decides(self, cycles, bill_status, expected):
        """Test that a settled bill state carries over to the cycle."""
        assert classify_status(with_bill(cycles[0], bill_status), TODAY) == expected

    def test_open_bill_falls_through_to_dates(self, cycles):
        """Test that an active bill does not decide the status."""
        assert classify_status(with_bill(cycles[0], BillStatus.UPCOMING), TODAY) == CycleStatus.OVERDUE

    def test_scheduled_payment_does_not_mean_paid(self, cycles):
        """Test that a planned payment is not a settled one."""
        payment = ScheduledPayment(id="sp", due_date=cycles[0].expected_date, amount=Decimal("20"))
        cycle = cycles[0].model_copy(update={"matched_payment": payment})
        assert classify_status(cycle, TODAY) == CycleStatus.OVERDUE

    def test_terminal_states(self):
        """Test which states are terminal."""
        assert CycleStatus.PAID.is_terminal
        assert CycleStatus.SKIPPED.is_terminal
        assert CycleStatus.CANCELLED.is_terminal
        assert not CycleStatus.POSTPONED.is_terminal
        assert not CycleStatus.OVERDUE.is_terminal


class TestStatistics:
    """Tests for schedule statistics."""

    def test_counts_and_totals(self, cycles):
        """Test per-state counts, totals and the overridden count."""
        prepared = [
            with_payment(cycles[0], "-21"),
            cycles[1].model_copy(update={"override": CycleOverride(notes="call them")}),
            cycles[2],
            cycles[3],
        ]
        stats = compute_statistics(classify_cycles(prepared, TODAY))

        assert stats.total_cycles == 4
        assert set(stats.status_counts) == set(CycleStatus)
        assert stats.count(CycleStatus.PAID) == 1
        assert stats.count(CycleStatus.OVERDUE) == 1
        assert stats.count(CycleStatus.UPCOMING) == 2
        assert stats.count(CycleStatus.SKIPPED) == 0
        assert stats.total_expected == Decimal("80")
        assert stats.total_matched == Decimal("21")
        assert stats.overridden_count == 1
        assert stats.completion_rate == 25.0
        assert stats.average_payment == Decimal("21.00")

    def test_streak_counts_back_from_latest_due_cycle(self, cycles):
        """Test the consecutive-paid streak, skipping upcoming cycles."""
        prepared = [cycles[0], with_payment(cycles[1]), cycles[2], cycles[3]]
        stats = compute_statistics(classify_cycles(prepared, date(2024, 3, 1)))
        assert stats.current_streak == 1

        all_paid = [with_payment(c) for c in cycles[:2]] + cycles[2:]
        assert compute_statistics(classify_cycles(all_paid, TODAY)).current_streak == 2

    def test_streak_broken_by_overdue(self, cycles):
        """Test that an overdue latest cycle resets the streak."""
        prepared = [with_payment(cycles[0]), cycles[1], cycles[2], cycles[3]]
        assert compute_statistics(classify_cycles(prepared, TODAY)).current_streak == 0

    def test_empty_schedule(self):
        """Test statistics of no cycles."""
        stats = compute_statistics([])
        assert stats.total_cycles == 0
        assert stats.completion_rate == 0.0
        assert stats.total_expected == Decimal("0")


class TestQueries:
    """Tests for cycle lookups."""

    def test_get_cycle_by_number(self, cycles):
        """Test lookup by number."""
        assert get_cycle_by_number(cycles, 3).expected_date == date(2024, 3, 31)
        assert get_cycle_by_number(cycles, 9) is None

    def test_find_cycle_for_date(self, cycles):
        """Test the widened period lookup."""
        assert find_cycle_for_date(cycles, date(2024, 2, 10)) == 1
        assert find_cycle_for_date(cycles, date(2024, 1, 25)) == 1
        assert find_cycle_for_date(cycles, date(2023, 12, 1)) is None
        assert find_cycle_for_date(cycles, date(2024, 1, 25), tolerance_days=0) is None

    def test_cycles_needing_bills(self, cycles):
        """Test cycles due in exactly lead_days without a bill."""
        today = date(2024, 3, 28)
        assert [c.cycle_number for c in cycles_needing_bills(cycles, today)] == [3]

        billed = [with_bill(c, BillStatus.UPCOMING) for c in cycles]
        assert cycles_needing_bills(billed, today) == []
        assert [c.cycle_number for c in cycles_needing_bills(cycles, date(2024, 3, 30), lead_days=1)] == [3]


class TestPaymentTiming:
    """Tests for payment timing against the date window."""

    @pytest.mark.parametrize("days,expected", [
        (None, TimingStatus.NONE),
        (-10, TimingStatus.EARLY),
        (-1, TimingStatus.EARLY),
        (0, TimingStatus.ON_TIME),
        (1, TimingStatus.WITHIN_WINDOW),
        (7, TimingStatus.WITHIN_WINDOW),
        (8, TimingStatus.LATE),
    ])
    def test_timing_buckets(self, days, expected):
        """Test each timing bucket with a 7 day window."""
        assert TimingStatus.from_days(days, 7) == expected

    def test_within_window_flag(self):
        """Test which timings count as inside the window."""
        assert TimingStatus.EARLY.is_within_window
        assert TimingStatus.ON_TIME.is_within_window
        assert TimingStatus.WITHIN_WINDOW.is_within_window
        assert not TimingStatus.LATE.is_within_window
        assert not TimingStatus.NONE.is_within_window

    def test_matched_cycles_carry_timing(self, cycles):
        """Test timing set by the matcher and the timing statistics."""
        matched = match_activity(cycles, transactions=[
            Transaction(id="t1", transaction_date=date(2024, 2, 2), amount=Decimal("-20")),
            Transaction(
                id="t2",
                transaction_date=date(2024, 3, 12),
                amount=Decimal("-22"),
                metadata={"cycle_number": 2},
            ),
            Transaction(id="t3", transaction_date=date(2024, 3, 29), amount=Decimal("-19")),
            Transaction(id="t4", transaction_date=date(2024, 4, 30), amount=Decimal("-20")),
        ]).cycles

        assert [c.timing_status for c in matched] == [
            TimingStatus.WITHIN_WINDOW,
            TimingStatus.LATE,
            TimingStatus.EARLY,
            TimingStatus.ON_TIME,
        ]
        assert matched[1].days_from_due == 12

        stats = compute_statistics(classify_cycles(matched, date(2024, 5, 15)))

        assert stats.paid_early == 1
        assert stats.paid_on_time == 1
        assert stats.paid_within_window == 1
        assert stats.paid_late == 1
        assert stats.on_time_rate == 75.0
        assert stats.average_payment == Decimal("20.25")

    def test_on_time_rate_rounding(self, cycles):
        """Test the rate is a percentage with one decimal."""
        matched = match_activity(cycles, transactions=[
            Transaction(id="t1", transaction_date=date(2024, 1, 31), amount=Decimal("-20")),
            Transaction(id="t2", transaction_date=date(2024, 2, 29), amount=Decimal("-20")),
            Transaction(
                id="t3",
                transaction_date=date(2024, 4, 20),
                amount=Decimal("-20"),
                metadata={"cycle_number": 3},
            ),
        ]).cycles

        stats = compute_statistics(classify_cycles(matched, date(2024, 5, 15)))
        assert stats.on_time_rate == 66.7

    def test_bill_paid_cycle_has_no_timing(self, cycles):
        """Test that a cycle paid through its bill is left out of timing."""
        stats = compute_statistics(classify_cycles([with_bill(cycles[0], BillStatus.PAID)], TODAY))

        assert stats.count(CycleStatus.PAID) == 1
        assert stats.on_time_rate == 0.0
        assert stats.average_payment == Decimal("0")
