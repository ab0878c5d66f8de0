"""
Cycle Classifier

Assigns each cycle a CycleStatus, splits the schedule around today and
computes summary statistics.

STATUS RULES (first match wins):
1. A matched settled transaction -> PAID
2. Representative bill paid/skipped/cancelled/postponed -> that status
3. Expected date is today -> CURRENT
4. Expected date is before today -> OVERDUE
5. Otherwise -> UPCOMING

A matched scheduled payment does NOT make a cycle paid; it is only a plan.

Timing statistics only look at cycles with a matched transaction; a cycle
marked paid through its bill has no payment date to judge.
"""

from datetime import date
from decimal import Decimal

from recurring_cycles.models.activity import BillStatus
from recurring_cycles.models.cycle import (
    Cycle,
    CyclePartition,
    CycleStatistics,
    CycleStatus,
    TimingStatus,
)


# Bill states that decide the cycle status on their own
_BILL_STATUS_MAP: dict[BillStatus, CycleStatus] = {
    BillStatus.PAID: CycleStatus.PAID,
    BillStatus.SKIPPED: CycleStatus.SKIPPED,
    BillStatus.CANCELLED: CycleStatus.CANCELLED,
    BillStatus.POSTPONED: CycleStatus.POSTPONED,
}

_CENT = Decimal("0.01")


def classify_status(cycle: Cycle, today: date) -> CycleStatus:
    if cycle.matched_transaction is not None:
        return CycleStatus.PAID

    bill = cycle.representative_bill
    if bill is not None and bill.status in _BILL_STATUS_MAP:
        return _BILL_STATUS_MAP[bill.status]

    if cycle.expected_date == today:
        return CycleStatus.CURRENT
    if cycle.expected_date < today:
        return CycleStatus.OVERDUE
    return CycleStatus.UPCOMING


def classify_cycles(cycles: list[Cycle], today: date) -> list[Cycle]:
    """Return cycles with their status set for the given day."""
    return [
        cycle.model_copy(update={"status": classify_status(cycle, today)})
        for cycle in cycles
    ]


def partition_cycles(cycles: list[Cycle], today: date) -> CyclePartition:
    """Split cycles into past / current / upcoming by expected date."""
    partition = CyclePartition()
    for cycle in cycles:
        if cycle.expected_date < today:
            partition.past.append(cycle)
        elif cycle.expected_date == today:
            partition.current.append(cycle)
        else:
            partition.upcoming.append(cycle)
    return partition


def _current_streak(cycles: list[Cycle]) -> int:
    """
    Consecutive PAID cycles, counting back from the latest cycle that is
    neither upcoming nor current.
    """
    streak = 0
    for cycle in sorted(cycles, key=lambda c: c.cycle_number, reverse=True):
        if cycle.status in (CycleStatus.UPCOMING, CycleStatus.CURRENT):
            continue
        if cycle.status != CycleStatus.PAID:
            break
        streak += 1
    return streak


def compute_statistics(cycles: list[Cycle]) -> CycleStatistics:
    """
    Summarize classified cycles.

    status_counts always carries every CycleStatus, zero when absent.
    """
    counts = {status: 0 for status in CycleStatus}
    for cycle in cycles:
        counts[cycle.status] += 1

    total = len(cycles)
    paid = counts[CycleStatus.PAID]
    completion_rate = round(paid / total * 100, 1) if total else 0.0

    timing = {status: 0 for status in TimingStatus}
    for cycle in cycles:
        timing[cycle.timing_status] += 1
    timed = total - timing[TimingStatus.NONE]
    in_window = sum(timing[status] for status in TimingStatus if status.is_within_window)
    on_time_rate = round(in_window / timed * 100, 1) if timed else 0.0

    total_matched = sum((c.matched_amount for c in cycles), Decimal("0"))
    settled = sum(1 for c in cycles if c.matched_transaction is not None)
    average_payment = (total_matched / settled).quantize(_CENT) if settled else Decimal("0")

    return CycleStatistics(
        total_cycles=total,
        status_counts=counts,
        total_expected=sum((c.expected_amount for c in cycles), Decimal("0")),
        total_matched=total_matched,
        overridden_count=sum(1 for c in cycles if c.override is not None),
        completion_rate=completion_rate,
        current_streak=_current_streak(cycles),
        paid_early=timing[TimingStatus.EARLY],
        paid_on_time=timing[TimingStatus.ON_TIME],
        paid_within_window=timing[TimingStatus.WITHIN_WINDOW],
        paid_late=timing[TimingStatus.LATE],
        on_time_rate=on_time_rate,
        average_payment=average_payment,
    )
