"""
Cycle Queries

Small lookups over a computed schedule, used by the service and by
reminder jobs.
"""

from datetime import date, timedelta
from typing import Iterable, Optional

from recurring_cycles.models.cycle import DEFAULT_DATE_TOLERANCE_DAYS, Cycle


DEFAULT_BILL_LEAD_DAYS = 3


def get_cycle_by_number(cycles: Iterable[Cycle], cycle_number: int) -> Optional[Cycle]:
    for cycle in cycles:
        if cycle.cycle_number == cycle_number:
            return cycle
    return None


def find_cycle_for_date(
    cycles: Iterable[Cycle],
    day: date,
    tolerance_days: int = DEFAULT_DATE_TOLERANCE_DAYS,
) -> Optional[int]:
    """
    Number of the first cycle whose widened period contains `day`.

    The period [start, end] is widened by tolerance_days on both sides, so
    a payment made a few days early or late still finds its cycle.
    """
    slack = timedelta(days=tolerance_days)
    for cycle in cycles:
        if cycle.start_date - slack <= day <= cycle.end_date + slack:
            return cycle.cycle_number
    return None


def cycles_needing_bills(
    cycles: Iterable[Cycle],
    today: date,
    lead_days: int = DEFAULT_BILL_LEAD_DAYS,
) -> list[Cycle]:
    """Cycles due exactly lead_days from today that have no bill yet."""
    target = today + timedelta(days=lead_days)
    return [
        cycle for cycle in cycles
        if cycle.expected_date == target and not cycle.bills
    ]
