"""
Bill Attacher

Attaches externally tracked bills to the cycle named in each bill's
metadata['cycle_number']. Bills without a cycle number, or naming a cycle
that does not exist, are ignored.
"""

from collections import defaultdict
from typing import Iterable, Optional

from recurring_cycles.models.activity import Bill
from recurring_cycles.models.cycle import Cycle


def group_bills_by_cycle(bills: Iterable[Bill]) -> dict[int, list[Bill]]:
    """Cycle number -> bills, input order preserved within each group."""
    groups: dict[int, list[Bill]] = defaultdict(list)
    for bill in bills:
        if bill.cycle_number is not None:
            groups[bill.cycle_number].append(bill)
    return dict(groups)


def representative_bill(bills: list[Bill]) -> Optional[Bill]:
    """First bill still expecting payment, else the first bill."""
    for bill in bills:
        if bill.status.is_active:
            return bill
    return bills[0] if bills else None


def attach_bills(cycles: list[Cycle], bills: Iterable[Bill]) -> list[Cycle]:
    """
    Attach bill groups to cycles.

    The cycle's minimum amount becomes the smallest minimum the bills
    supply, unless the cycle's override already pinned one.
    """
    groups = group_bills_by_cycle(bills)

    attached = []
    for cycle in cycles:
        group = groups.get(cycle.cycle_number)
        if not group:
            attached.append(cycle)
            continue

        update = {
            "bills": list(group),
            "representative_bill": representative_bill(group),
        }

        minimums = [b.minimum_amount for b in group if b.minimum_amount is not None]
        override_pins_minimum = (
            cycle.override is not None and cycle.override.minimum_amount is not None
        )
        if minimums and not override_pins_minimum:
            update["minimum_amount"] = min(minimums)

        attached.append(cycle.model_copy(update=update))
    return attached
