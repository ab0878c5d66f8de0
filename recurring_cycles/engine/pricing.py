"""
Pricing Phase Resolver

Overlays time-scoped amounts (trial pricing, price increases) onto the
generated cycles. The phase in effect for a cycle is the latest phase whose
start date is on or before the cycle's expected date. Cycles before the
first phase keep the base amount.
"""

from decimal import Decimal
from typing import Iterable, Optional

from recurring_cycles.models.cycle import Cycle
from recurring_cycles.models.recurrence import PricingPhase


def phase_for(
    cycle: Cycle,
    phases_latest_first: list[PricingPhase],
) -> Optional[PricingPhase]:
    for phase in phases_latest_first:
        if phase.start_date <= cycle.expected_date:
            return phase
    return None


def resolve_pricing_phases(
    cycles: list[Cycle],
    phases: Iterable[PricingPhase],
    base_amount: Decimal,
) -> list[Cycle]:
    """
    Apply pricing phases to cycles.

    Label and proration flag are carried for display only; they do not
    affect matching.
    """
    # Stable sort keeps input order for phases sharing a start date,
    # so the later-listed one is seen first after reversing.
    latest_first = list(reversed(sorted(phases, key=lambda p: p.start_date)))

    resolved = []
    for cycle in cycles:
        phase = phase_for(cycle, latest_first)
        if phase is None:
            resolved.append(cycle.model_copy(update={
                "expected_amount": base_amount,
                "phase_label": None,
                "prorated": False,
            }))
        else:
            resolved.append(cycle.model_copy(update={
                "expected_amount": phase.amount,
                "phase_label": phase.label,
                "prorated": phase.prorated,
            }))
    return resolved
