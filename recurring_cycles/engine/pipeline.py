"""
Schedule Pipeline

Composes the engine stages into one pure call:

    generate -> price -> match -> override -> attach bills -> dedup -> classify

Everything the pipeline needs is passed in: the rule, an activity
snapshot, stored overrides and notes, and "today". There is no clock read,
no I/O and no logging, so the same inputs always produce the same
CycleSchedule (byte-identical model_dump_json()).
"""

from datetime import date
from typing import Iterable, Mapping, Optional

from recurring_cycles.engine.bills import attach_bills
from recurring_cycles.engine.classifier import (
    classify_cycles,
    compute_statistics,
    partition_cycles,
)
from recurring_cycles.engine.dedup import deduplicate_cycles
from recurring_cycles.engine.generator import generate_cycles
from recurring_cycles.engine.matcher import match_activity
from recurring_cycles.engine.overrides import apply_overrides
from recurring_cycles.engine.pricing import resolve_pricing_phases
from recurring_cycles.models.activity import Bill, ScheduledPayment, Transaction
from recurring_cycles.models.cycle import CycleSchedule, MatchingPolicy
from recurring_cycles.models.recurrence import (
    CycleOverride,
    PricingPhase,
    RecurrenceNature,
    RecurrenceRule,
)


def build_cycle_schedule(
    rule: RecurrenceRule,
    *,
    today: date,
    max_cycles: int,
    transactions: Iterable[Transaction] = (),
    scheduled_payments: Iterable[ScheduledPayment] = (),
    bills: Iterable[Bill] = (),
    pricing_phases: Iterable[PricingPhase] = (),
    overrides: Optional[Mapping[int, CycleOverride]] = None,
    notes: Optional[Mapping[int, str]] = None,
    nature: RecurrenceNature = RecurrenceNature.OTHER,
    policy: Optional[MatchingPolicy] = None,
) -> CycleSchedule:
    """
    Compute the full cycle schedule for a rule.

    Args:
        rule: Canonical recurrence rule
        today: Reference day for status and partitioning
        max_cycles: Upper bound on generated cycles
        transactions: Settled transactions snapshot
        scheduled_payments: Pending scheduled payments snapshot
        bills: Bills linked to the recurrence
        pricing_phases: Time-scoped amounts
        overrides: Cycle number -> user override
        notes: Cycle number -> free-text note
        nature: Selects the matching amount band
        policy: Matching tolerances (defaults when omitted)

    Returns:
        CycleSchedule
    """
    policy = policy or MatchingPolicy()

    cycles = generate_cycles(rule, max_cycles)
    cycles = resolve_pricing_phases(cycles, pricing_phases, rule.base_amount)

    matched = match_activity(
        cycles,
        transactions=transactions,
        scheduled_payments=scheduled_payments,
        nature=nature,
        policy=policy,
    )

    cycles = apply_overrides(matched.cycles, overrides, notes)
    cycles = attach_bills(cycles, bills)
    cycles, diagnostics = deduplicate_cycles(cycles)
    cycles = classify_cycles(cycles, today)

    return CycleSchedule(
        today=today,
        cycles=cycles,
        partition=partition_cycles(cycles, today),
        statistics=compute_statistics(cycles),
        diagnostics=diagnostics,
        unmatched_transactions=matched.unmatched_transactions,
        unmatched_payments=matched.unmatched_payments,
    )
