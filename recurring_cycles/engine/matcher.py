"""
Activity Matcher

Reconciles the expected schedule against observed activity.

MATCHING RULES:
- Date window: +/- N days (default 7) around the cycle's expected date,
  inclusive on both ends
- Amount band: |actual| within expected * tolerance of expected, where the
  tolerance depends on the recurrence nature (subscription 5%, bill 30%,
  income 10%, other 10%)
- Among candidates: nearest date, then nearest amount, then earliest input
  position
- Cycles claim in ascending cycle-number order; a claimed record leaves the
  pool, so each record matches at most one cycle
- A record tagged with metadata['cycle_number'] is claimed by that cycle
  before any fuzzy matching, regardless of the window
- A record tagged for a cycle in the schedule never goes to another cycle;
  if its cycle already holds a record, it stays unmatched
- A matched transaction sets days_from_due and its TimingStatus against the
  same date window

Transactions and scheduled payments are independent pools.

DESIGN DECISION: Claiming is a fold over an immutable (claims, pool) pair.
Nothing is mutated; the leftover pool is returned as unmatched activity.
"""

from decimal import Decimal
from functools import partial, reduce
from typing import Iterable, Optional, Sequence, TypeVar, Union

from pydantic import BaseModel, Field

from recurring_cycles.models.activity import ScheduledPayment, Transaction
from recurring_cycles.models.cycle import Cycle, MatchingPolicy, TimingStatus
from recurring_cycles.models.recurrence import RecurrenceNature


Activity = TypeVar("Activity", Transaction, ScheduledPayment)

# (claims as (cycle_number, record) pairs, remaining pool)
ClaimState = tuple[tuple[tuple[int, Union[Transaction, ScheduledPayment]], ...],
                   tuple[Union[Transaction, ScheduledPayment], ...]]


class MatchResult(BaseModel):
    """Matched cycles plus the activity nobody claimed."""

    cycles: list[Cycle] = Field(default_factory=list)
    unmatched_transactions: list[Transaction] = Field(default_factory=list)
    unmatched_payments: list[ScheduledPayment] = Field(default_factory=list)


def within_amount_band(amount: Decimal, expected: Decimal, tolerance: Decimal) -> bool:
    """Is |amount| within expected +/- expected * tolerance?"""
    expected = abs(expected)
    return abs(abs(amount) - expected) <= expected * tolerance


def within_date_window(record: Activity, cycle: Cycle, window_days: int) -> bool:
    return abs((record.activity_date - cycle.expected_date).days) <= window_days


def _is_claimed(claims, cycle_number: int) -> bool:
    return any(number == cycle_number for number, _ in claims)


def _take(state: ClaimState, cycle_number: int, position: int) -> ClaimState:
    claims, pool = state
    return (
        claims + ((cycle_number, pool[position]),),
        pool[:position] + pool[position + 1:],
    )


def _claim_tagged(state: ClaimState, cycle: Cycle) -> ClaimState:
    """Claim the first record explicitly tagged with this cycle's number."""
    claims, pool = state
    if _is_claimed(claims, cycle.cycle_number):
        return state
    for position, record in enumerate(pool):
        if record.cycle_number == cycle.cycle_number:
            return _take(state, cycle.cycle_number, position)
    return state


def _claim_nearest(
    state: ClaimState,
    cycle: Cycle,
    window_days: int,
    tolerance: Decimal,
    reserved: frozenset[int],
) -> ClaimState:
    """Claim the closest in-window, in-band record not reserved by a tag."""
    claims, pool = state
    if _is_claimed(claims, cycle.cycle_number):
        return state

    candidates = [
        (
            abs((record.activity_date - cycle.expected_date).days),
            abs(abs(record.amount) - abs(cycle.expected_amount)),
            position,
        )
        for position, record in enumerate(pool)
        if record.cycle_number not in reserved
        and within_date_window(record, cycle, window_days)
        and within_amount_band(record.amount, cycle.expected_amount, tolerance)
    ]
    if not candidates:
        return state

    _, _, position = min(candidates)
    return _take(state, cycle.cycle_number, position)


def claim_activity(
    cycles: Sequence[Cycle],
    records: Iterable[Activity],
    window_days: int,
    tolerance: Decimal,
) -> tuple[dict[int, Activity], tuple[Activity, ...]]:
    """
    Assign records to cycles.

    Returns:
        (cycle_number -> claimed record, leftover records in input order)
    """
    ordered = sorted(cycles, key=lambda c: c.cycle_number)
    state: ClaimState = ((), tuple(records))

    state = reduce(_claim_tagged, ordered, state)
    reserved = frozenset(c.cycle_number for c in ordered)
    state = reduce(
        partial(
            _claim_nearest,
            window_days=window_days,
            tolerance=tolerance,
            reserved=reserved,
        ),
        ordered,
        state,
    )

    claims, leftover = state
    return dict(claims), leftover


def match_activity(
    cycles: list[Cycle],
    transactions: Iterable[Transaction] = (),
    scheduled_payments: Iterable[ScheduledPayment] = (),
    nature: RecurrenceNature = RecurrenceNature.OTHER,
    policy: Optional[MatchingPolicy] = None,
) -> MatchResult:
    """
    Match settled transactions and pending scheduled payments to cycles.

    Args:
        cycles: Cycles after pricing-phase resolution
        transactions: Settled transactions
        scheduled_payments: Pending scheduled payments
        nature: Selects the amount tolerance band
        policy: Date window and amount bands (defaults when omitted)

    Returns:
        MatchResult with matched cycles (input order) and unmatched activity
    """
    policy = policy or MatchingPolicy()
    tolerance = policy.amount_tolerance_for(nature)
    window = policy.date_tolerance_days

    tx_claims, tx_left = claim_activity(cycles, transactions, window, tolerance)
    sp_claims, sp_left = claim_activity(cycles, scheduled_payments, window, tolerance)

    matched = []
    for cycle in cycles:
        transaction = tx_claims.get(cycle.cycle_number)
        days_from_due = None
        if transaction is not None:
            days_from_due = (transaction.transaction_date - cycle.expected_date).days

        matched.append(cycle.model_copy(update={
            "matched_transaction": transaction,
            "matched_payment": sp_claims.get(cycle.cycle_number),
            "days_from_due": days_from_due,
            "timing_status": TimingStatus.from_days(days_from_due, window),
        }))

    return MatchResult(
        cycles=matched,
        unmatched_transactions=list(tx_left),
        unmatched_payments=list(sp_left),
    )
