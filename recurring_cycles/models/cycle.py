"""
Cycle Models for Recurring Cycles

A Cycle is one expected occurrence of a recurring obligation. Cycles are
EPHEMERAL: they are recomputed on every call from the rule plus whatever
activity snapshot is passed in. Only overrides and notes are persisted.

DESIGN DECISION: Cycles are frozen. Every pipeline stage returns new
cycles via model_copy(update=...) so stages stay side-effect free and can
be tested in isolation.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from recurring_cycles.models.activity import Bill, ScheduledPayment, Transaction
from recurring_cycles.models.recurrence import CycleOverride, RecurrenceNature


# =============================================================================
# STATUS
# =============================================================================

class CycleStatus(str, Enum):
    """
    Lifecycle state of a cycle.

    PAID, SKIPPED and CANCELLED are terminal.
    """
    UPCOMING = "upcoming"
    CURRENT = "current"
    OVERDUE = "overdue"
    PAID = "paid"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"

    @property
    def is_terminal(self) -> bool:
        return self in (CycleStatus.PAID, CycleStatus.SKIPPED, CycleStatus.CANCELLED)


class TimingStatus(str, Enum):
    """
    When the matched transaction landed relative to the expected date.

    | days_from_due           | timing        |
    |-------------------------|---------------|
    | no matched transaction  | none          |
    | < 0                     | early         |
    | == 0                    | on_time       |
    | 1 .. window days        | within_window |
    | > window days           | late          |
    """
    NONE = "none"
    EARLY = "early"
    ON_TIME = "on_time"
    WITHIN_WINDOW = "within_window"
    LATE = "late"

    @classmethod
    def from_days(cls, days_from_due: Optional[int], window_days: int) -> "TimingStatus":
        if days_from_due is None:
            return cls.NONE
        if days_from_due < 0:
            return cls.EARLY
        if days_from_due == 0:
            return cls.ON_TIME
        if days_from_due <= window_days:
            return cls.WITHIN_WINDOW
        return cls.LATE

    @property
    def is_within_window(self) -> bool:
        """Early, on-time and within-window payments all count as in the window."""
        return self in (TimingStatus.EARLY, TimingStatus.ON_TIME, TimingStatus.WITHIN_WINDOW)


# =============================================================================
# MATCHING POLICY
# =============================================================================

DEFAULT_DATE_TOLERANCE_DAYS = 7

DEFAULT_AMOUNT_TOLERANCES: dict[RecurrenceNature, Decimal] = {
    RecurrenceNature.SUBSCRIPTION: Decimal("0.05"),
    RecurrenceNature.BILL: Decimal("0.30"),
    RecurrenceNature.INCOME: Decimal("0.10"),
    RecurrenceNature.OTHER: Decimal("0.10"),
}


class MatchingPolicy(BaseModel):
    """Date window and amount bands used by the activity matcher."""
    model_config = ConfigDict(frozen=True)

    date_tolerance_days: int = Field(
        default=DEFAULT_DATE_TOLERANCE_DAYS,
        ge=0,
        description="Activity within +/- this many days of the expected date can match"
    )
    amount_tolerances: dict[RecurrenceNature, Decimal] = Field(
        default_factory=lambda: dict(DEFAULT_AMOUNT_TOLERANCES),
        description="Relative amount band per nature (0.05 = +/-5%)"
    )

    def amount_tolerance_for(self, nature: RecurrenceNature) -> Decimal:
        if nature in self.amount_tolerances:
            return self.amount_tolerances[nature]
        return self.amount_tolerances.get(
            RecurrenceNature.OTHER,
            DEFAULT_AMOUNT_TOLERANCES[RecurrenceNature.OTHER],
        )


# =============================================================================
# CYCLE
# =============================================================================

class Cycle(BaseModel):
    """
    One expected occurrence.

    The period is half-open: [start_date, end_date). end_date is the next
    cycle's expected date.
    """
    model_config = ConfigDict(frozen=True)

    # Identity
    cycle_number: int = Field(..., ge=1)
    start_date: date
    end_date: date

    # Expectation
    expected_date: date
    expected_amount: Decimal
    minimum_amount: Optional[Decimal] = None
    phase_label: Optional[str] = None
    prorated: bool = False

    # Reconciliation
    matched_transaction: Optional[Transaction] = None
    matched_payment: Optional[ScheduledPayment] = None
    days_from_due: Optional[int] = Field(
        default=None,
        description="Matched transaction date minus expected date (negative = early)"
    )
    timing_status: TimingStatus = TimingStatus.NONE
    bills: list[Bill] = Field(default_factory=list)
    representative_bill: Optional[Bill] = None

    # User input
    override: Optional[CycleOverride] = None
    notes: Optional[str] = None

    status: CycleStatus = CycleStatus.UPCOMING

    @model_validator(mode='after')
    def validate_period(self) -> 'Cycle':
        if self.start_date >= self.end_date:
            raise ValueError("Cycle start date must be before end date")
        return self

    @property
    def identity_key(self) -> tuple[int, date, date]:
        """Composite key used for de-duplication."""
        return (self.cycle_number, self.start_date, self.end_date)

    @property
    def matched_amount(self) -> Decimal:
        """Absolute amount of the matched settled transaction, or zero."""
        if self.matched_transaction is None:
            return Decimal("0")
        return abs(self.matched_transaction.amount)


# =============================================================================
# PIPELINE OUTPUTS
# =============================================================================

class DuplicateDiagnostic(BaseModel):
    """Why a cycle was dropped by the de-duplicator."""
    model_config = ConfigDict(frozen=True)

    cycle_number: int
    start_date: date
    end_date: date
    reason: Literal["duplicate_key", "duplicate_number"]
    message: str


class CyclePartition(BaseModel):
    """Cycles split around 'today' by expected date."""

    past: list[Cycle] = Field(default_factory=list)
    current: list[Cycle] = Field(default_factory=list)
    upcoming: list[Cycle] = Field(default_factory=list)


class CycleStatistics(BaseModel):
    """Aggregate numbers for a cycle schedule."""

    total_cycles: int = Field(ge=0)
    status_counts: dict[CycleStatus, int] = Field(default_factory=dict)
    total_expected: Decimal = Decimal("0")
    total_matched: Decimal = Decimal("0")
    overridden_count: int = Field(default=0, ge=0)
    completion_rate: float = Field(
        default=0.0,
        ge=0.0,
        le=100.0,
        description="Paid cycles as a percentage of all cycles"
    )
    current_streak: int = Field(
        default=0,
        ge=0,
        description="Consecutive paid cycles counting back from the latest due one"
    )

    # Payment timing, over cycles with a matched transaction
    paid_early: int = Field(default=0, ge=0)
    paid_on_time: int = Field(default=0, ge=0)
    paid_within_window: int = Field(default=0, ge=0)
    paid_late: int = Field(default=0, ge=0)
    on_time_rate: float = Field(
        default=0.0,
        ge=0.0,
        le=100.0,
        description="Early + on-time + within-window payments as a percentage of timed payments"
    )
    average_payment: Decimal = Field(
        default=Decimal("0"),
        description="Mean matched transaction amount, to the cent"
    )

    def count(self, status: CycleStatus) -> int:
        return self.status_counts.get(status, 0)


class CycleSchedule(BaseModel):
    """
    Full result of one engine run.

    Deterministic: identical inputs give identical model_dump_json().
    """

    today: date
    cycles: list[Cycle] = Field(default_factory=list)
    partition: CyclePartition = Field(default_factory=CyclePartition)
    statistics: CycleStatistics
    diagnostics: list[DuplicateDiagnostic] = Field(default_factory=list)
    unmatched_transactions: list[Transaction] = Field(default_factory=list)
    unmatched_payments: list[ScheduledPayment] = Field(default_factory=list)

    def cycle(self, cycle_number: int) -> Optional[Cycle]:
        """Look up a cycle by number."""
        for cycle in self.cycles:
            if cycle.cycle_number == cycle_number:
                return cycle
        return None
