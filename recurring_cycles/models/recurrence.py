"""
Recurrence Models for Recurring Cycles

These models describe WHAT repeats and HOW OFTEN:
1. RecurrenceDescriptor - the loose record exactly as persisted
2. RecurrenceRule - the canonical shape the cycle generator consumes
3. PricingPhase - time-scoped amount changes (trial pricing, price hikes)
4. CycleOverride - user-pinned corrections for a single cycle

DESIGN DECISION: The descriptor accepts free-text tokens because that is
what storage holds. Only the RuleNormalizer turns it into a RecurrenceRule,
and only a RecurrenceRule is accepted by the engine.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class FrequencyUnit(str, Enum):
    """Canonical frequency units understood by the cycle generator."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    CUSTOM = "custom"


class CustomUnit(str, Enum):
    """Unit a CUSTOM rule counts its interval in."""
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    QUARTERS = "quarters"
    YEARS = "years"


class RecurrenceNature(str, Enum):
    """
    What kind of obligation this is.

    The nature selects the amount tolerance used when matching activity:
    subscriptions are billed exactly, utility bills swing a lot.
    """
    SUBSCRIPTION = "subscription"
    BILL = "bill"
    INCOME = "income"
    OTHER = "other"

    @classmethod
    def from_token(cls, token: Optional[str]) -> "RecurrenceNature":
        """Parse a stored nature token, falling back to OTHER."""
        try:
            return cls(str(token or "").strip().lower())
        except ValueError:
            return cls.OTHER


# =============================================================================
# PRICING AND OVERRIDES
# =============================================================================

class PricingPhase(BaseModel):
    """
    A time-scoped amount.

    The phase in effect for a cycle is the latest phase whose start date
    is on or before the cycle's expected date.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    start_date: date = Field(
        ...,
        description="First day this pricing applies"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount per cycle while this phase is in effect"
    )
    label: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Display label, e.g. 'Trial' or 'Intro price'"
    )
    prorated: bool = Field(
        default=False,
        description="Whether the first cycle of this phase is prorated (display only)"
    )


class CycleOverride(BaseModel):
    """
    A user-pinned correction for one cycle.

    CRITICAL: Every field the user supplied wins over anything computed.
    Fields left as None keep the computed value.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    expected_date: Optional[date] = None
    expected_amount: Optional[Decimal] = Field(default=None, ge=0)
    minimum_amount: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=1000)

    @property
    def is_empty(self) -> bool:
        """True when the override pins nothing."""
        return (
            self.expected_date is None
            and self.expected_amount is None
            and self.minimum_amount is None
            and self.notes is None
        )

    def merged_with(self, newer: "CycleOverride") -> "CycleOverride":
        """Return a copy where every field supplied by `newer` replaces ours."""
        return self.model_copy(update=newer.model_dump(exclude_none=True))


# =============================================================================
# PERSISTED DESCRIPTOR
# =============================================================================

class RecurrenceDescriptor(BaseModel):
    """
    A recurring transaction exactly as storage returns it.

    Tokens are free text (e.g. 'month', 'Monthly', 'weeks'), interval and
    date_of_occurrence may be missing, and the per-cycle maps are keyed by
    cycle numbers that arrive as strings from JSON columns.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1, description="Recurring transaction ID")
    title: str = Field(default="", max_length=200)

    frequency: Optional[str] = Field(
        default=None,
        description="Frequency token as stored (day/daily, month/monthly, custom, ...)"
    )
    interval: Optional[int] = None
    date_of_occurrence: Optional[Union[int, str]] = Field(
        default=None,
        description="Anchor day of month; int or digit string"
    )
    custom_unit: Optional[str] = None
    custom_interval: Optional[int] = None

    start_date: date
    end_date: Optional[date] = None

    amount: Optional[Decimal] = None
    estimated_amount: Optional[Decimal] = None

    nature: Optional[str] = Field(
        default=None,
        description="subscription/bill/income/other"
    )
    category_id: Optional[str] = None

    pricing_phases: list[PricingPhase] = Field(default_factory=list)
    cycle_overrides: dict[int, CycleOverride] = Field(default_factory=dict)
    cycle_notes: dict[int, str] = Field(default_factory=dict)

    @property
    def recurrence_nature(self) -> RecurrenceNature:
        return RecurrenceNature.from_token(self.nature)


# =============================================================================
# CANONICAL RULE
# =============================================================================

class RecurrenceRule(BaseModel):
    """
    Canonical recurrence rule consumed by the cycle generator.

    Invariants:
    - interval >= 1
    - start_date <= end_date when end_date is present
    - CUSTOM rules always carry a custom_unit
    """
    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: Optional[date] = None
    frequency: FrequencyUnit = FrequencyUnit.MONTHLY
    interval: int = Field(default=1, ge=1, description="Every N units")
    anchor_day: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        description="Day of month for month-based units; clipped to month length"
    )
    custom_unit: Optional[CustomUnit] = None
    base_amount: Decimal = Field(default=Decimal("0"), ge=0)

    @model_validator(mode='after')
    def validate_rule(self) -> 'RecurrenceRule':
        """Validate date bounds and custom unit presence."""
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")

        if self.frequency == FrequencyUnit.CUSTOM and self.custom_unit is None:
            raise ValueError("Custom frequency requires a custom unit")

        return self

    @property
    def is_month_based(self) -> bool:
        """True when occurrences advance by calendar months."""
        if self.frequency == FrequencyUnit.CUSTOM:
            return self.custom_unit in (
                CustomUnit.MONTHS,
                CustomUnit.QUARTERS,
                CustomUnit.YEARS,
            )
        return self.frequency in (
            FrequencyUnit.MONTHLY,
            FrequencyUnit.QUARTERLY,
            FrequencyUnit.YEARLY,
        )
