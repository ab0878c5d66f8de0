"""
Activity Models for Recurring Cycles

Read-only records that the engine reconciles against the expected schedule:
1. Transaction - money that actually moved (settled)
2. ScheduledPayment - money that is planned to move (pending)
3. Bill - an externally tracked bill, already assigned to a cycle

The engine never writes these. They are snapshots taken by the service
layer right before a recompute.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def _cycle_number_from(metadata: dict[str, Any]) -> Optional[int]:
    """Read a cycle number tag that may be stored as int or digit string."""
    value = metadata.get("cycle_number")
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


# =============================================================================
# ENUMS
# =============================================================================

class BillStatus(str, Enum):
    """Lifecycle status of a tracked bill."""
    UPCOMING = "upcoming"
    DUE_TODAY = "due_today"
    OVERDUE = "overdue"
    POSTPONED = "postponed"
    PAID = "paid"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        """Active bills still expect a payment."""
        return self in ACTIVE_BILL_STATUSES


ACTIVE_BILL_STATUSES = frozenset({
    BillStatus.UPCOMING,
    BillStatus.DUE_TODAY,
    BillStatus.OVERDUE,
    BillStatus.POSTPONED,
})

# Scheduled payment states that still represent a planned payment
PENDING_PAYMENT_STATUSES = frozenset({"scheduled", "due_today", "overdue"})


# =============================================================================
# ACTIVITY RECORDS
# =============================================================================

class Transaction(BaseModel):
    """A settled transaction. Amounts may be signed (expenses negative)."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    transaction_date: date
    amount: Decimal
    description: Optional[str] = None
    category_id: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def activity_date(self) -> date:
        return self.transaction_date

    @property
    def cycle_number(self) -> Optional[int]:
        return _cycle_number_from(self.metadata)


class ScheduledPayment(BaseModel):
    """A pending scheduled payment linked to a recurring transaction."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    due_date: date
    amount: Decimal
    title: Optional[str] = None
    status: str = Field(default="scheduled")
    notes: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def activity_date(self) -> date:
        return self.due_date

    @property
    def is_pending(self) -> bool:
        return self.status.strip().lower() in PENDING_PAYMENT_STATUSES

    @property
    def cycle_number(self) -> Optional[int]:
        return _cycle_number_from(self.metadata)


class Bill(BaseModel):
    """
    A bill tracked outside the engine.

    The cycle it belongs to is recorded in metadata['cycle_number'].
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    title: str = Field(default="")
    due_date: date
    status: BillStatus = BillStatus.UPCOMING
    amount: Optional[Decimal] = None
    minimum_amount: Optional[Decimal] = Field(default=None, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def cycle_number(self) -> Optional[int]:
        return _cycle_number_from(self.metadata)
