"""
Data Models Package

This package contains all Pydantic models used by the recurring cycle engine.
All data flowing through the engine must conform to these schemas.
"""

from recurring_cycles.models.recurrence import (
    CustomUnit,
    CycleOverride,
    FrequencyUnit,
    PricingPhase,
    RecurrenceDescriptor,
    RecurrenceNature,
    RecurrenceRule,
)
from recurring_cycles.models.activity import (
    ACTIVE_BILL_STATUSES,
    PENDING_PAYMENT_STATUSES,
    Bill,
    BillStatus,
    ScheduledPayment,
    Transaction,
)
from recurring_cycles.models.cycle import (
    Cycle,
    CyclePartition,
    CycleSchedule,
    CycleStatistics,
    CycleStatus,
    DuplicateDiagnostic,
    MatchingPolicy,
    TimingStatus,
)
from recurring_cycles.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Recurrence models
    "CustomUnit",
    "CycleOverride",
    "FrequencyUnit",
    "PricingPhase",
    "RecurrenceDescriptor",
    "RecurrenceNature",
    "RecurrenceRule",
    # Activity models
    "ACTIVE_BILL_STATUSES",
    "PENDING_PAYMENT_STATUSES",
    "Bill",
    "BillStatus",
    "ScheduledPayment",
    "Transaction",
    # Cycle models
    "Cycle",
    "CyclePartition",
    "CycleSchedule",
    "CycleStatistics",
    "CycleStatus",
    "DuplicateDiagnostic",
    "MatchingPolicy",
    "TimingStatus",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
