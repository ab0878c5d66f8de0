"""
Audit Models for Recurring Cycles

Every user-initiated change to a recurring transaction's cycles is logged,
together with every degraded fetch. This provides:
1. Traceability of overrides and notes (who pinned what, for which cycle)
2. Debugging information when a schedule looks wrong
3. Visibility into swallowed failures (bill sync, activity fetch)

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Computation
    SCHEDULE_COMPUTED = "schedule_computed"
    ACTIVITY_FETCH_FAILED = "activity_fetch_failed"
    DUPLICATE_CYCLE_DISCARDED = "duplicate_cycle_discarded"
    FREQUENCY_FALLBACK = "frequency_fallback"

    # User mutations
    OVERRIDE_SET = "override_set"
    OVERRIDE_REMOVED = "override_removed"
    NOTE_SET = "note_set"
    PERSISTENCE_FAILED = "persistence_failed"

    # Secondary bill sync
    BILL_SYNCED = "bill_synced"
    BILL_SYNC_FAILED = "bill_sync_failed"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'recurrence', 'bill')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    cycle_number: Optional[int] = Field(
        default=None,
        description="Cycle the event is about, if any"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., an override write and its bill sync)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "cycle_number": self.cycle_number,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         cycle_number, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.cycle_number) if self.cycle_number is not None else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.override_set(recurrence_id, 3, fields, correlation_id)
        event = AuditEventBuilder.bill_sync_failed(recurrence_id, 3, bill_id, error, correlation_id)
    """

    @staticmethod
    def schedule_computed(
        recurrence_id: str,
        cycle_count: int,
        degraded_sources: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCHEDULE_COMPUTED,
            severity=AuditSeverity.WARNING if degraded_sources else AuditSeverity.DEBUG,
            entity_type="recurrence",
            entity_id=recurrence_id,
            correlation_id=correlation_id,
            description=f"Schedule computed with {cycle_count} cycles",
            details={
                "cycle_count": cycle_count,
                "degraded_sources": degraded_sources,
            },
        )

    @staticmethod
    def activity_fetch_failed(
        recurrence_id: str,
        source: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ACTIVITY_FETCH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="recurrence",
            entity_id=recurrence_id,
            correlation_id=correlation_id,
            description=f"Could not fetch {source}; continuing without it",
            details={"source": source},
            error_message=error_message,
        )

    @staticmethod
    def duplicate_cycle_discarded(
        recurrence_id: str,
        cycle_number: int,
        reason: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_CYCLE_DISCARDED,
            severity=AuditSeverity.WARNING,
            entity_type="recurrence",
            entity_id=recurrence_id,
            cycle_number=cycle_number,
            correlation_id=correlation_id,
            description=f"Duplicate cycle {cycle_number} discarded ({reason})",
            details={"reason": reason},
        )

    @staticmethod
    def override_set(
        recurrence_id: str,
        cycle_number: int,
        fields: dict[str, Any],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OVERRIDE_SET,
            entity_type="recurrence",
            entity_id=recurrence_id,
            cycle_number=cycle_number,
            correlation_id=correlation_id,
            description=f"Override set for cycle {cycle_number}",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def override_removed(
        recurrence_id: str,
        cycle_number: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OVERRIDE_REMOVED,
            entity_type="recurrence",
            entity_id=recurrence_id,
            cycle_number=cycle_number,
            correlation_id=correlation_id,
            description=f"Override removed for cycle {cycle_number}",
            is_user_action=True,
        )

    @staticmethod
    def note_set(
        recurrence_id: str,
        cycle_number: int,
        note_length: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NOTE_SET,
            entity_type="recurrence",
            entity_id=recurrence_id,
            cycle_number=cycle_number,
            correlation_id=correlation_id,
            description=f"Note updated for cycle {cycle_number}",
            details={"note_length": note_length},
            is_user_action=True,
        )

    @staticmethod
    def persistence_failed(
        recurrence_id: str,
        cycle_number: int,
        operation: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="recurrence",
            entity_id=recurrence_id,
            cycle_number=cycle_number,
            correlation_id=correlation_id,
            description=f"Failed to {operation} for cycle {cycle_number}",
            details={"operation": operation},
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def bill_synced(
        bill_id: str,
        cycle_number: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_SYNCED,
            entity_type="bill",
            entity_id=bill_id,
            cycle_number=cycle_number,
            correlation_id=correlation_id,
            description=f"Bill updated from cycle {cycle_number} override",
        )

    @staticmethod
    def bill_sync_failed(
        bill_id: str,
        cycle_number: int,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_SYNC_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="bill",
            entity_id=bill_id,
            cycle_number=cycle_number,
            correlation_id=correlation_id,
            description=f"Could not update bill from cycle {cycle_number} override",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def frequency_fallback(
        recurrence_id: str,
        tokens: list[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FREQUENCY_FALLBACK,
            severity=AuditSeverity.WARNING,
            entity_type="recurrence",
            entity_id=recurrence_id,
            correlation_id=correlation_id,
            description="Unrecognized frequency unit treated as monthly",
            details={"tokens": tokens},
        )
