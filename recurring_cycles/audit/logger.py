"""
Audit Logger

DESIGN DECISION: Every cycle mutation and every degraded computation is
logged. This provides:
1. Traceability of overrides and notes
2. Visibility into failures that are swallowed on purpose
   (activity fetches, bill sync)
3. Correlation between an override write and its follow-up bill updates

The audit logger:
- Is async so it composes with the storage calls around it
- Never raises: an audit write that fails is logged and dropped
- Supports correlation IDs to trace related events
"""

from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from recurring_cycles.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from recurring_cycles.services.storage.interface import AuditStorageInterface


structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log
    2. The audit storage backend, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the storage write succeeded (or no storage is configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def get_entity_history(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Stored events for one entity, oldest first.

        Returns [] when no storage is configured.
        """
        if not self._storage:
            return []
        return await self._storage.get_events_by_entity(entity_type, entity_id)

    async def log_schedule_computed(
        self,
        recurrence_id: str,
        cycle_count: int,
        degraded_sources: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.schedule_computed(
            recurrence_id=recurrence_id,
            cycle_count=cycle_count,
            degraded_sources=degraded_sources,
            correlation_id=correlation_id,
        ))

    async def log_activity_fetch_failed(
        self,
        recurrence_id: str,
        source: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a fetch that was given up on after retries."""
        await self.log(AuditEventBuilder.activity_fetch_failed(
            recurrence_id=recurrence_id,
            source=source,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_duplicate_discarded(
        self,
        recurrence_id: str,
        cycle_number: int,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.duplicate_cycle_discarded(
            recurrence_id=recurrence_id,
            cycle_number=cycle_number,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_frequency_fallback(
        self,
        recurrence_id: str,
        tokens: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.frequency_fallback(
            recurrence_id=recurrence_id,
            tokens=tokens,
            correlation_id=correlation_id,
        ))

    async def log_override_set(
        self,
        recurrence_id: str,
        cycle_number: int,
        fields: dict[str, Any],
        correlation_id: UUID,
    ) -> None:
        """Log a user override write."""
        await self.log(AuditEventBuilder.override_set(
            recurrence_id=recurrence_id,
            cycle_number=cycle_number,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_override_removed(
        self,
        recurrence_id: str,
        cycle_number: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.override_removed(
            recurrence_id=recurrence_id,
            cycle_number=cycle_number,
            correlation_id=correlation_id,
        ))

    async def log_note_set(
        self,
        recurrence_id: str,
        cycle_number: int,
        note_length: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.note_set(
            recurrence_id=recurrence_id,
            cycle_number=cycle_number,
            note_length=note_length,
            correlation_id=correlation_id,
        ))

    async def log_persistence_failed(
        self,
        recurrence_id: str,
        cycle_number: int,
        operation: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.persistence_failed(
            recurrence_id=recurrence_id,
            cycle_number=cycle_number,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_bill_synced(
        self,
        bill_id: str,
        cycle_number: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.bill_synced(
            bill_id=bill_id,
            cycle_number=cycle_number,
            correlation_id=correlation_id,
        ))

    async def log_bill_sync_failed(
        self,
        bill_id: str,
        cycle_number: int,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.bill_sync_failed(
            bill_id=bill_id,
            cycle_number=cycle_number,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use one per service call and pass it to every event that call emits.
    """
    return uuid4()
