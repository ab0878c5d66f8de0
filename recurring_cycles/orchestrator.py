"""
Main Orchestrator for Recurring Cycles

This module ties the pure engine to storage and auditing, and defines the
end-to-end flows for:
1. Computing a schedule (fetch -> normalize -> build -> audit)
2. Mutating a cycle (write override/note -> sync bills -> recompute)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The engine never touches storage; everything it needs is fetched here
- A missing recurrence is fatal; missing activity is not
- Every mutation is audited, including the ones that fail

Activity fetches are retried with tenacity and then degrade to an empty
list. The schedule is still produced; the degraded sources are logged and
recorded on the schedule_computed audit event.
"""

from datetime import date
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

import structlog
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from recurring_cycles.audit import AuditLogger, create_correlation_id
from recurring_cycles.config import (
    AppSettings,
    CycleEngineSettings,
    get_settings,
    validate_all_settings,
)
from recurring_cycles.engine import (
    RecurrenceError,
    build_cycle_schedule,
    cycles_needing_bills,
    normalize_rule,
    unrecognized_tokens,
)
from recurring_cycles.models.activity import Bill
from recurring_cycles.models.audit import AuditEvent
from recurring_cycles.models.cycle import Cycle, CycleSchedule
from recurring_cycles.models.recurrence import CycleOverride
from recurring_cycles.services.storage import (
    CycleStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsCycleStorage,
    StorageError,
)


logger = structlog.get_logger()

T = TypeVar("T")


class CycleUpdateError(Exception):
    """An override or note could not be persisted. Nothing was written."""

    def __init__(
        self,
        recurrence_id: str,
        cycle_number: int,
        operation: str,
        message: str,
    ):
        self.recurrence_id = recurrence_id
        self.cycle_number = cycle_number
        self.operation = operation
        super().__init__(message)


class ScheduleRecomputeError(Exception):
    """
    An override or note WAS persisted, but the schedule could not be
    recomputed afterwards. Retrying the write is not needed; reading the
    schedule again is.
    """

    def __init__(
        self,
        recurrence_id: str,
        cycle_number: int,
        operation: str,
        message: str,
    ):
        self.recurrence_id = recurrence_id
        self.cycle_number = cycle_number
        self.operation = operation
        super().__init__(message)


class RecurringCycleService:
    """
    Async facade over the cycle engine.

    Flow for every mutation:
    1. Persist the change (failure -> CycleUpdateError)
    2. Audit it
    3. Best-effort side effects (bill sync for overrides)
    4. Recompute and return the full schedule

    Concurrent edits are last-write-wins in storage.
    """

    def __init__(
        self,
        storage: CycleStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        engine_settings: Optional[CycleEngineSettings] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._engine = engine_settings or get_settings().engine
        self._app = app_settings or get_settings().app
        self._policy = self._engine.matching_policy()

    # -------------------------------------------------------------------------
    # Computation
    # -------------------------------------------------------------------------

    async def _fetch_or_empty(
        self,
        recurrence_id: str,
        source: str,
        fetch: Callable[[], Awaitable[list[T]]],
        degraded: list[str],
        correlation_id: UUID,
    ) -> list[T]:
        """Run a fetch with retries; on final failure, record it and return []."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._app.fetch_retry_attempts),
                wait=wait_exponential(multiplier=self._app.fetch_retry_wait_seconds),
                reraise=True,
            ):
                with attempt:
                    return await fetch()
        except Exception as e:
            logger.warning(
                "activity_fetch_degraded",
                recurrence_id=recurrence_id,
                source=source,
                error=str(e),
            )
            degraded.append(source)
            await self._audit_logger.log_activity_fetch_failed(
                recurrence_id=recurrence_id,
                source=source,
                error_message=str(e),
                correlation_id=correlation_id,
            )
        return []

    async def compute_schedule(
        self,
        recurrence_id: str,
        today: Optional[date] = None,
        max_cycles: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> CycleSchedule:
        """
        Compute the cycle schedule for a recurring transaction.

        Args:
            recurrence_id: Recurring transaction ID
            today: Reference day (defaults to the current date)
            max_cycles: Cap on generated cycles (defaults to settings)

        Returns:
            CycleSchedule

        Raises:
            NotFoundError / StorageError: The recurrence itself could not be read
            RecurrenceError: The stored rule is invalid
        """
        correlation_id = correlation_id or create_correlation_id()
        today = today or date.today()
        if max_cycles is None:
            max_cycles = self._engine.default_max_cycles

        descriptor = await self._storage.get_recurrence(recurrence_id)
        try:
            rule = normalize_rule(descriptor, strict=self._engine.strict_frequency_units)
        except RecurrenceError as e:
            logger.error("invalid_recurrence_rule", recurrence_id=recurrence_id, error=str(e))
            await self._audit_logger.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"recurrence_id": recurrence_id},
                correlation_id=correlation_id,
            )
            raise

        fallback_tokens = unrecognized_tokens(descriptor)
        if fallback_tokens:
            await self._audit_logger.log_frequency_fallback(
                recurrence_id=recurrence_id,
                tokens=fallback_tokens,
                correlation_id=correlation_id,
            )

        degraded: list[str] = []
        transactions = await self._fetch_or_empty(
            recurrence_id, "transactions",
            lambda: self._storage.list_transactions(descriptor),
            degraded, correlation_id,
        )
        scheduled_payments = await self._fetch_or_empty(
            recurrence_id, "scheduled_payments",
            lambda: self._storage.list_scheduled_payments(recurrence_id),
            degraded, correlation_id,
        )
        bills = await self._fetch_or_empty(
            recurrence_id, "bills",
            lambda: self._storage.list_bills(recurrence_id),
            degraded, correlation_id,
        )

        schedule = build_cycle_schedule(
            rule,
            today=today,
            max_cycles=max_cycles,
            transactions=transactions,
            scheduled_payments=scheduled_payments,
            bills=bills,
            pricing_phases=descriptor.pricing_phases,
            overrides=descriptor.cycle_overrides,
            notes=descriptor.cycle_notes,
            nature=descriptor.recurrence_nature,
            policy=self._policy,
        )

        for diagnostic in schedule.diagnostics:
            logger.warning(
                "duplicate_cycle_discarded",
                recurrence_id=recurrence_id,
                cycle_number=diagnostic.cycle_number,
                reason=diagnostic.reason,
                detail=diagnostic.message,
            )
            await self._audit_logger.log_duplicate_discarded(
                recurrence_id=recurrence_id,
                cycle_number=diagnostic.cycle_number,
                reason=diagnostic.reason,
                correlation_id=correlation_id,
            )

        await self._audit_logger.log_schedule_computed(
            recurrence_id=recurrence_id,
            cycle_count=len(schedule.cycles),
            degraded_sources=degraded,
            correlation_id=correlation_id,
        )
        return schedule

    async def get_cycles_needing_bills(
        self,
        recurrence_id: str,
        today: Optional[date] = None,
    ) -> list[Cycle]:
        """Cycles due bill_lead_days from today that still have no bill."""
        today = today or date.today()
        schedule = await self.compute_schedule(recurrence_id, today=today)
        return cycles_needing_bills(
            schedule.cycles,
            today,
            lead_days=self._engine.bill_lead_days,
        )

    async def get_cycle_history(
        self,
        recurrence_id: str,
        cycle_number: int,
    ) -> list[AuditEvent]:
        """Audit trail of overrides, notes and failures for one cycle."""
        events = await self._audit_logger.get_entity_history("recurrence", recurrence_id)
        return [e for e in events if e.cycle_number == cycle_number]

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def _persistence_failed(
        self,
        recurrence_id: str,
        cycle_number: int,
        operation: str,
        error: Exception,
        correlation_id: UUID,
    ) -> CycleUpdateError:
        logger.error(
            "cycle_update_failed",
            recurrence_id=recurrence_id,
            cycle_number=cycle_number,
            operation=operation,
            error=str(error),
        )
        await self._audit_logger.log_persistence_failed(
            recurrence_id=recurrence_id,
            cycle_number=cycle_number,
            operation=operation,
            error_message=str(error),
            correlation_id=correlation_id,
        )
        return CycleUpdateError(
            recurrence_id=recurrence_id,
            cycle_number=cycle_number,
            operation=operation,
            message=f"Could not {operation} for cycle {cycle_number}: {error}",
        )

    async def _recompute_after_write(
        self,
        recurrence_id: str,
        cycle_number: int,
        operation: str,
        today: Optional[date],
        max_cycles: Optional[int],
        correlation_id: UUID,
    ) -> CycleSchedule:
        try:
            return await self.compute_schedule(
                recurrence_id,
                today=today,
                max_cycles=max_cycles,
                correlation_id=correlation_id,
            )
        except (StorageError, RecurrenceError) as e:
            logger.error(
                "recompute_after_update_failed",
                recurrence_id=recurrence_id,
                cycle_number=cycle_number,
                operation=operation,
                error=str(e),
            )
            raise ScheduleRecomputeError(
                recurrence_id=recurrence_id,
                cycle_number=cycle_number,
                operation=operation,
                message=(
                    f"{operation.capitalize()} for cycle {cycle_number} succeeded, "
                    f"but the schedule could not be recomputed: {e}"
                ),
            ) from e

    @staticmethod
    def _check_cycle_number(recurrence_id: str, cycle_number: int, operation: str) -> None:
        if cycle_number < 1:
            raise CycleUpdateError(
                recurrence_id=recurrence_id,
                cycle_number=cycle_number,
                operation=operation,
                message=f"Cycle numbers start at 1, got {cycle_number}",
            )

    async def _sync_bills(
        self,
        recurrence_id: str,
        cycle_number: int,
        override: CycleOverride,
        correlation_id: UUID,
    ) -> list[str]:
        """
        Push the override's date/amount/minimum onto the cycle's bills.

        Best effort: failures are logged and audited, never raised.

        Returns:
            IDs of the bills that were updated
        """
        if (
            override.expected_date is None
            and override.expected_amount is None
            and override.minimum_amount is None
        ):
            return []

        try:
            bills: list[Bill] = await self._storage.list_bills(recurrence_id)
        except Exception as e:
            logger.warning(
                "bill_sync_skipped",
                recurrence_id=recurrence_id,
                cycle_number=cycle_number,
                error=str(e),
            )
            return []

        synced = []
        for bill in bills:
            if bill.cycle_number != cycle_number:
                continue
            try:
                await self._storage.update_bill(
                    bill.id,
                    due_date=override.expected_date,
                    amount=override.expected_amount,
                    minimum_amount=override.minimum_amount,
                )
            except Exception as e:
                logger.warning(
                    "bill_sync_failed",
                    recurrence_id=recurrence_id,
                    cycle_number=cycle_number,
                    bill_id=bill.id,
                    error=str(e),
                )
                await self._audit_logger.log_bill_sync_failed(
                    bill_id=bill.id,
                    cycle_number=cycle_number,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                continue

            synced.append(bill.id)
            await self._audit_logger.log_bill_synced(
                bill_id=bill.id,
                cycle_number=cycle_number,
                correlation_id=correlation_id,
            )
        return synced

    async def set_override(
        self,
        recurrence_id: str,
        cycle_number: int,
        override: CycleOverride,
        today: Optional[date] = None,
        max_cycles: Optional[int] = None,
    ) -> CycleSchedule:
        """
        Pin expected date/amount/minimum/notes for one cycle.

        The override is merged with any stored one. Bills already attached
        to the cycle are then updated to match (best effort) and the
        schedule is recomputed.

        Raises:
            CycleUpdateError: The override could not be stored
            ScheduleRecomputeError: The override was stored, the recompute failed
        """
        correlation_id = create_correlation_id()
        self._check_cycle_number(recurrence_id, cycle_number, "save override")

        try:
            merged = await self._storage.save_cycle_override(
                recurrence_id, cycle_number, override
            )
        except StorageError as e:
            raise await self._persistence_failed(
                recurrence_id, cycle_number, "save override", e, correlation_id
            ) from e

        await self._audit_logger.log_override_set(
            recurrence_id=recurrence_id,
            cycle_number=cycle_number,
            fields=override.model_dump(mode="json", exclude_none=True),
            correlation_id=correlation_id,
        )

        await self._sync_bills(recurrence_id, cycle_number, merged, correlation_id)

        return await self._recompute_after_write(
            recurrence_id, cycle_number, "save override", today, max_cycles, correlation_id
        )

    async def remove_override(
        self,
        recurrence_id: str,
        cycle_number: int,
        today: Optional[date] = None,
        max_cycles: Optional[int] = None,
    ) -> CycleSchedule:
        """
        Drop the override for one cycle and recompute.

        Bills previously synced from the override are left as they are.
        A failed recompute after the delete raises ScheduleRecomputeError.
        """
        correlation_id = create_correlation_id()
        self._check_cycle_number(recurrence_id, cycle_number, "remove override")

        try:
            removed = await self._storage.delete_cycle_override(recurrence_id, cycle_number)
        except StorageError as e:
            raise await self._persistence_failed(
                recurrence_id, cycle_number, "remove override", e, correlation_id
            ) from e

        if removed:
            await self._audit_logger.log_override_removed(
                recurrence_id=recurrence_id,
                cycle_number=cycle_number,
                correlation_id=correlation_id,
            )

        return await self._recompute_after_write(
            recurrence_id, cycle_number, "remove override", today, max_cycles, correlation_id
        )

    async def set_note(
        self,
        recurrence_id: str,
        cycle_number: int,
        note: str,
        today: Optional[date] = None,
        max_cycles: Optional[int] = None,
    ) -> CycleSchedule:
        """
        Store a free-text note for one cycle (empty clears it) and recompute.

        A failed recompute after the write raises ScheduleRecomputeError.
        """
        correlation_id = create_correlation_id()
        self._check_cycle_number(recurrence_id, cycle_number, "save note")
        note = (note or "").strip()

        try:
            await self._storage.save_cycle_note(recurrence_id, cycle_number, note)
        except StorageError as e:
            raise await self._persistence_failed(
                recurrence_id, cycle_number, "save note", e, correlation_id
            ) from e

        await self._audit_logger.log_note_set(
            recurrence_id=recurrence_id,
            cycle_number=cycle_number,
            note_length=len(note),
            correlation_id=correlation_id,
        )

        return await self._recompute_after_write(
            recurrence_id, cycle_number, "save note", today, max_cycles, correlation_id
        )


def create_app_components(
    storage: Optional[CycleStorageInterface] = None,
) -> tuple[RecurringCycleService, Optional[GoogleSheetsClient]]:
    """
    Factory function to create the application components.

    Args:
        storage: Storage to use instead of Google Sheets (e.g. in tests).
                 Audit events are then only logged locally.

    Returns:
        (service, sheets_client) - sheets_client is None when storage is given
    """
    if storage is not None:
        return RecurringCycleService(storage, audit_logger=AuditLogger()), None

    status = validate_all_settings()
    for name in ("engine", "google_sheets", "app"):
        if not status[name]:
            logger.error("settings_invalid", section=name, error=status[f"{name}_error"])

    sheets_client = GoogleSheetsClient()
    cycle_storage = GoogleSheetsCycleStorage(sheets_client)

    try:
        audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
    except Exception as e:
        logger.warning("audit_storage_unavailable", error=str(e))
        audit_logger = AuditLogger()  # Local-only logging

    return RecurringCycleService(cycle_storage, audit_logger=audit_logger), sheets_client
