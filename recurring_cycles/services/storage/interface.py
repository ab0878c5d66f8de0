"""
Abstract Storage Interface

DESIGN DECISION: The cycle service talks to storage only through this
interface. This allows us to:
1. Keep the Google Sheets backend swappable
2. Use in-memory storage for testing
3. Keep the engine and service decoupled from storage details

Only overrides, notes and bill updates are ever written. Cycles themselves
are never stored; they are recomputed on every read.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Optional

from recurring_cycles.models.activity import Bill, ScheduledPayment, Transaction
from recurring_cycles.models.audit import AuditEvent
from recurring_cycles.models.recurrence import CycleOverride, RecurrenceDescriptor


class CycleStorageInterface(ABC):
    """
    Abstract interface for everything the cycle service reads and writes.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods.
    """

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_recurrence(self, recurrence_id: str) -> RecurrenceDescriptor:
        """
        Fetch a recurring transaction, including its overrides and notes.

        Raises:
            NotFoundError: If the recurrence doesn't exist
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        descriptor: RecurrenceDescriptor,
    ) -> list[Transaction]:
        """
        Settled transactions that could belong to this recurrence.

        Returns transactions dated on or after the recurrence's start date
        whose category equals the recurrence's category, or whose
        description contains its title (case-insensitive).
        """
        pass

    @abstractmethod
    async def list_scheduled_payments(
        self,
        recurrence_id: str,
    ) -> list[ScheduledPayment]:
        """Pending scheduled payments (scheduled, due today or overdue)."""
        pass

    @abstractmethod
    async def list_bills(self, recurrence_id: str) -> list[Bill]:
        """Bills whose metadata links them to this recurrence."""
        pass

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_cycle_override(
        self,
        recurrence_id: str,
        cycle_number: int,
        override: CycleOverride,
    ) -> CycleOverride:
        """
        Merge an override into the stored one for this cycle.

        Fields set on `override` replace the stored values; fields left as
        None keep the stored values.

        Returns:
            The merged override as stored

        Raises:
            NotFoundError: If the recurrence doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_cycle_override(
        self,
        recurrence_id: str,
        cycle_number: int,
    ) -> bool:
        """
        Remove the override for a cycle.

        Returns:
            True if an override was removed, False if there was none
        """
        pass

    @abstractmethod
    async def save_cycle_note(
        self,
        recurrence_id: str,
        cycle_number: int,
        note: str,
    ) -> bool:
        """Store (or clear, with an empty string) the note for a cycle."""
        pass

    @abstractmethod
    async def update_bill(
        self,
        bill_id: str,
        due_date: Optional[date] = None,
        amount: Optional[Decimal] = None,
        minimum_amount: Optional[Decimal] = None,
    ) -> bool:
        """
        Update the given fields of a bill. None leaves a field unchanged.

        Raises:
            NotFoundError: If the bill doesn't exist
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'recurrence', 'bill')
            entity_id: The entity's ID

        Returns:
            List of events in chronological order
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
