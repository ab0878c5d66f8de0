"""
Shared fixtures for Recurring Cycles tests.

InMemoryCycleStorage stands in for Google Sheets. Any method can be made
to fail by putting an exception into `storage.failures[method_name]`.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

import pytest

from recurring_cycles.audit import AuditLogger
from recurring_cycles.config import AppSettings, CycleEngineSettings
from recurring_cycles.models.activity import Bill, ScheduledPayment, Transaction
from recurring_cycles.models.audit import AuditEvent
from recurring_cycles.models.recurrence import (
    CycleOverride,
    FrequencyUnit,
    RecurrenceDescriptor,
    RecurrenceRule,
)
from recurring_cycles.orchestrator import RecurringCycleService
from recurring_cycles.services.storage import (
    AuditStorageInterface,
    CycleStorageInterface,
    NotFoundError,
)


class InMemoryCycleStorage(CycleStorageInterface):
    """Dict-backed cycle storage with failure injection."""

    def __init__(self):
        self.recurrences: dict[str, RecurrenceDescriptor] = {}
        self.transactions: list[Transaction] = []
        self.scheduled_payments: dict[str, list[ScheduledPayment]] = {}
        self.bills: dict[str, list[Bill]] = {}
        self.failures: dict[str, Exception] = {}
        self.calls: dict[str, int] = {}

    def _enter(self, method: str) -> None:
        self.calls[method] = self.calls.get(method, 0) + 1
        if method in self.failures:
            raise self.failures[method]

    def add_recurrence(self, descriptor: RecurrenceDescriptor) -> None:
        self.recurrences[descriptor.id] = descriptor

    async def get_recurrence(self, recurrence_id: str) -> RecurrenceDescriptor:
        self._enter("get_recurrence")
        if recurrence_id not in self.recurrences:
            raise NotFoundError(f"Recurring transaction not found: {recurrence_id}")
        return self.recurrences[recurrence_id]

    async def list_transactions(self, descriptor: RecurrenceDescriptor) -> list[Transaction]:
        self._enter("list_transactions")
        return [t for t in self.transactions if t.transaction_date >= descriptor.start_date]

    async def list_scheduled_payments(self, recurrence_id: str) -> list[ScheduledPayment]:
        self._enter("list_scheduled_payments")
        return [p for p in self.scheduled_payments.get(recurrence_id, []) if p.is_pending]

    async def list_bills(self, recurrence_id: str) -> list[Bill]:
        self._enter("list_bills")
        return list(self.bills.get(recurrence_id, []))

    async def save_cycle_override(
        self,
        recurrence_id: str,
        cycle_number: int,
        override: CycleOverride,
    ) -> CycleOverride:
        self._enter("save_cycle_override")
        descriptor = await self.get_recurrence(recurrence_id)
        overrides = dict(descriptor.cycle_overrides)
        merged = overrides.get(cycle_number, CycleOverride()).merged_with(override)
        overrides[cycle_number] = merged
        self.recurrences[recurrence_id] = descriptor.model_copy(
            update={"cycle_overrides": overrides}
        )
        return merged

    async def delete_cycle_override(self, recurrence_id: str, cycle_number: int) -> bool:
        self._enter("delete_cycle_override")
        descriptor = await self.get_recurrence(recurrence_id)
        if cycle_number not in descriptor.cycle_overrides:
            return False
        overrides = dict(descriptor.cycle_overrides)
        del overrides[cycle_number]
        self.recurrences[recurrence_id] = descriptor.model_copy(
            update={"cycle_overrides": overrides}
        )
        return True

    async def save_cycle_note(self, recurrence_id: str, cycle_number: int, note: str) -> bool:
        self._enter("save_cycle_note")
        descriptor = await self.get_recurrence(recurrence_id)
        notes = dict(descriptor.cycle_notes)
        if note:
            notes[cycle_number] = note
        else:
            notes.pop(cycle_number, None)
        self.recurrences[recurrence_id] = descriptor.model_copy(update={"cycle_notes": notes})
        return True

    async def update_bill(
        self,
        bill_id: str,
        due_date: Optional[date] = None,
        amount: Optional[Decimal] = None,
        minimum_amount: Optional[Decimal] = None,
    ) -> bool:
        self._enter("update_bill")
        for recurrence_id, bills in self.bills.items():
            for idx, bill in enumerate(bills):
                if bill.id != bill_id:
                    continue
                update = {
                    "due_date": due_date,
                    "amount": amount,
                    "minimum_amount": minimum_amount,
                }
                bills[idx] = bill.model_copy(
                    update={k: v for k, v in update.items() if v is not None}
                )
                return True
        raise NotFoundError(f"Bill not found: {bill_id}")


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed audit storage."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_entity(self, entity_type: str, entity_id: str) -> list[AuditEvent]:
        return [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    def types(self) -> list[str]:
        return [e.event_type.value for e in self.events]


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def jan31_rule() -> RecurrenceRule:
    """Monthly rule anchored on the 31st, starting 2024-01-31."""
    return RecurrenceRule(
        start_date=date(2024, 1, 31),
        frequency=FrequencyUnit.MONTHLY,
        interval=1,
        anchor_day=31,
        base_amount=Decimal("20"),
    )


@pytest.fixture
def netflix() -> RecurrenceDescriptor:
    """A monthly subscription on the 15th, as stored."""
    return RecurrenceDescriptor(
        id="rec-netflix",
        title="Netflix",
        frequency="month",
        interval=1,
        date_of_occurrence="15",
        start_date=date(2024, 1, 15),
        amount=Decimal("-15.99"),
        nature="subscription",
        category_id="cat-streaming",
    )


@pytest.fixture
def storage(netflix) -> InMemoryCycleStorage:
    storage = InMemoryCycleStorage()
    storage.add_recurrence(netflix)
    return storage


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def service(storage, audit_storage) -> RecurringCycleService:
    return RecurringCycleService(
        storage,
        audit_logger=AuditLogger(audit_storage),
        engine_settings=CycleEngineSettings(default_max_cycles=6),
        app_settings=AppSettings(fetch_retry_attempts=2, fetch_retry_wait_seconds=0),
    )
