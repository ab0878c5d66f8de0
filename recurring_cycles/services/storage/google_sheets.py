"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the storage backend because:
1. Users can inspect and fix their recurring items directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No transactions: an override write and the bill sync that follows it
  are separate writes, and the sync never rolls the override back
- Limited query capabilities (we filter in Python)

Per-cycle data lives in JSON columns on the Recurrences sheet:
pricing_phases_json, cycle_overrides_json and cycle_notes_json. JSON object
keys are cycle numbers as strings.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from recurring_cycles.config import get_settings
from recurring_cycles.models.activity import Bill, BillStatus, ScheduledPayment, Transaction
from recurring_cycles.models.audit import AuditEvent, AuditEventType, AuditSeverity
from recurring_cycles.models.recurrence import (
    CycleOverride,
    PricingPhase,
    RecurrenceDescriptor,
)
from recurring_cycles.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    CycleStorageInterface,
    NotFoundError,
    StorageError,
)


RECURRENCE_COLUMNS = [
    "id",
    "title",
    "frequency",
    "interval",
    "date_of_occurrence",
    "custom_unit",
    "custom_interval",
    "start_date",
    "end_date",
    "amount",
    "estimated_amount",
    "nature",
    "category_id",
    "pricing_phases_json",
    "cycle_overrides_json",
    "cycle_notes_json",
]

TRANSACTION_COLUMNS = [
    "id",
    "date",
    "amount",
    "description",
    "category_id",
    "metadata_json",
]

SCHEDULED_PAYMENT_COLUMNS = [
    "id",
    "recurring_transaction_id",
    "due_date",
    "amount",
    "title",
    "status",
    "notes",
    "metadata_json",
]

BILL_COLUMNS = [
    "id",
    "title",
    "due_date",
    "status",
    "amount",
    "minimum_amount",
    "metadata_json",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "cycle_number",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Sheet column numbers are 1-based
OVERRIDES_COLUMN = RECURRENCE_COLUMNS.index("cycle_overrides_json") + 1
NOTES_COLUMN = RECURRENCE_COLUMNS.index("cycle_notes_json") + 1


sheets_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type(NotFoundError),
    reraise=True,
)


def _cell(row: list, index: int, default: str = "") -> str:
    """Read a cell, tolerating short rows and blank cells."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _optional_decimal(value: str) -> Optional[Decimal]:
    return Decimal(value) if value else None


def _optional_date(value: str) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _optional_int(value: str) -> Optional[int]:
    return int(value) if value else None


def _load_json(value: str, default: Any) -> Any:
    return json.loads(value) if value else default


def _decimal_cell(value: Optional[Decimal]) -> str:
    return str(value) if value is not None else ""


def _date_cell(value: Optional[date]) -> str:
    return value.isoformat() if value else ""


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and hands out worksheets, creating any that
    are missing with their header row.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_recurrences_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.recurrences_sheet_name, RECURRENCE_COLUMNS)

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.transactions_sheet_name,
            TRANSACTION_COLUMNS,
            rows=5000,
        )

    def get_scheduled_payments_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.scheduled_payments_sheet_name,
            SCHEDULED_PAYMENT_COLUMNS,
        )

    def get_bills_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.bills_sheet_name, BILL_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


# =============================================================================
# ROW CONVERSION
# =============================================================================

def row_to_recurrence(row: list) -> RecurrenceDescriptor:
    """Convert a Recurrences row to a RecurrenceDescriptor."""
    phases = _load_json(_cell(row, 13), [])
    overrides = _load_json(_cell(row, 14), {})
    notes = _load_json(_cell(row, 15), {})

    return RecurrenceDescriptor(
        id=_cell(row, 0),
        title=_cell(row, 1),
        frequency=_cell(row, 2) or None,
        interval=_optional_int(_cell(row, 3)),
        date_of_occurrence=_cell(row, 4) or None,
        custom_unit=_cell(row, 5) or None,
        custom_interval=_optional_int(_cell(row, 6)),
        start_date=date.fromisoformat(_cell(row, 7)),
        end_date=_optional_date(_cell(row, 8)),
        amount=_optional_decimal(_cell(row, 9)),
        estimated_amount=_optional_decimal(_cell(row, 10)),
        nature=_cell(row, 11) or None,
        category_id=_cell(row, 12) or None,
        pricing_phases=[PricingPhase(**phase) for phase in phases],
        cycle_overrides={int(k): CycleOverride(**v) for k, v in overrides.items()},
        cycle_notes={int(k): str(v) for k, v in notes.items()},
    )


def overrides_to_cell(overrides: dict[int, CycleOverride]) -> str:
    return json.dumps({
        str(number): override.model_dump(mode="json", exclude_none=True)
        for number, override in sorted(overrides.items())
    })


def notes_to_cell(notes: dict[int, str]) -> str:
    return json.dumps({str(number): text for number, text in sorted(notes.items())})


def row_to_transaction(row: list) -> Transaction:
    return Transaction(
        id=_cell(row, 0),
        transaction_date=date.fromisoformat(_cell(row, 1)),
        amount=Decimal(_cell(row, 2)),
        description=_cell(row, 3) or None,
        category_id=_cell(row, 4) or None,
        metadata=_load_json(_cell(row, 5), {}),
    )


def row_to_scheduled_payment(row: list) -> ScheduledPayment:
    return ScheduledPayment(
        id=_cell(row, 0),
        due_date=date.fromisoformat(_cell(row, 2)),
        amount=Decimal(_cell(row, 3)),
        title=_cell(row, 4) or None,
        status=_cell(row, 5, "scheduled"),
        notes=_cell(row, 6) or None,
        metadata=_load_json(_cell(row, 7), {}),
    )


def row_to_bill(row: list) -> Bill:
    return Bill(
        id=_cell(row, 0),
        title=_cell(row, 1),
        due_date=date.fromisoformat(_cell(row, 2)),
        status=BillStatus(_cell(row, 3, BillStatus.UPCOMING.value)),
        amount=_optional_decimal(_cell(row, 4)),
        minimum_amount=_optional_decimal(_cell(row, 5)),
        metadata=_load_json(_cell(row, 6), {}),
    )


def bill_to_row(bill: Bill) -> list:
    return [
        bill.id,
        bill.title,
        bill.due_date.isoformat(),
        bill.status.value,
        _decimal_cell(bill.amount),
        _decimal_cell(bill.minimum_amount),
        json.dumps(bill.metadata, default=str) if bill.metadata else "",
    ]


# =============================================================================
# CYCLE STORAGE
# =============================================================================

class GoogleSheetsCycleStorage(CycleStorageInterface):
    """
    Google Sheets implementation of cycle storage.

    Malformed rows in the activity sheets are skipped rather than failing
    the whole read.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _find_recurrence_row(self, recurrence_id: str) -> tuple[int, list]:
        """Return (1-based sheet row index, row) for a recurrence."""
        sheet = self._client.get_recurrences_sheet()
        all_rows = sheet.get_all_values()

        for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is the header
            if row and row[0] == recurrence_id:
                return idx, row

        raise NotFoundError(f"Recurring transaction not found: {recurrence_id}")

    @sheets_retry
    async def get_recurrence(self, recurrence_id: str) -> RecurrenceDescriptor:
        try:
            _, row = self._find_recurrence_row(recurrence_id)
            return row_to_recurrence(row)
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read recurrence: {e}")

    @sheets_retry
    async def list_transactions(
        self,
        descriptor: RecurrenceDescriptor,
    ) -> list[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

        title = descriptor.title.lower()
        transactions = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                transaction = row_to_transaction(row)
            except Exception:
                continue  # Skip malformed rows

            if transaction.transaction_date < descriptor.start_date:
                continue

            same_category = (
                descriptor.category_id is not None
                and transaction.category_id == descriptor.category_id
            )
            mentions_title = bool(title) and title in (transaction.description or "").lower()
            if same_category or mentions_title:
                transactions.append(transaction)

        transactions.sort(key=lambda t: t.transaction_date)
        return transactions

    @sheets_retry
    async def list_scheduled_payments(
        self,
        recurrence_id: str,
    ) -> list[ScheduledPayment]:
        try:
            sheet = self._client.get_scheduled_payments_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list scheduled payments: {e}")

        payments = []
        for row in all_rows:
            if not row or not row[0] or _cell(row, 1) != recurrence_id:
                continue
            try:
                payment = row_to_scheduled_payment(row)
            except Exception:
                continue
            if payment.is_pending:
                payments.append(payment)

        payments.sort(key=lambda p: p.due_date)
        return payments

    @sheets_retry
    async def list_bills(self, recurrence_id: str) -> list[Bill]:
        try:
            sheet = self._client.get_bills_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to list bills: {e}")

        bills = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                bill = row_to_bill(row)
            except Exception:
                continue
            if str(bill.metadata.get("recurring_transaction_id", "")) == recurrence_id:
                bills.append(bill)

        bills.sort(key=lambda b: b.due_date)
        return bills

    @sheets_retry
    async def save_cycle_override(
        self,
        recurrence_id: str,
        cycle_number: int,
        override: CycleOverride,
    ) -> CycleOverride:
        try:
            idx, row = self._find_recurrence_row(recurrence_id)
            overrides = row_to_recurrence(row).cycle_overrides

            stored = overrides.get(cycle_number, CycleOverride())
            merged = stored.merged_with(override)
            overrides[cycle_number] = merged

            sheet = self._client.get_recurrences_sheet()
            sheet.update_cell(idx, OVERRIDES_COLUMN, overrides_to_cell(overrides))
            return merged
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save cycle override: {e}")

    @sheets_retry
    async def delete_cycle_override(
        self,
        recurrence_id: str,
        cycle_number: int,
    ) -> bool:
        try:
            idx, row = self._find_recurrence_row(recurrence_id)
            overrides = row_to_recurrence(row).cycle_overrides
            if cycle_number not in overrides:
                return False

            del overrides[cycle_number]
            sheet = self._client.get_recurrences_sheet()
            sheet.update_cell(idx, OVERRIDES_COLUMN, overrides_to_cell(overrides))
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete cycle override: {e}")

    @sheets_retry
    async def save_cycle_note(
        self,
        recurrence_id: str,
        cycle_number: int,
        note: str,
    ) -> bool:
        try:
            idx, row = self._find_recurrence_row(recurrence_id)
            notes = row_to_recurrence(row).cycle_notes
            if note:
                notes[cycle_number] = note
            else:
                notes.pop(cycle_number, None)

            sheet = self._client.get_recurrences_sheet()
            sheet.update_cell(idx, NOTES_COLUMN, notes_to_cell(notes))
            return True
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save cycle note: {e}")

    @sheets_retry
    async def update_bill(
        self,
        bill_id: str,
        due_date: Optional[date] = None,
        amount: Optional[Decimal] = None,
        minimum_amount: Optional[Decimal] = None,
    ) -> bool:
        try:
            sheet = self._client.get_bills_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):
                if row and row[0] == bill_id:
                    bill = row_to_bill(row)
                    update = {
                        "due_date": due_date,
                        "amount": amount,
                        "minimum_amount": minimum_amount,
                    }
                    bill = bill.model_copy(update={
                        k: v for k, v in update.items() if v is not None
                    })

                    for col_idx, value in enumerate(bill_to_row(bill), start=1):
                        sheet.update_cell(idx, col_idx, value)
                    return True

            raise NotFoundError(f"Bill not found: {bill_id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update bill: {e}")


# =============================================================================
# AUDIT STORAGE
# =============================================================================

class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_cell(row, 0)),
            timestamp=datetime.fromisoformat(_cell(row, 1)),
            event_type=AuditEventType(_cell(row, 2)),
            severity=AuditSeverity(_cell(row, 3)),
            entity_type=_cell(row, 4) or None,
            entity_id=_cell(row, 5) or None,
            cycle_number=_optional_int(_cell(row, 6)),
            correlation_id=UUID(_cell(row, 7)) if _cell(row, 7) else None,
            description=_cell(row, 8),
            details=_load_json(_cell(row, 9), {}),
            error_message=_cell(row, 10) or None,
            is_user_action=_cell(row, 11).lower() == "true",
        )

    def _read_events(self) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception:
                continue
        return events

    @sheets_retry
    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._read_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events
