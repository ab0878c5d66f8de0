"""Services package."""

from recurring_cycles.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    CycleStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsCycleStorage,
    NotFoundError,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "CycleStorageInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsCycleStorage",
    "NotFoundError",
    "StorageError",
]
