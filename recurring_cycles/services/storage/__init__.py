"""
Storage Services Package

Provides the abstract storage interfaces and the Google Sheets backend.
The cycle service depends only on the interfaces.
"""

from recurring_cycles.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    CycleStorageInterface,
    NotFoundError,
    StorageError,
)
from recurring_cycles.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsCycleStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "CycleStorageInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsCycleStorage",
]
