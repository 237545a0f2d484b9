"""
Storage Services Package

Provides abstract interfaces and concrete implementations for record storage.
Ships an in-memory backend and a Google Sheets backend; the interface is
designed so either can be swapped for a database later.
"""

from cashledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    RecordNotFoundError,
    RecordStoreInterface,
    StorageError,
    select_records,
)
from cashledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRecordStore,
)
from cashledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "RecordStoreInterface",
    "select_records",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "RecordNotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryRecordStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
]
