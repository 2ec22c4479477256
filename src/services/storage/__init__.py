"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the durable backend; the in-memory backend serves tests
and local runs.
"""

from src.services.storage.interface import (
    AuditStorageInterface,
    ConflictError,
    DependencyError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from src.services.storage.locks import KeyedLock
from src.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from src.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConflictError",
    "DependencyError",
    "NotFoundError",
    "StorageError",
    # Concurrency
    "KeyedLock",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
