"""Services package."""

from src.services.storage import (
    AuditStorageInterface,
    ConflictError,
    DependencyError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    KeyedLock,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Storage services
    "AuditStorageInterface",
    "ConflictError",
    "DependencyError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "KeyedLock",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageError",
]
