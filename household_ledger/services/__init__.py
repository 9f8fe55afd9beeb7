"""Services package."""

from household_ledger.services.storage import (
    Collection,
    ConnectionError,
    GoogleSheetsClient,
    GoogleSheetsRecordStorage,
    InMemoryRecordStorage,
    RecordLocks,
    RecordStorageInterface,
    StorageError,
    UnitOfWork,
)

__all__ = [
    "Collection",
    "ConnectionError",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStorage",
    "InMemoryRecordStorage",
    "RecordLocks",
    "RecordStorageInterface",
    "StorageError",
    "UnitOfWork",
]
