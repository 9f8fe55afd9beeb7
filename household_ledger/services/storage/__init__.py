"""
Storage Services Package

Provides the keyed-record storage interface, an in-memory backend,
a Google Sheets backend, and the unit of work that makes multi-record
writes all-or-nothing on any backend.
"""

from household_ledger.services.storage.interface import (
    COLLECTION_MODELS,
    Collection,
    ConnectionError,
    RecordStorageInterface,
    StorageError,
)
from household_ledger.services.storage.memory import InMemoryRecordStorage
from household_ledger.services.storage.unit_of_work import RecordLocks, UnitOfWork
from household_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRecordStorage,
)

__all__ = [
    # Interfaces
    "COLLECTION_MODELS",
    "Collection",
    "RecordStorageInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # Implementations
    "InMemoryRecordStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStorage",
    # Transactions
    "RecordLocks",
    "UnitOfWork",
]
