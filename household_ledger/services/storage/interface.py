"""
Abstract Record Storage Interface

DESIGN DECISION: The ledger core talks to storage only through this
generic keyed-record interface (get / put / delete / query-by-field).
This allows us to:
1. Run fully in memory for tests
2. Persist to Google Sheets (or a synchronized local store) unchanged
3. Wrap any backend in a unit of work for all-or-nothing writes

The core is agnostic to whether storage is local or synchronized remotely.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

from household_ledger.errors import ReferentialError
from household_ledger.models.audit import AuditEvent
from household_ledger.models.statement import CreditCardPayment, CreditCardStatement
from household_ledger.models.transaction import Transaction
from household_ledger.models.wallet import Category, Wallet


class Collection(str, Enum):
    """Record collections known to the ledger."""
    WALLETS = "wallets"
    TRANSACTIONS = "transactions"
    STATEMENTS = "statements"
    PAYMENTS = "payments"
    CATEGORIES = "categories"
    AUDIT_EVENTS = "audit_events"


# Record model stored in each collection
COLLECTION_MODELS = {
    Collection.WALLETS: Wallet,
    Collection.TRANSACTIONS: Transaction,
    Collection.STATEMENTS: CreditCardStatement,
    Collection.PAYMENTS: CreditCardPayment,
    Collection.CATEGORIES: Category,
    Collection.AUDIT_EVENTS: AuditEvent,
}


def matches(record: Any, filters: dict[str, Any]) -> bool:
    """
    True when every filtered field equals the given value.

    Enum fields compare equal to their string values, so
    ``status="open"`` and ``status=StatementStatus.OPEN`` both work.
    """
    for field, expected in filters.items():
        if getattr(record, field, None) != expected:
            return False
    return True


class RecordStorageInterface(ABC):
    """
    Abstract interface for keyed-record storage.

    Any storage implementation (in-memory, Google Sheets, etc.)
    must implement these methods. Implementations return copies:
    mutating a returned record never changes stored state until it is
    passed back to ``put``.
    """

    @abstractmethod
    async def get(self, collection: Collection, record_id: str) -> Optional[Any]:
        """
        Retrieve a record by id.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def put(self, collection: Collection, record: Any) -> None:
        """
        Insert or replace a record, keyed by ``record.id``.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, collection: Collection, record_id: str) -> bool:
        """
        Delete a record by id.

        Returns:
            True if a record was deleted
        """
        pass

    @abstractmethod
    async def query(self, collection: Collection, **filters: Any) -> list[Any]:
        """
        List records whose fields equal the given values.

        With no filters, returns the whole collection.
        """
        pass

    async def list_all(self, collection: Collection) -> list[Any]:
        """Every record of a collection."""
        return await self.query(collection)

    async def require(self, collection: Collection, record_id: str) -> Any:
        """
        Retrieve a record or fail with ReferentialError.
        """
        record = await self.get(collection, record_id)
        if record is None:
            raise ReferentialError(collection.value, record_id)
        return record


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
