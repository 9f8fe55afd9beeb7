"""
In-Memory Storage Implementation

Dict-backed storage for tests and single-process use. Records are deep
copied on the way in and on the way out, so callers can never mutate
stored state except through ``put``.
"""

from typing import Any, Optional

from household_ledger.services.storage.interface import (
    Collection,
    RecordStorageInterface,
    matches,
)


class InMemoryRecordStorage(RecordStorageInterface):
    """
    In-memory implementation of record storage.

    Iteration order of ``query`` is insertion order.
    """

    def __init__(self):
        self._collections: dict[Collection, dict[str, Any]] = {
            collection: {} for collection in Collection
        }

    async def get(self, collection: Collection, record_id: str) -> Optional[Any]:
        record = self._collections[collection].get(record_id)
        return record.model_copy(deep=True) if record is not None else None

    async def put(self, collection: Collection, record: Any) -> None:
        self._collections[collection][record.id] = record.model_copy(deep=True)

    async def delete(self, collection: Collection, record_id: str) -> bool:
        return self._collections[collection].pop(record_id, None) is not None

    async def query(self, collection: Collection, **filters: Any) -> list[Any]:
        return [
            record.model_copy(deep=True)
            for record in self._collections[collection].values()
            if matches(record, filters)
        ]

    def count(self, collection: Collection) -> int:
        """Number of records in a collection (test helper)."""
        return len(self._collections[collection])
