"""
Unit of Work and Record Locks

DESIGN DECISION: A payment touches five records (payment, two
transactions, two wallets) plus the statement. Backends like Google Sheets
have no transactions, so all-or-nothing is enforced here:

1. Writes inside a UnitOfWork are STAGED, not sent to the backend.
   Reads inside the unit see staged writes (read-your-writes).
2. On clean exit, staged writes are committed in order.
3. On an exception inside the block, staged writes are discarded.
4. If the backend fails halfway through the commit, records already
   written are restored to their prior version (compensating rollback)
   and StorageError is raised.

A UnitOfWork is itself a RecordStorageInterface, so services run
unchanged on top of it. Units nest: an inner unit commits into the outer
unit's staging area.

RecordLocks gives one asyncio.Lock per record so a single logical
operation at a time mutates a given statement.
"""

import asyncio
from collections import defaultdict
from typing import Any, Optional

import structlog

from household_ledger.services.storage.interface import (
    Collection,
    RecordStorageInterface,
    StorageError,
    matches,
)


logger = structlog.get_logger(__name__)

# Sentinel for "deleted in this unit"
_DELETED = object()


class UnitOfWork(RecordStorageInterface):
    """
    Staging layer over a backend storage.

    Usage:
        async with UnitOfWork(storage) as uow:
            await uow.put(Collection.WALLETS, wallet)
            ...
        # committed here, or discarded if the block raised
    """

    def __init__(self, storage: RecordStorageInterface):
        self._storage = storage
        self._staged: dict[tuple[Collection, str], Any] = {}
        self._committed = False

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.rollback()
            return False
        await self.commit()
        return False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, collection: Collection, record_id: str) -> Optional[Any]:
        key = (collection, record_id)
        if key in self._staged:
            staged = self._staged[key]
            return None if staged is _DELETED else staged.model_copy(deep=True)
        return await self._storage.get(collection, record_id)

    async def query(self, collection: Collection, **filters: Any) -> list[Any]:
        results = []
        seen = set()
        for record in await self._storage.query(collection, **filters):
            key = (collection, record.id)
            seen.add(key)
            if key in self._staged:
                staged = self._staged[key]
                if staged is not _DELETED and matches(staged, filters):
                    results.append(staged.model_copy(deep=True))
            else:
                results.append(record)

        # Records staged in this unit that the backend has not seen yet,
        # or whose staged version now matches the filters
        for key, staged in self._staged.items():
            if key[0] != collection or key in seen or staged is _DELETED:
                continue
            if matches(staged, filters):
                results.append(staged.model_copy(deep=True))
        return results

    # ------------------------------------------------------------------
    # Writes (staged)
    # ------------------------------------------------------------------

    async def put(self, collection: Collection, record: Any) -> None:
        self._ensure_open()
        key = (collection, record.id)
        # Re-insert to keep commit order equal to last-write order
        self._staged.pop(key, None)
        self._staged[key] = record.model_copy(deep=True)

    async def delete(self, collection: Collection, record_id: str) -> bool:
        self._ensure_open()
        existed = await self.get(collection, record_id) is not None
        key = (collection, record_id)
        self._staged.pop(key, None)
        self._staged[key] = _DELETED
        return existed

    # ------------------------------------------------------------------
    # Commit / rollback
    # ------------------------------------------------------------------

    @property
    def pending_writes(self) -> int:
        return len(self._staged)

    def rollback(self) -> None:
        """Discard staged writes. Nothing has reached the backend."""
        if self._staged:
            logger.info("unit_of_work_rolled_back", discarded=len(self._staged))
        self._staged.clear()

    async def commit(self) -> None:
        """
        Flush staged writes to the backend in order.

        On backend failure, restores every record already written and
        raises StorageError.
        """
        self._ensure_open()
        applied: list[tuple[Collection, str, Any]] = []

        try:
            for (collection, record_id), staged in self._staged.items():
                prior = await self._storage.get(collection, record_id)
                if staged is _DELETED:
                    await self._storage.delete(collection, record_id)
                else:
                    await self._storage.put(collection, staged)
                applied.append((collection, record_id, prior))
        except Exception as e:
            logger.error(
                "unit_of_work_commit_failed",
                error=str(e),
                applied=len(applied),
                staged=len(self._staged),
            )
            await self._compensate(applied)
            self._staged.clear()
            raise StorageError(f"Commit failed, changes rolled back: {e}") from e

        self._committed = True
        self._staged.clear()

    async def _compensate(self, applied: list[tuple[Collection, str, Any]]) -> None:
        """Restore prior versions of already-written records, newest first."""
        for collection, record_id, prior in reversed(applied):
            try:
                if prior is None:
                    await self._storage.delete(collection, record_id)
                else:
                    await self._storage.put(collection, prior)
            except Exception as e:
                # Nothing more can be done here; reconciliation will find the drift
                logger.critical(
                    "unit_of_work_compensation_failed",
                    collection=collection.value,
                    record_id=record_id,
                    error=str(e),
                )

    def _ensure_open(self) -> None:
        if self._committed:
            raise StorageError("Unit of work already committed")


class RecordLocks:
    """
    Registry of per-record asyncio locks.

    Usage:
        async with locks.hold(Collection.STATEMENTS, statement_id):
            ...
    """

    def __init__(self):
        self._locks: defaultdict[tuple[Collection, str], asyncio.Lock] = defaultdict(asyncio.Lock)

    def hold(self, collection: Collection, record_id: str) -> asyncio.Lock:
        return self._locks[(collection, record_id)]

    def is_held(self, collection: Collection, record_id: str) -> bool:
        key = (collection, record_id)
        return key in self._locks and self._locks[key].locked()
