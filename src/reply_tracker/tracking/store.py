"""In-memory conversation store with per-conversation atomic updates."""

from __future__ import annotations

import asyncio
import weakref
from typing import Awaitable, Callable, Iterable, Optional, Protocol

from reply_tracker.log import get_logger
from reply_tracker.tracking.models import ConversationRecord

logger = get_logger(__name__)

Mutator = Callable[[Optional[ConversationRecord]], Optional[ConversationRecord]]
Predicate = Callable[[ConversationRecord], bool]


class RecordPersistence(Protocol):
    """Write-through hook for durable backends."""

    async def save(self, record: ConversationRecord) -> None: ...

    async def delete(self, conversation_id: str) -> None: ...


class ConversationStore:
    """Owns every ConversationRecord in the process.

    Callers never see the stored objects: reads return deep copies and writes
    go through :meth:`upsert`, whose mutator works on a copy that is committed
    only if it returns normally. Writes to one conversation are serialized by
    a per-id lock; writes to different conversations do not contend.
    """

    def __init__(self, persistence: RecordPersistence | None = None):
        self._records: dict[str, ConversationRecord] = {}
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._persistence = persistence

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._records

    def _lock_for(self, conversation_id: str) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    def load(self, records: Iterable[ConversationRecord]) -> int:
        """Seed the store, e.g. from persistence at startup. Existing ids are replaced."""
        count = 0
        for record in records:
            self._records[record.conversation_id] = record.copy()
            count += 1
        logger.info("store_loaded", count=count)
        return count

    async def get(self, conversation_id: str) -> ConversationRecord | None:
        record = self._records.get(conversation_id)
        return record.copy() if record is not None else None

    async def upsert(self, conversation_id: str, mutator: Mutator) -> ConversationRecord | None:
        """Atomically read-modify-write one record.

        The mutator receives a working copy (or ``None`` when absent) and
        returns the record to store, or ``None`` to leave the store unchanged.
        Returns a copy of the stored record, or ``None`` if nothing is stored.
        """
        lock = self._lock_for(conversation_id)
        async with lock:
            current = self._records.get(conversation_id)
            working = current.copy() if current is not None else None
            updated = mutator(working)
            if updated is None:
                return current.copy() if current is not None else None
            if updated.conversation_id != conversation_id:
                raise ValueError(
                    f"Mutator changed identity {conversation_id!r} -> {updated.conversation_id!r}"
                )
            updated.check_invariants()
            self._records[conversation_id] = updated
            await self._persist_save(updated)
            return updated.copy()

    async def delete(self, conversation_id: str, predicate: Predicate | None = None) -> bool:
        """Remove a record; with ``predicate``, only if it still holds under the lock."""
        lock = self._lock_for(conversation_id)
        async with lock:
            current = self._records.get(conversation_id)
            if current is None:
                return False
            if predicate is not None and not predicate(current):
                return False
            del self._records[conversation_id]
            await self._persist_delete(conversation_id)
            return True

    async def snapshot(self, predicate: Predicate | None = None) -> list[ConversationRecord]:
        """Copies of all records (optionally filtered), ordered by conversation id."""
        records = [r.copy() for r in self._records.values()]
        if predicate is not None:
            records = [r for r in records if predicate(r)]
        records.sort(key=lambda r: r.conversation_id)
        return records

    async def for_each(
        self, visitor: Callable[[ConversationRecord], Awaitable[None] | None]
    ) -> int:
        """Visit every record of a snapshot taken when the call begins."""
        records = await self.snapshot()
        for record in records:
            outcome = visitor(record)
            if asyncio.iscoroutine(outcome):
                await outcome
        return len(records)

    async def _persist_save(self, record: ConversationRecord) -> None:
        if self._persistence is None:
            return
        try:
            await self._persistence.save(record)
        except Exception as e:
            logger.error(
                "store_persist_failed",
                conversation_id=record.conversation_id,
                error=str(e),
            )

    async def _persist_delete(self, conversation_id: str) -> None:
        if self._persistence is None:
            return
        try:
            await self._persistence.delete(conversation_id)
        except Exception as e:
            logger.error("store_persist_delete_failed", conversation_id=conversation_id, error=str(e))
