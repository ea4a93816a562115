"""Retention sweep: drops resolved conversations once they go stale."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable

from reply_tracker.log import get_logger
from reply_tracker.tracking.models import ConversationRecord, utcnow
from reply_tracker.tracking.store import ConversationStore

logger = get_logger(__name__)


class RetentionSweep:
    def __init__(
        self,
        store: ConversationStore,
        retention_window: timedelta,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._retention_window = retention_window
        self._clock = clock
        self._lock = asyncio.Lock()

    def is_expired(self, record: ConversationRecord, now: datetime) -> bool:
        # Unanswered conversations are never evicted automatically
        if record.needs_reply:
            return False
        return now - record.age_reference() >= self._retention_window

    async def run(self) -> int | None:
        """Evict expired records. Returns the eviction count, or None if a run is in progress."""
        if self._lock.locked():
            logger.warning("retention_sweep_busy")
            return None
        async with self._lock:
            now = self._clock()
            expired = await self._store.snapshot(lambda r: self.is_expired(r, now))
            evicted = 0
            for record in expired:
                if await self._store.delete(
                    record.conversation_id, predicate=lambda r: self.is_expired(r, now)
                ):
                    evicted += 1
            logger.info("retention_sweep_done", evicted=evicted, remaining=len(self._store))
            return evicted
