"""Reminder sweep: finds overdue conversations and escalates reminders."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from reply_tracker.core.delivery import guarded_delivery
from reply_tracker.core.types import SourceKind
from reply_tracker.log import get_logger
from reply_tracker.notify.base import Notifier
from reply_tracker.notify.templates import MessageTemplates
from reply_tracker.tracking.models import ConversationRecord, utcnow
from reply_tracker.tracking.store import ConversationStore

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ReminderPolicy:
    first_reminder_delay: timedelta
    reminder_interval: timedelta
    group_reminders_enabled: bool = False

    def is_eligible(self, record: ConversationRecord) -> bool:
        if not record.needs_reply or record.last_inbound is None:
            return False
        if record.source_kind is SourceKind.INDIVIDUAL:
            return True
        return self.group_reminders_enabled

    def is_due(self, record: ConversationRecord, now: datetime) -> bool:
        if not self.is_eligible(record):
            return False
        if record.last_reminder_at is None:
            return now - record.last_inbound.received_at >= self.first_reminder_delay
        return now - record.last_reminder_at >= self.reminder_interval


@dataclass(frozen=True, slots=True)
class SweepReport:
    started_at: datetime
    checked: int = 0
    due: int = 0
    sent: int = 0
    failed: int = 0
    superseded: int = 0
    skipped: bool = False

    def as_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "checked": self.checked,
            "due": self.due,
            "sent": self.sent,
            "failed": self.failed,
            "superseded": self.superseded,
            "skipped": self.skipped,
        }


class ReminderSweep:
    """One reminder per due conversation per run, never two runs at once."""

    def __init__(
        self,
        store: ConversationStore,
        notifier: Notifier,
        policy: ReminderPolicy,
        templates: MessageTemplates | None = None,
        clock: Callable[[], datetime] = utcnow,
        notify_timeout: Optional[float] = None,
    ):
        self._store = store
        self._notifier = notifier
        self._policy = policy
        self._templates = templates or MessageTemplates()
        self._clock = clock
        self._notify_timeout = notify_timeout
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def run(self) -> SweepReport:
        # locked() and the uncontended acquire below happen without yielding
        if self._lock.locked():
            logger.warning("reminder_sweep_busy")
            return SweepReport(started_at=self._clock(), skipped=True)
        async with self._lock:
            return await self._sweep(self._clock())

    async def _sweep(self, now: datetime) -> SweepReport:
        candidates = await self._store.snapshot(self._policy.is_eligible)
        due = [r for r in candidates if self._policy.is_due(r, now)]
        logger.info("reminder_sweep_start", eligible=len(candidates), due=len(due))

        outcomes = {"sent": 0, "failed": 0, "superseded": 0}
        for record in due:
            outcomes[await self._remind(record, now)] += 1

        report = SweepReport(
            started_at=now,
            checked=len(candidates),
            due=len(due),
            sent=outcomes["sent"],
            failed=outcomes["failed"],
            superseded=outcomes["superseded"],
        )
        logger.info("reminder_sweep_done", **report.as_dict())
        return report

    async def _remind(self, record: ConversationRecord, now: datetime) -> str:
        """Returns "sent", "failed" or "superseded"."""
        conversation_id = record.conversation_id
        text = self._templates.reminder(record, now)
        result = await guarded_delivery(
            lambda: self._notifier.notify(conversation_id, text),
            operation="reminder",
            timeout=self._notify_timeout,
            conversation_id=conversation_id,
        )
        if not result.ok:
            # Bookkeeping untouched: the record stays due for the next run
            return "failed"

        expected_message = record.last_inbound.external_message_id
        expected_count = record.reminder_count
        applied = False

        def mutate(current: ConversationRecord | None) -> ConversationRecord | None:
            nonlocal applied
            # A reply or a newer message that landed mid-send takes precedence
            if (
                current is None
                or not current.needs_reply
                or current.last_inbound is None
                or current.last_inbound.external_message_id != expected_message
                or current.reminder_count != expected_count
            ):
                return None
            applied = True
            current.reminder_count += 1
            current.last_reminder_at = now
            return current

        updated = await self._store.upsert(conversation_id, mutate)
        if not applied:
            logger.info("reminder_superseded", conversation_id=conversation_id)
            return "superseded"
        logger.info(
            "reminder_sent",
            conversation_id=conversation_id,
            reminder_count=updated.reminder_count,
        )
        return "sent"
