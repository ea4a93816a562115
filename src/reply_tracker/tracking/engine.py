"""State transitions for reply tracking.

Every change to a ConversationRecord goes through this module. Each operation
is one atomic :meth:`ConversationStore.upsert`; the only slow step, sending an
outbound reply, happens before the record is touched so no lock is held
across network I/O.
"""

from __future__ import annotations

from datetime import datetime
from typing import Awaitable, Callable, Optional

from reply_tracker.core.delivery import DeliveryResult, guarded_delivery
from reply_tracker.core.errors import NotFoundError, SendFailedError, TokenMismatchError
from reply_tracker.log import get_logger
from reply_tracker.messenger.models import InboundEvent
from reply_tracker.tracking.models import (
    UNKNOWN_DISPLAY_NAME,
    ConversationRecord,
    InboundSnapshot,
    OutboundSnapshot,
    StatusReport,
    utcnow,
)
from reply_tracker.tracking.store import ConversationStore
from reply_tracker.tracking.tokens import new_confirmation_token, new_message_id, tokens_match

logger = get_logger(__name__)

Clock = Callable[[], datetime]
Sender = Callable[[], Awaitable[DeliveryResult]]


def _mark_replied(record: ConversationRecord, now: datetime) -> ConversationRecord:
    record.needs_reply = False
    record.clear_reminders()
    record.updated_at = now
    return record


def _inbound_at(record: ConversationRecord) -> Optional[datetime]:
    return record.last_inbound.received_at if record.last_inbound else None


def _is_older(event_at: datetime, stored_at: Optional[datetime]) -> bool:
    return stored_at is not None and event_at < stored_at


class TransitionEngine:
    """Applies classified events and operator actions to the store."""

    def __init__(
        self,
        store: ConversationStore,
        clock: Clock = utcnow,
        send_timeout: float | None = None,
    ):
        self._store = store
        self._clock = clock
        self._send_timeout = send_timeout

    @property
    def store(self) -> ConversationStore:
        return self._store

    async def record_user_message(self, event: InboundEvent) -> ConversationRecord | None:
        """A new end-user message: the conversation needs a reply again.

        Returns None when the event is older than the stored last inbound
        message; a late delivery never rolls the conversation back.
        """
        now = self._clock()
        stale = False
        inbound = InboundSnapshot(
            text=event.text,
            external_message_id=event.external_message_id,
            received_at=event.received_at,
            reply_handle=event.reply_handle,
        )

        def mutate(record: ConversationRecord | None) -> ConversationRecord | None:
            nonlocal stale
            if record is None:
                record = ConversationRecord(
                    conversation_id=event.conversation_id,
                    bot_id=event.bot_id,
                    chat_id=event.chat_id,
                    created_at=now,
                )
            elif _is_older(event.received_at, _inbound_at(record)):
                stale = True
                return None
            if event.display_name != UNKNOWN_DISPLAY_NAME or not record.display_name:
                record.display_name = event.display_name
            record.source_kind = event.source_kind
            record.last_inbound = inbound
            record.needs_reply = True
            record.clear_reminders()
            record.confirmation_token = new_confirmation_token()
            record.updated_at = now
            return record

        record = await self._store.upsert(event.conversation_id, mutate)
        if stale:
            logger.info(
                "stale_user_message_ignored",
                conversation_id=event.conversation_id,
                message_id=event.external_message_id,
            )
            return None
        logger.info(
            "user_message_recorded",
            conversation_id=event.conversation_id,
            message_id=event.external_message_id,
        )
        return record

    async def record_operator_reply(self, event: InboundEvent) -> ConversationRecord:
        """The operator answered on the platform itself; treat it as a sent reply."""
        now = self._clock()
        outbound = OutboundSnapshot(
            text=event.text,
            generated_message_id=new_message_id(),
            sent_at=event.received_at,
            platform_message_id=event.external_message_id,
        )

        def mutate(record: ConversationRecord | None) -> ConversationRecord | None:
            if record is None:
                record = ConversationRecord(
                    conversation_id=event.conversation_id,
                    bot_id=event.bot_id,
                    chat_id=event.chat_id,
                    source_kind=event.source_kind,
                    created_at=now,
                )
            elif record.last_outbound is not None and event.received_at < record.last_outbound.sent_at:
                return None
            record.last_outbound = outbound
            if _is_older(event.received_at, _inbound_at(record)):
                # Answers an earlier message; the newer one still needs a reply
                record.updated_at = now
                return record
            return _mark_replied(record, now)

        record = await self._store.upsert(event.conversation_id, mutate)
        logger.info("operator_reply_recorded", conversation_id=event.conversation_id)
        return record

    async def reply(self, conversation_id: str, text: str, send: Sender) -> ConversationRecord:
        """Send ``text`` through ``send`` and, only if it succeeds, mark the conversation replied.

        Raises :class:`NotFoundError` for an unknown conversation and
        :class:`SendFailedError` when delivery fails; in both cases the record
        is left exactly as it was. If a newer message arrived while the send
        was in flight, the reply is recorded but that message stays unanswered.
        """
        before = await self._store.get(conversation_id)
        if before is None:
            raise NotFoundError(conversation_id)
        answered = before.last_inbound.external_message_id if before.last_inbound else None

        result = await guarded_delivery(
            send,
            operation="outbound_reply",
            timeout=self._send_timeout,
            conversation_id=conversation_id,
        )
        if not result.ok:
            raise SendFailedError(conversation_id, result.error or "unknown error")

        now = self._clock()
        outbound = OutboundSnapshot(
            text=text,
            generated_message_id=new_message_id(),
            sent_at=now,
            platform_message_id=result.message_id,
        )

        def mutate(record: ConversationRecord | None) -> ConversationRecord | None:
            if record is None:
                # Evicted while the send was in flight; nothing left to update
                return None
            record.last_outbound = outbound
            current = record.last_inbound.external_message_id if record.last_inbound else None
            if current != answered:
                # A newer message arrived mid-send and still needs its own reply
                record.updated_at = now
                return record
            return _mark_replied(record, now)

        record = await self._store.upsert(conversation_id, mutate)
        if record is None:
            raise NotFoundError(conversation_id)
        logger.info(
            "outbound_reply_recorded",
            conversation_id=conversation_id,
            generated_message_id=outbound.generated_message_id,
        )
        return record

    async def mark_replied(self, conversation_id: str) -> ConversationRecord:
        """Clear the unanswered state of one conversation without sending anything."""
        now = self._clock()

        def mutate(record: ConversationRecord | None) -> ConversationRecord | None:
            if record is None:
                return None
            return _mark_replied(record, now)

        record = await self._store.upsert(conversation_id, mutate)
        if record is None:
            raise NotFoundError(conversation_id)
        logger.info("conversation_marked_replied", conversation_id=conversation_id)
        return record

    async def reset_all(self) -> int:
        """Mark every conversation known at call time as replied. Returns how many changed."""
        now = self._clock()
        changed = 0

        def mutate(record: ConversationRecord | None) -> ConversationRecord | None:
            nonlocal changed
            if record is None or not record.needs_reply:
                return None
            changed += 1
            return _mark_replied(record, now)

        for snapshot in await self._store.snapshot():
            await self._store.upsert(snapshot.conversation_id, mutate)

        logger.info("conversations_reset", changed=changed, total=len(self._store))
        return changed

    async def status(self, conversation_id: str) -> StatusReport:
        record = await self._store.get(conversation_id)
        if record is None:
            raise NotFoundError(conversation_id)
        return StatusReport.from_record(record)

    async def verify_token(self, conversation_id: str, token: Optional[str]) -> ConversationRecord:
        """Read-only token check for the confirmation page."""
        record = await self._store.get(conversation_id)
        if record is None:
            raise NotFoundError(conversation_id)
        if not tokens_match(record.confirmation_token, token):
            raise TokenMismatchError(conversation_id)
        return record

    async def confirm(self, conversation_id: str, token: Optional[str]) -> ConversationRecord:
        """Mark replied through an out-of-band confirmation link.

        The token is checked inside the atomic update so a message that rotates
        it concurrently always wins. A used token is rotated so a link works
        once.
        """
        now = self._clock()
        outcome: dict[str, bool] = {"found": False, "matched": False}

        def mutate(record: ConversationRecord | None) -> ConversationRecord | None:
            if record is None:
                return None
            outcome["found"] = True
            if not tokens_match(record.confirmation_token, token):
                return None
            outcome["matched"] = True
            record.confirmation_token = new_confirmation_token()
            return _mark_replied(record, now)

        record = await self._store.upsert(conversation_id, mutate)
        if not outcome["found"]:
            raise NotFoundError(conversation_id)
        if not outcome["matched"]:
            logger.warning("confirmation_token_mismatch", conversation_id=conversation_id)
            raise TokenMismatchError(conversation_id)
        logger.info("conversation_confirmed", conversation_id=conversation_id)
        return record
