"""Reply-state records and the snapshots they carry."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from reply_tracker.core.types import SourceKind

UNKNOWN_DISPLAY_NAME = "Unknown"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def conversation_key(bot_id: str, chat_id: str) -> str:
    """Stable conversation identity for a chat seen by one bot."""
    return f"{bot_id}:{chat_id}"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass(frozen=True, slots=True)
class InboundSnapshot:
    """The most recent message that requires attention."""

    text: str
    external_message_id: str
    received_at: datetime
    reply_handle: Optional[str] = None  # platform reply token, short-lived


@dataclass(frozen=True, slots=True)
class OutboundSnapshot:
    """The most recent reply sent (or observed) for a conversation."""

    text: str
    generated_message_id: str
    sent_at: datetime
    platform_message_id: Optional[str] = None


@dataclass
class ConversationRecord:
    conversation_id: str
    bot_id: str
    chat_id: str
    display_name: str = UNKNOWN_DISPLAY_NAME
    source_kind: SourceKind = SourceKind.INDIVIDUAL
    last_inbound: Optional[InboundSnapshot] = None
    last_outbound: Optional[OutboundSnapshot] = None
    needs_reply: bool = False
    last_reminder_at: Optional[datetime] = None
    reminder_count: int = 0
    confirmation_token: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def clear_reminders(self) -> None:
        self.last_reminder_at = None
        self.reminder_count = 0

    def copy(self) -> ConversationRecord:
        return copy.deepcopy(self)

    def age_reference(self) -> datetime:
        """Timestamp retention is measured from."""
        if self.last_inbound is not None:
            return self.last_inbound.received_at
        return self.created_at

    def check_invariants(self) -> None:
        if self.needs_reply and self.last_inbound is None:
            raise ValueError(f"{self.conversation_id}: needs_reply without an inbound message")
        if self.reminder_count < 0:
            raise ValueError(f"{self.conversation_id}: negative reminder_count")
        if self.reminder_count > 0 and (self.last_reminder_at is None or not self.needs_reply):
            raise ValueError(f"{self.conversation_id}: reminder bookkeeping on a replied record")

    def to_dict(self, include_token: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {
            "conversation_id": self.conversation_id,
            "bot_id": self.bot_id,
            "chat_id": self.chat_id,
            "display_name": self.display_name,
            "source_kind": self.source_kind.value,
            "needs_reply": self.needs_reply,
            "last_reminder_at": _iso(self.last_reminder_at),
            "reminder_count": self.reminder_count,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "last_inbound": None,
            "last_outbound": None,
        }
        if self.last_inbound is not None:
            data["last_inbound"] = {
                "text": self.last_inbound.text,
                "external_message_id": self.last_inbound.external_message_id,
                "received_at": _iso(self.last_inbound.received_at),
                "reply_handle": self.last_inbound.reply_handle,
            }
        if self.last_outbound is not None:
            data["last_outbound"] = {
                "text": self.last_outbound.text,
                "generated_message_id": self.last_outbound.generated_message_id,
                "sent_at": _iso(self.last_outbound.sent_at),
                "platform_message_id": self.last_outbound.platform_message_id,
            }
        if include_token:
            data["confirmation_token"] = self.confirmation_token
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationRecord:
        inbound = data.get("last_inbound")
        outbound = data.get("last_outbound")
        return cls(
            conversation_id=data["conversation_id"],
            bot_id=data["bot_id"],
            chat_id=data["chat_id"],
            display_name=data.get("display_name") or UNKNOWN_DISPLAY_NAME,
            source_kind=SourceKind(data.get("source_kind", SourceKind.INDIVIDUAL)),
            last_inbound=(
                InboundSnapshot(
                    text=inbound["text"],
                    external_message_id=inbound["external_message_id"],
                    received_at=_parse(inbound["received_at"]),
                    reply_handle=inbound.get("reply_handle"),
                )
                if inbound
                else None
            ),
            last_outbound=(
                OutboundSnapshot(
                    text=outbound["text"],
                    generated_message_id=outbound["generated_message_id"],
                    sent_at=_parse(outbound["sent_at"]),
                    platform_message_id=outbound.get("platform_message_id"),
                )
                if outbound
                else None
            ),
            needs_reply=bool(data.get("needs_reply", False)),
            last_reminder_at=_parse(data.get("last_reminder_at")),
            reminder_count=int(data.get("reminder_count", 0)),
            confirmation_token=data.get("confirmation_token"),
            created_at=_parse(data.get("created_at")) or utcnow(),
            updated_at=_parse(data.get("updated_at")) or utcnow(),
        )


@dataclass(frozen=True, slots=True)
class StatusReport:
    """Read-only view returned by the STATUS command."""

    conversation_id: str
    display_name: str
    needs_reply: bool
    reminder_count: int
    last_inbound: Optional[InboundSnapshot]
    last_outbound: Optional[OutboundSnapshot]

    @classmethod
    def from_record(cls, record: ConversationRecord) -> StatusReport:
        return cls(
            conversation_id=record.conversation_id,
            display_name=record.display_name,
            needs_reply=record.needs_reply,
            reminder_count=record.reminder_count,
            last_inbound=record.last_inbound,
            last_outbound=record.last_outbound,
        )
