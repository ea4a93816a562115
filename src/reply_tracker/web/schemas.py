"""Request and response bodies for the control API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from reply_tracker.tracking.models import ConversationRecord


class MessageView(BaseModel):
    text: str
    message_id: str
    at: datetime


class ConversationResponse(BaseModel):
    conversation_id: str
    bot_id: str
    display_name: str
    source_kind: str
    needs_reply: bool
    reminder_count: int
    last_reminder_at: Optional[datetime] = None
    last_inbound: Optional[MessageView] = None
    last_outbound: Optional[MessageView] = None

    @classmethod
    def from_record(cls, record: ConversationRecord) -> ConversationResponse:
        inbound = record.last_inbound
        outbound = record.last_outbound
        return cls(
            conversation_id=record.conversation_id,
            bot_id=record.bot_id,
            display_name=record.display_name,
            source_kind=record.source_kind.value,
            needs_reply=record.needs_reply,
            reminder_count=record.reminder_count,
            last_reminder_at=record.last_reminder_at,
            last_inbound=(
                MessageView(
                    text=inbound.text,
                    message_id=inbound.external_message_id,
                    at=inbound.received_at,
                )
                if inbound
                else None
            ),
            last_outbound=(
                MessageView(
                    text=outbound.text,
                    message_id=outbound.generated_message_id,
                    at=outbound.sent_at,
                )
                if outbound
                else None
            ),
        )


class ConversationListResponse(BaseModel):
    conversations: list[ConversationResponse]
    total: int


class ReplyRequest(BaseModel):
    text: str = Field(min_length=1, max_length=5000)


class ResetResponse(BaseModel):
    changed: int


class SweepResponse(BaseModel):
    skipped: bool
    checked: int = 0
    due: int = 0
    sent: int = 0
    failed: int = 0
    superseded: int = 0


class RetentionResponse(BaseModel):
    skipped: bool
    evicted: int = 0
