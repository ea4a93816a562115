"""Normalized inbound event shared by all messenger platforms."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from reply_tracker.core.types import Platform, SourceKind
from reply_tracker.tracking.models import UNKNOWN_DISPLAY_NAME, conversation_key


@dataclass(frozen=True, slots=True)
class InboundEvent:
    platform: Platform
    bot_id: str
    chat_id: str  # user, group or room id the conversation is keyed on
    sender_id: str
    source_kind: SourceKind
    text: str
    external_message_id: str
    received_at: datetime
    is_repliable: bool
    reply_handle: Optional[str] = None  # e.g. LINE replyToken, Telegram message id
    display_name: str = UNKNOWN_DISPLAY_NAME

    @property
    def conversation_id(self) -> str:
        return conversation_key(self.bot_id, self.chat_id)
