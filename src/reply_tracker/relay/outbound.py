"""Operator-initiated replies sent through the owning messenger adapter."""

from __future__ import annotations

from reply_tracker.core.bot_registry import BotRegistry
from reply_tracker.core.errors import NotFoundError, SendFailedError
from reply_tracker.log import get_logger
from reply_tracker.tracking.engine import TransitionEngine
from reply_tracker.tracking.models import ConversationRecord

logger = get_logger(__name__)


class OutboundRelay:
    def __init__(self, engine: TransitionEngine, bot_registry: BotRegistry):
        self._engine = engine
        self._bot_registry = bot_registry

    async def send_reply(self, conversation_id: str, text: str) -> ConversationRecord:
        """Push ``text`` to the conversation and record it as the reply.

        Reply handles are short-lived on most platforms, so this always uses a
        direct push. Raises NotFoundError or SendFailedError.
        """
        record = await self._engine.store.get(conversation_id)
        if record is None:
            raise NotFoundError(conversation_id)

        adapter = self._bot_registry.get(record.bot_id)
        if adapter is None:
            raise SendFailedError(conversation_id, f"no adapter registered for bot '{record.bot_id}'")

        chat_id = record.chat_id
        logger.info("outbound_reply_start", conversation_id=conversation_id, bot_id=record.bot_id)
        return await self._engine.reply(
            conversation_id, text, lambda: adapter.send_direct(chat_id, text)
        )
