"""Telegram messenger adapter using python-telegram-bot v21+."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from telegram import Update
from telegram.constants import ChatType
from telegram.error import TelegramError
from telegram.ext import Application, MessageHandler as TGMessageHandler, filters

from reply_tracker.config import BotConfig
from reply_tracker.core.delivery import DeliveryResult
from reply_tracker.core.errors import ConfigError
from reply_tracker.core.types import Platform, SourceKind
from reply_tracker.log import get_logger
from reply_tracker.messenger.base import MessengerAdapter
from reply_tracker.messenger.models import InboundEvent
from reply_tracker.tracking.models import UNKNOWN_DISPLAY_NAME

logger = get_logger(__name__)

MAX_TEXT_LENGTH = 4096

_SOURCE_KINDS = {
    ChatType.PRIVATE: SourceKind.INDIVIDUAL,
    ChatType.GROUP: SourceKind.GROUP,
    ChatType.SUPERGROUP: SourceKind.GROUP,
    ChatType.CHANNEL: SourceKind.ROOM,
}


class TelegramAdapter(MessengerAdapter):
    """Telegram bot adapter using long polling."""

    def __init__(self, config: BotConfig):
        super().__init__(config)
        self._app: Application | None = None  # type: ignore[type-arg]

    @property
    def platform_name(self) -> str:
        return Platform.TELEGRAM

    async def start(self) -> None:
        token = self.config.token
        if not token:
            raise ConfigError(f"Telegram bot token not configured for bot '{self.bot_id}'")

        self._app = Application.builder().token(token).build()

        # Commands are matched on the raw text, so "/status" style strings pass through too
        self._app.add_handler(TGMessageHandler(filters.TEXT, self._on_telegram_message))

        await self._app.initialize()
        await self._app.start()
        await self._app.updater.start_polling(drop_pending_updates=True)  # type: ignore[union-attr]
        logger.info("telegram_adapter_started", bot_id=self.bot_id)

    async def stop(self) -> None:
        if self._app:
            await self._app.updater.stop()  # type: ignore[union-attr]
            await self._app.stop()
            await self._app.shutdown()
            logger.info("telegram_adapter_stopped", bot_id=self.bot_id)

    async def send_direct(self, chat_id: str, text: str) -> DeliveryResult:
        return await self._send(chat_id, text, reply_to=None)

    async def send_as_reply(self, reply_handle: str, text: str, chat_id: str) -> DeliveryResult:
        return await self._send(chat_id, text, reply_to=int(reply_handle))

    async def _send(self, chat_id: str, text: str, reply_to: int | None) -> DeliveryResult:
        if not self._app or not self._app.bot:
            return DeliveryResult.failure("Telegram adapter is not started")
        try:
            sent = await self._app.bot.send_message(
                chat_id=int(chat_id),
                text=text[:MAX_TEXT_LENGTH],
                reply_to_message_id=reply_to,
            )
        except TelegramError as e:
            logger.error("telegram_send_error", bot_id=self.bot_id, chat_id=chat_id, error=str(e))
            return DeliveryResult.failure(f"{type(e).__name__}: {e}")
        return DeliveryResult.success(str(sent.message_id))

    def normalize(self, update: Update) -> InboundEvent | None:
        """Build an InboundEvent from a text update, or None for anything else."""
        msg = update.effective_message
        if msg is None or not msg.text:
            return None

        chat = msg.chat
        source_kind = _SOURCE_KINDS.get(chat.type, SourceKind.GROUP)
        user = msg.from_user
        bot_user_id = self._app.bot.id if self._app and self._app.bot else None

        replies_to_bot = (
            msg.reply_to_message is not None
            and msg.reply_to_message.from_user is not None
            and msg.reply_to_message.from_user.id == bot_user_id
        )

        return InboundEvent(
            platform=Platform.TELEGRAM,
            bot_id=self.bot_id,
            chat_id=str(chat.id),
            sender_id=str(user.id) if user else "",
            source_kind=source_kind,
            text=msg.text,
            external_message_id=str(msg.message_id),
            received_at=msg.date or datetime.now(timezone.utc),
            is_repliable=source_kind is SourceKind.INDIVIDUAL or replies_to_bot,
            reply_handle=str(msg.message_id),
            display_name=(
                user.full_name if user else (chat.title or UNKNOWN_DISPLAY_NAME)
            ),
        )

    async def _on_telegram_message(self, update: Update, context: Any) -> None:
        event = self.normalize(update)
        if event is None:
            return
        try:
            await self._dispatch(event)
        except Exception as e:
            logger.error("telegram_handler_error", error=str(e), chat_id=event.chat_id)
