"""LINE Messaging API adapter (webhook in, REST out) using httpx."""

from __future__ import annotations

import asyncio
import base64
import hashlib
import hmac
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

import httpx

from reply_tracker.config import BotConfig
from reply_tracker.core.delivery import DeliveryResult
from reply_tracker.core.errors import ConfigError, InvalidSignatureError
from reply_tracker.core.types import Platform, SourceKind
from reply_tracker.log import get_logger
from reply_tracker.messenger.base import WebhookAdapter
from reply_tracker.messenger.models import InboundEvent
from reply_tracker.tracking.models import UNKNOWN_DISPLAY_NAME

logger = get_logger(__name__)

MAX_TEXT_LENGTH = 5000
MAX_MESSAGES_PER_REQUEST = 5

_SOURCE_KINDS = {
    "user": SourceKind.INDIVIDUAL,
    "group": SourceKind.GROUP,
    "room": SourceKind.ROOM,
}


def compute_signature(channel_secret: str, body: bytes) -> str:
    digest = hmac.new(channel_secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def _text_messages(text: str) -> list[dict[str, str]]:
    chunks = [text[i : i + MAX_TEXT_LENGTH] for i in range(0, len(text), MAX_TEXT_LENGTH)] or [""]
    if len(chunks) > MAX_MESSAGES_PER_REQUEST:
        logger.warning(
            "line_text_truncated",
            length=len(text),
            kept=MAX_TEXT_LENGTH * MAX_MESSAGES_PER_REQUEST,
        )
    return [{"type": "text", "text": chunk} for chunk in chunks[:MAX_MESSAGES_PER_REQUEST]]


class LineAdapter(WebhookAdapter):
    """LINE bot adapter. Inbound traffic arrives on ``POST /webhook/{bot_id}``."""

    def __init__(self, config: BotConfig, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(config)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def platform_name(self) -> str:
        return Platform.LINE

    async def start(self) -> None:
        if not self.config.token:
            raise ConfigError(f"LINE channel access token not configured for bot '{self.bot_id}'")
        if not self.config.channel_secret:
            raise ConfigError(f"LINE channel secret not configured for bot '{self.bot_id}'")
        self._client = httpx.AsyncClient(
            base_url=self.config.api_base_url,
            headers={"Authorization": f"Bearer {self.config.token}"},
            timeout=self.config.timeout,
            transport=self._transport,
        )
        logger.info("line_adapter_started", bot_id=self.bot_id)

    async def stop(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("line_adapter_stopped", bot_id=self.bot_id)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(f"LINE adapter '{self.bot_id}' is not started")
        return self._client

    # -- inbound ---------------------------------------------------------

    def verify_signature(self, body: bytes, signature: str | None) -> None:
        if not signature:
            raise InvalidSignatureError("Missing X-Line-Signature header")
        expected = compute_signature(self.config.channel_secret, body)
        if not hmac.compare_digest(expected, signature):
            raise InvalidSignatureError("Signature does not match request body")

    async def handle_webhook(self, payload: dict) -> int:
        events = payload.get("events")
        if not isinstance(events, list):
            raise ValueError("Webhook payload has no 'events' list")

        normalized = [e for e in (self._normalize(raw) for raw in events) if e is not None]
        if not normalized:
            return 0

        # One chat's events apply in payload order; different chats run concurrently
        by_chat: dict[str, list[InboundEvent]] = {}
        for event in normalized:
            by_chat.setdefault(event.chat_id, []).append(event)
        await asyncio.gather(*(self._dispatch_in_order(chat) for chat in by_chat.values()))
        return len(normalized)

    async def _dispatch_in_order(self, events: list[InboundEvent]) -> None:
        for event in events:
            try:
                await self._resolve_and_dispatch(event)
            except Exception as e:
                logger.error(
                    "line_handler_error",
                    bot_id=self.bot_id,
                    conversation_id=event.conversation_id,
                    error=str(e),
                )

    def _normalize(self, raw: dict[str, Any]) -> InboundEvent | None:
        """Turn one webhook event into an InboundEvent; non-text events yield None."""
        if raw.get("type") != "message":
            return None
        message = raw.get("message") or {}
        if message.get("type") != "text":
            return None

        source = raw.get("source") or {}
        source_kind = _SOURCE_KINDS.get(source.get("type", ""))
        if source_kind is None:
            logger.debug("line_unknown_source", source=source)
            return None

        sender_id = source.get("userId") or ""
        chat_id = source.get("groupId") or source.get("roomId") or sender_id
        if not chat_id:
            return None

        reply_token = raw.get("replyToken") or None
        timestamp_ms = raw.get("timestamp")
        received_at = (
            datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
            if isinstance(timestamp_ms, (int, float))
            else datetime.now(timezone.utc)
        )

        return InboundEvent(
            platform=Platform.LINE,
            bot_id=self.bot_id,
            chat_id=chat_id,
            sender_id=sender_id,
            source_kind=source_kind,
            text=message.get("text", ""),
            external_message_id=str(message.get("id", "")),
            received_at=received_at,
            is_repliable=reply_token is not None,
            reply_handle=reply_token,
        )

    async def _resolve_and_dispatch(self, event: InboundEvent) -> None:
        display_name = await self.fetch_display_name(event.source_kind, event.chat_id, event.sender_id)
        await self._dispatch(replace(event, display_name=display_name))

    async def fetch_display_name(self, source_kind: SourceKind, chat_id: str, user_id: str) -> str:
        """Best-effort profile lookup; any failure degrades to a placeholder."""
        if not user_id:
            return UNKNOWN_DISPLAY_NAME
        if source_kind is SourceKind.GROUP:
            path = f"/v2/bot/group/{chat_id}/member/{user_id}"
        elif source_kind is SourceKind.ROOM:
            path = f"/v2/bot/room/{chat_id}/member/{user_id}"
        else:
            path = f"/v2/bot/profile/{user_id}"
        try:
            response = await self.client.get(path)
            response.raise_for_status()
            return response.json().get("displayName") or UNKNOWN_DISPLAY_NAME
        except Exception as e:
            logger.warning("line_profile_error", bot_id=self.bot_id, user_id=user_id, error=str(e))
            return UNKNOWN_DISPLAY_NAME

    # -- outbound --------------------------------------------------------

    async def send_direct(self, chat_id: str, text: str) -> DeliveryResult:
        return await self._post(
            "/v2/bot/message/push", {"to": chat_id, "messages": _text_messages(text)}
        )

    async def send_as_reply(self, reply_handle: str, text: str, chat_id: str) -> DeliveryResult:
        return await self._post(
            "/v2/bot/message/reply",
            {"replyToken": reply_handle, "messages": _text_messages(text)},
        )

    async def _post(self, path: str, body: dict[str, Any]) -> DeliveryResult:
        try:
            response = await self.client.post(path, json=body)
        except httpx.HTTPError as e:
            logger.error("line_send_error", bot_id=self.bot_id, path=path, error=str(e))
            return DeliveryResult.failure(f"{type(e).__name__}: {e}")

        if response.status_code >= 400:
            logger.error(
                "line_send_rejected",
                bot_id=self.bot_id,
                path=path,
                status=response.status_code,
                body=response.text[:200],
            )
            return DeliveryResult.failure(f"HTTP {response.status_code}: {response.text[:200]}")

        message_id = None
        try:
            sent = response.json().get("sentMessages") or []
            if sent:
                message_id = str(sent[0].get("id"))
        except ValueError:
            pass  # older API versions answer with an empty body
        return DeliveryResult.success(message_id)
