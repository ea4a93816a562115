"""Abstract messenger adapter interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from reply_tracker.config import BotConfig
from reply_tracker.core.delivery import DeliveryResult
from reply_tracker.messenger.models import InboundEvent

EventCallback = Callable[[InboundEvent], Awaitable[None]]


class MessengerAdapter(ABC):
    """Base class for all messenger platform adapters.

    An adapter turns platform payloads into :class:`InboundEvent` objects and
    sends text back. Send methods never raise for delivery problems; they
    return a failed :class:`DeliveryResult` instead.
    """

    def __init__(self, config: BotConfig):
        self.bot_id = config.id
        self.config = config
        self._event_callback: EventCallback | None = None

    @property
    def operator_ids(self) -> frozenset[str]:
        """Platform user ids whose messages count as replies from us."""
        return frozenset(self.config.operator_user_ids)

    @property
    def receives_webhooks(self) -> bool:
        return False

    @abstractmethod
    async def start(self) -> None:
        """Connect to the platform and begin receiving messages."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Gracefully disconnect."""
        ...

    @abstractmethod
    async def send_direct(self, chat_id: str, text: str) -> DeliveryResult:
        """Push a message to a chat without a reply handle."""
        ...

    @abstractmethod
    async def send_as_reply(self, reply_handle: str, text: str, chat_id: str) -> DeliveryResult:
        """Answer the inbound message identified by ``reply_handle``."""
        ...

    def on_event(self, callback: EventCallback) -> None:
        """Register the callback invoked for every normalized inbound event."""
        self._event_callback = callback

    async def _dispatch(self, event: InboundEvent) -> None:
        if self._event_callback is not None:
            await self._event_callback(event)

    @property
    @abstractmethod
    def platform_name(self) -> str:
        """Return platform identifier string."""
        ...


class WebhookAdapter(MessengerAdapter):
    """Adapter fed by HTTP callbacks rather than a long-lived connection."""

    @property
    def receives_webhooks(self) -> bool:
        return True

    @abstractmethod
    def verify_signature(self, body: bytes, signature: str | None) -> None:
        """Raise InvalidSignatureError unless ``signature`` authenticates ``body``."""
        ...

    @abstractmethod
    async def handle_webhook(self, payload: dict) -> int:
        """Normalize and dispatch every event in a verified payload. Returns events dispatched."""
        ...
