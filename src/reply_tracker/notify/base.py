"""Abstract notification sink."""

from __future__ import annotations

from abc import ABC, abstractmethod

from reply_tracker.core.delivery import DeliveryResult
from reply_tracker.log import get_logger

logger = get_logger(__name__)


class Notifier(ABC):
    """Delivers operator-facing alerts (new messages, reminders, command echoes).

    Implementations report failures through :class:`DeliveryResult` rather
    than raising.
    """

    @property
    @abstractmethod
    def channel_name(self) -> str:
        ...

    @abstractmethod
    async def notify(self, conversation_id: str | None, text: str) -> DeliveryResult:
        """Send ``text``; ``conversation_id`` is context only and may be None."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""


class LogNotifier(Notifier):
    """Used when no notification channel is configured: writes alerts to the log."""

    @property
    def channel_name(self) -> str:
        return "log"

    async def notify(self, conversation_id: str | None, text: str) -> DeliveryResult:
        logger.info("notification", conversation_id=conversation_id, text=text)
        return DeliveryResult.success()
