"""Slack incoming-webhook notifier."""

from __future__ import annotations

import httpx

from reply_tracker.core.delivery import DeliveryResult
from reply_tracker.log import get_logger
from reply_tracker.notify.base import Notifier

logger = get_logger(__name__)


class SlackWebhookNotifier(Notifier):
    """Posts ``{"text": ...}`` to a Slack incoming webhook URL."""

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not webhook_url:
            raise ValueError("Slack webhook URL is empty")
        self._webhook_url = webhook_url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def channel_name(self) -> str:
        return "slack"

    async def notify(self, conversation_id: str | None, text: str) -> DeliveryResult:
        preview = text[:100] + ("..." if len(text) > 100 else "")
        logger.debug("slack_notify", conversation_id=conversation_id, preview=preview)
        try:
            response = await self._client.post(self._webhook_url, json={"text": text})
        except httpx.HTTPError as e:
            logger.error("slack_notify_error", conversation_id=conversation_id, error=str(e))
            return DeliveryResult.failure(f"{type(e).__name__}: {e}")

        if response.status_code >= 400:
            logger.error(
                "slack_notify_rejected",
                conversation_id=conversation_id,
                status=response.status_code,
                body=response.text[:200],
            )
            return DeliveryResult.failure(f"HTTP {response.status_code}: {response.text[:200]}")

        logger.info("slack_notified", conversation_id=conversation_id, status=response.status_code)
        return DeliveryResult.success()

    async def aclose(self) -> None:
        await self._client.aclose()
