"""Platform webhook routes."""

from __future__ import annotations

import json

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse

from reply_tracker.core.errors import InvalidSignatureError
from reply_tracker.log import get_logger
from reply_tracker.messenger.base import WebhookAdapter
from reply_tracker.web.context import WebContext, get_context

logger = get_logger(__name__)

router = APIRouter(prefix="/webhook", tags=["Webhook"])

SIGNATURE_HEADER = "x-line-signature"


def _webhook_adapter(ctx: WebContext, bot_id: str) -> WebhookAdapter:
    adapter = ctx.bot_registry.webhook_adapter(bot_id)
    if adapter is None:
        raise HTTPException(status_code=404, detail="Unknown webhook")
    return adapter


@router.get("/{bot_id}", response_class=PlainTextResponse)
async def webhook_info(bot_id: str, ctx: WebContext = Depends(get_context)) -> str:
    _webhook_adapter(ctx, bot_id)
    return "Webhook is working. Deliver events with POST."


@router.post("/{bot_id}")
async def receive_webhook(
    bot_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    ctx: WebContext = Depends(get_context),
) -> PlainTextResponse:
    """Verify, acknowledge immediately, and process events after the response is sent."""
    adapter = _webhook_adapter(ctx, bot_id)
    body = await request.body()

    try:
        adapter.verify_signature(body, request.headers.get(SIGNATURE_HEADER))
    except InvalidSignatureError as e:
        logger.warning("webhook_signature_rejected", bot_id=bot_id, reason=str(e))
        raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Malformed body")
    if not isinstance(payload, dict) or not isinstance(payload.get("events"), list):
        raise HTTPException(status_code=400, detail="Malformed body")

    logger.info("webhook_received", bot_id=bot_id, events=len(payload["events"]))
    background_tasks.add_task(_process, adapter, payload)
    return PlainTextResponse("OK")


async def _process(adapter: WebhookAdapter, payload: dict) -> None:
    try:
        await adapter.handle_webhook(payload)
    except Exception as e:
        logger.error("webhook_processing_error", bot_id=adapter.bot_id, error=str(e))
