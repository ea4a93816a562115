"""Operator control API: inspect and resolve tracked conversations."""

from __future__ import annotations

import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from reply_tracker.core.errors import NotFoundError, SendFailedError
from reply_tracker.log import get_logger
from reply_tracker.tracking.models import utcnow
from reply_tracker.web.context import WebContext, get_context
from reply_tracker.web.schemas import (
    ConversationListResponse,
    ConversationResponse,
    ReplyRequest,
    ResetResponse,
    RetentionResponse,
    SweepResponse,
)

logger = get_logger(__name__)


def require_admin(
    authorization: Optional[str] = Header(None),
    ctx: WebContext = Depends(get_context),
) -> WebContext:
    """Bearer-token guard. The control API is off entirely when no token is configured."""
    if not ctx.admin_token:
        raise HTTPException(status_code=503, detail="Control API disabled")
    scheme, _, presented = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(
        presented.encode("utf-8"), ctx.admin_token.encode("utf-8")
    ):
        raise HTTPException(status_code=401, detail="Unauthorized")
    return ctx


router = APIRouter(prefix="/api", tags=["Control"], dependencies=[Depends(require_admin)])


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    pending: bool = Query(False, description="Only conversations awaiting a reply"),
    ctx: WebContext = Depends(get_context),
):
    records = await ctx.engine.store.snapshot((lambda r: r.needs_reply) if pending else None)
    return ConversationListResponse(
        conversations=[ConversationResponse.from_record(r) for r in records],
        total=len(records),
    )


@router.get("/conversations/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(conversation_id: str, ctx: WebContext = Depends(get_context)):
    record = await ctx.engine.store.get(conversation_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return ConversationResponse.from_record(record)


@router.post("/conversations/{conversation_id}/reply", response_model=ConversationResponse)
async def reply_to_conversation(
    conversation_id: str,
    body: ReplyRequest,
    ctx: WebContext = Depends(get_context),
):
    try:
        record = await ctx.relay.send_reply(conversation_id, body.text)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except SendFailedError as e:
        raise HTTPException(status_code=502, detail=f"Send failed: {e.reason}")
    return ConversationResponse.from_record(record)


@router.post("/conversations/{conversation_id}/mark-replied", response_model=ConversationResponse)
async def mark_conversation_replied(conversation_id: str, ctx: WebContext = Depends(get_context)):
    try:
        record = await ctx.engine.mark_replied(conversation_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return ConversationResponse.from_record(record)


@router.post("/reset", response_model=ResetResponse)
async def reset_all(ctx: WebContext = Depends(get_context)):
    changed = await ctx.engine.reset_all()
    return ResetResponse(changed=changed)


@router.post("/sweeps/reminders", response_model=SweepResponse)
async def trigger_reminder_sweep(ctx: WebContext = Depends(get_context)):
    report = await ctx.scheduler.run_reminder_sweep()
    return SweepResponse(
        skipped=report.skipped,
        checked=report.checked,
        due=report.due,
        sent=report.sent,
        failed=report.failed,
        superseded=report.superseded,
    )


@router.post("/sweeps/retention", response_model=RetentionResponse)
async def trigger_retention_sweep(ctx: WebContext = Depends(get_context)):
    evicted = await ctx.scheduler.run_retention_sweep()
    if evicted is None:
        return RetentionResponse(skipped=True)
    return RetentionResponse(skipped=False, evicted=evicted)


@router.post("/test-notification")
async def test_notification(ctx: WebContext = Depends(get_context)):
    result = await ctx.notifier.notify(None, ctx.templates.test_notification("control API", utcnow()))
    if not result.ok:
        raise HTTPException(status_code=502, detail=f"Notification failed: {result.error}")
    return {"status": "sent", "channel": ctx.notifier.channel_name}
