"""Out-of-band "mark as replied" links embedded in notifications."""

from __future__ import annotations

from html import escape
from typing import Optional
from urllib.parse import quote, urlencode

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse

from reply_tracker.core.errors import NotFoundError, TokenMismatchError
from reply_tracker.log import get_logger
from reply_tracker.web.context import WebContext, get_context

logger = get_logger(__name__)

router = APIRouter(prefix="/confirm", tags=["Confirm"])

# Same body for unknown conversations and bad tokens
_REJECTED = "<p>This link is invalid or has already been used.</p>"


def _page(body: str, status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(
        f"<!doctype html><html><head><meta charset='utf-8'><title>Reply tracker</title></head>"
        f"<body>{body}</body></html>",
        status_code=status_code,
    )


@router.get("/{conversation_id}", response_class=HTMLResponse)
async def confirm_page(
    conversation_id: str,
    token: Optional[str] = Query(None),
    ctx: WebContext = Depends(get_context),
):
    try:
        record = await ctx.engine.verify_token(conversation_id, token)
    except (NotFoundError, TokenMismatchError):
        return _page(_REJECTED, status_code=404)

    if not record.needs_reply:
        return _page(f"<p>{escape(record.display_name)} has already been answered.</p>")

    action = f"/confirm/{quote(conversation_id, safe='')}?{urlencode({'token': token})}"
    text = record.last_inbound.text if record.last_inbound else ""
    return _page(
        f"<h1>Mark as replied?</h1>"
        f"<p><strong>{escape(record.display_name)}</strong>: {escape(text)}</p>"
        f"<form method='post' action='{escape(action, quote=True)}'>"
        f"<button type='submit'>Mark as replied</button></form>"
    )


@router.post("/{conversation_id}", response_class=HTMLResponse)
async def confirm_action(
    conversation_id: str,
    token: Optional[str] = Query(None),
    ctx: WebContext = Depends(get_context),
):
    try:
        record = await ctx.engine.confirm(conversation_id, token)
    except (NotFoundError, TokenMismatchError):
        return _page(_REJECTED, status_code=404)
    return _page(f"<p>{escape(record.display_name)} is marked as replied.</p>")
