"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from reply_tracker.web import confirm, control, webhook
from reply_tracker.web.context import WebContext


def create_app(ctx: WebContext) -> FastAPI:
    app = FastAPI(title="reply-tracker", docs_url=None, redoc_url=None)
    app.state.ctx = ctx

    app.include_router(webhook.router)
    app.include_router(control.router)
    app.include_router(confirm.router)

    @app.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        return "reply-tracker is running"

    @app.get("/health")
    async def health() -> dict:
        records = await ctx.engine.store.snapshot()
        return {
            "status": "ok",
            "bots": ctx.bot_registry.ids(),
            "conversations": len(records),
            "pending": sum(1 for r in records if r.needs_reply),
            "notifier": ctx.notifier.channel_name,
            "services": ctx.services.status_all() if ctx.services else {},
        }

    return app
