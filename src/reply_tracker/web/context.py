"""Components the HTTP routes operate on."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from fastapi import HTTPException, Request

if TYPE_CHECKING:
    from reply_tracker.core.bot_registry import BotRegistry
    from reply_tracker.notify.base import Notifier
    from reply_tracker.notify.templates import MessageTemplates
    from reply_tracker.relay.handler import InboundHandler
    from reply_tracker.relay.outbound import OutboundRelay
    from reply_tracker.services.scheduler import SweepSchedulerService
    from reply_tracker.services.service_manager import ServiceManager
    from reply_tracker.tracking.engine import TransitionEngine


@dataclass
class WebContext:
    engine: TransitionEngine
    handler: InboundHandler
    relay: OutboundRelay
    bot_registry: BotRegistry
    notifier: Notifier
    templates: MessageTemplates
    scheduler: SweepSchedulerService
    services: Optional[ServiceManager] = None
    admin_token: Optional[str] = None


def get_context(request: Request) -> WebContext:
    """Dependency returning the WebContext stored on the application."""
    ctx = getattr(request.app.state, "ctx", None)
    if ctx is None:
        raise HTTPException(status_code=500, detail="Application not initialized")
    return ctx
