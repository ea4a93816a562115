"""Inbound handler: classifies each platform message and applies it."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Literal

import structlog

from reply_tracker.config import CommandVocabulary
from reply_tracker.core.bot_registry import BotRegistry
from reply_tracker.core.delivery import DeliveryResult, guarded_delivery
from reply_tracker.core.errors import NotFoundError
from reply_tracker.core.types import CommandKind, EventKind
from reply_tracker.log import get_logger
from reply_tracker.messenger.models import InboundEvent
from reply_tracker.notify.base import Notifier
from reply_tracker.notify.templates import MessageTemplates
from reply_tracker.tracking.classifier import classify
from reply_tracker.tracking.engine import TransitionEngine
from reply_tracker.tracking.models import utcnow

logger = get_logger(__name__)


class InboundHandler:
    """Handles the flow: event -> classify -> engine -> notification / command reply."""

    def __init__(
        self,
        engine: TransitionEngine,
        notifier: Notifier,
        bot_registry: BotRegistry,
        vocabulary: CommandVocabulary,
        templates: MessageTemplates | None = None,
        reset_scope: Literal["global", "conversation"] = "global",
        send_timeout: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._engine = engine
        self._notifier = notifier
        self._bot_registry = bot_registry
        self._vocabulary = vocabulary
        self._templates = templates or MessageTemplates()
        self._reset_scope = reset_scope
        self._send_timeout = send_timeout
        self._clock = clock

    async def handle(self, event: InboundEvent) -> EventKind:
        """Process one inbound event end-to-end. Returns how it was classified."""
        with structlog.contextvars.bound_contextvars(
            bot_id=event.bot_id, conversation_id=event.conversation_id
        ):
            adapter = self._bot_registry.get(event.bot_id)
            operator_ids = adapter.operator_ids if adapter else frozenset()
            classification = classify(event, self._vocabulary, operator_ids)

            if classification.kind is EventKind.IGNORE:
                logger.debug("event_ignored", source_kind=event.source_kind.value)
            elif classification.kind is EventKind.COMMAND:
                logger.info("command_received", command=classification.command.value)
                await self._run_command(classification.command, event)
            elif classification.kind is EventKind.OPERATOR_REPLY:
                await self._engine.record_operator_reply(event)
            else:
                record = await self._engine.record_user_message(event)
                if record is not None:
                    await self._notify(record.conversation_id, self._templates.new_message(record))

            return classification.kind

    async def _run_command(self, command: CommandKind, event: InboundEvent) -> None:
        conversation_id = event.conversation_id

        if command is CommandKind.RESET:
            if self._reset_scope == "global":
                changed = await self._engine.reset_all()
            else:
                changed = await self._mark_one(conversation_id)
            await self._notify(conversation_id, self._templates.reset(changed))
            await self._reply(event, f"Reset complete: {changed} conversation(s) cleared.")

        elif command is CommandKind.MARK_ALL_REPLIED:
            if await self._mark_one(conversation_id):
                await self._notify(conversation_id, self._templates.all_replied(event.display_name))
                await self._reply(event, "Unanswered state cleared.")
            else:
                await self._reply(event, "Nothing to clear for this chat.")

        elif command is CommandKind.STATUS:
            try:
                report = await self._engine.status(conversation_id)
            except NotFoundError:
                await self._reply(event, "No messages tracked for this chat yet.")
                return
            await self._reply(event, self._templates.status(report))

        elif command is CommandKind.DEBUG_LOG:
            records = await self._engine.store.snapshot()
            logger.info(
                "debug_dump",
                count=len(records),
                records=[r.to_dict(include_token=False) for r in records],
            )
            await self._notify(conversation_id, self._templates.debug_dump(records, self._clock()))
            await self._reply(event, f"Conversation state logged ({len(records)} tracked).")

        elif command is CommandKind.TEST_NOTIFICATION:
            result = await self._notify(
                conversation_id,
                self._templates.test_notification(event.display_name, self._clock()),
            )
            await self._reply(
                event,
                "Notification test sent." if result.ok else "Notification test failed; see logs.",
            )

    async def _mark_one(self, conversation_id: str) -> int:
        try:
            await self._engine.mark_replied(conversation_id)
        except NotFoundError:
            return 0
        return 1

    async def _notify(self, conversation_id: str, text: str) -> DeliveryResult:
        return await guarded_delivery(
            lambda: self._notifier.notify(conversation_id, text),
            operation="notification",
            timeout=self._send_timeout,
            conversation_id=conversation_id,
        )

    async def _reply(self, event: InboundEvent, text: str) -> DeliveryResult:
        """Answer the issuer of a command on its own platform."""
        adapter = self._bot_registry.get(event.bot_id)
        if adapter is None:
            logger.error("command_reply_no_adapter", bot_id=event.bot_id)
            return DeliveryResult.failure(f"No adapter for bot '{event.bot_id}'")
        if event.reply_handle:
            call = lambda: adapter.send_as_reply(event.reply_handle, text, event.chat_id)  # noqa: E731
        else:
            call = lambda: adapter.send_direct(event.chat_id, text)  # noqa: E731
        return await guarded_delivery(
            call,
            operation="command_reply",
            timeout=self._send_timeout,
            conversation_id=event.conversation_id,
        )
