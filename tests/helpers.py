"""Test doubles shared across the suite."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from reply_tracker.config import BotConfig, CommandVocabulary
from reply_tracker.core.delivery import DeliveryResult
from reply_tracker.core.types import Platform, SourceKind
from reply_tracker.messenger.base import MessengerAdapter
from reply_tracker.messenger.models import InboundEvent
from reply_tracker.notify.base import Notifier

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
BOT_ID = "line-test"
OPERATOR_ID = "Uoperator"

VOCABULARY = CommandVocabulary(
    reset="RESET",
    mark_all_replied=["MARK_ALL_REPLIED", "全部返信済み"],
    status="STATUS",
    debug_log="DEBUG_LOG",
    test_notification="TEST_NOTIFICATION",
)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier(Notifier):
    """Collects notifications; can be told to fail, raise, or block."""

    def __init__(self) -> None:
        self.sent: list[tuple[str | None, str]] = []
        self.fail_for: set[str] = set()
        self.raise_for: set[str] = set()
        self.fail_all = False
        self.gate: asyncio.Event | None = None
        self.entered = asyncio.Event()
        self.calls = 0

    @property
    def channel_name(self) -> str:
        return "recording"

    async def notify(self, conversation_id: str | None, text: str) -> DeliveryResult:
        self.calls += 1
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if conversation_id in self.raise_for:
            raise RuntimeError("notifier exploded")
        if self.fail_all or conversation_id in self.fail_for:
            return DeliveryResult.failure("simulated failure")
        self.sent.append((conversation_id, text))
        return DeliveryResult.success()

    def texts_for(self, conversation_id: str) -> list[str]:
        return [text for cid, text in self.sent if cid == conversation_id]


class FakeAdapter(MessengerAdapter):
    def __init__(self, bot_id: str = BOT_ID, operator_ids: tuple[str, ...] = (OPERATOR_ID,)):
        super().__init__(
            BotConfig(id=bot_id, platform="line", token="t", operator_user_ids=list(operator_ids))
        )
        self.direct: list[tuple[str, str]] = []
        self.replies: list[tuple[str, str]] = []
        self.fail = False
        self.started = False

    @property
    def platform_name(self) -> str:
        return Platform.LINE

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    async def send_direct(self, chat_id: str, text: str) -> DeliveryResult:
        if self.fail:
            return DeliveryResult.failure("platform said no")
        self.direct.append((chat_id, text))
        return DeliveryResult.success(f"pm-{len(self.direct)}")

    async def send_as_reply(self, reply_handle: str, text: str, chat_id: str) -> DeliveryResult:
        if self.fail:
            return DeliveryResult.failure("platform said no")
        self.replies.append((reply_handle, text))
        return DeliveryResult.success(f"rp-{len(self.replies)}")


def make_event(
    text: str = "hello",
    chat_id: str = "U1",
    sender_id: str | None = None,
    source_kind: SourceKind = SourceKind.INDIVIDUAL,
    received_at: datetime = T0,
    message_id: str = "m1",
    is_repliable: bool = True,
    reply_handle: str | None = "rt-1",
    display_name: str = "Alice",
    bot_id: str = BOT_ID,
) -> InboundEvent:
    return InboundEvent(
        platform=Platform.LINE,
        bot_id=bot_id,
        chat_id=chat_id,
        sender_id=sender_id if sender_id is not None else chat_id,
        source_kind=source_kind,
        text=text,
        external_message_id=message_id,
        received_at=received_at,
        is_repliable=is_repliable,
        reply_handle=reply_handle,
        display_name=display_name,
    )
