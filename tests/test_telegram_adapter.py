from datetime import datetime, timezone

import pytest
from telegram import Chat, Message, Update, User
from telegram.constants import ChatType

from reply_tracker.config import BotConfig
from reply_tracker.core.errors import ConfigError
from reply_tracker.core.types import SourceKind
from reply_tracker.messenger.telegram import TelegramAdapter

SENT = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def telegram():
    return TelegramAdapter(BotConfig(id="tg", platform="telegram", token="123:abc"))


def _update(chat: Chat, text: str | None = "hi", reply_to: Message | None = None) -> Update:
    sender = User(id=42, first_name="Ann", last_name="Lee", is_bot=False)
    message = Message(
        message_id=7,
        date=SENT,
        chat=chat,
        from_user=sender,
        text=text,
        reply_to_message=reply_to,
    )
    return Update(update_id=1, message=message)


def test_private_chat(telegram):
    event = telegram.normalize(_update(Chat(id=42, type=ChatType.PRIVATE)))
    assert event.conversation_id == "tg:42"
    assert event.source_kind is SourceKind.INDIVIDUAL
    assert event.is_repliable
    assert event.sender_id == "42"
    assert event.display_name == "Ann Lee"
    assert event.external_message_id == "7"
    assert event.received_at == SENT


def test_group_chat_not_addressed_to_bot(telegram):
    event = telegram.normalize(_update(Chat(id=-100, type=ChatType.SUPERGROUP, title="Team")))
    assert event.chat_id == "-100"
    assert event.source_kind is SourceKind.GROUP
    assert not event.is_repliable


def test_non_text_ignored(telegram):
    assert telegram.normalize(_update(Chat(id=42, type=ChatType.PRIVATE), text=None)) is None


async def test_start_requires_token():
    adapter = TelegramAdapter(BotConfig(id="tg", platform="telegram", token=""))
    with pytest.raises(ConfigError):
        await adapter.start()


async def test_send_before_start_fails(telegram):
    result = await telegram.send_direct("42", "hello")
    assert not result.ok
