import pytest

from helpers import make_event

from reply_tracker.core.bot_registry import BotRegistry
from reply_tracker.core.errors import NotFoundError, SendFailedError
from reply_tracker.relay.outbound import OutboundRelay


async def test_send_reply_pushes_and_marks_replied(engine, relay, adapter):
    await engine.record_user_message(make_event())
    record = await relay.send_reply("line-test:U1", "Thanks, we are on it")

    assert adapter.direct == [("U1", "Thanks, we are on it")]
    assert not record.needs_reply
    assert record.last_outbound.platform_message_id == "pm-1"


async def test_send_failure_leaves_record_pending(engine, relay, adapter, store):
    await engine.record_user_message(make_event())
    adapter.fail = True
    with pytest.raises(SendFailedError):
        await relay.send_reply("line-test:U1", "hello")
    assert (await store.get("line-test:U1")).needs_reply


async def test_unknown_conversation(relay, adapter):
    with pytest.raises(NotFoundError):
        await relay.send_reply("line-test:nobody", "hello")
    assert adapter.direct == []


async def test_missing_adapter(engine, store):
    await engine.record_user_message(make_event())
    relay = OutboundRelay(engine, BotRegistry())
    with pytest.raises(SendFailedError):
        await relay.send_reply("line-test:U1", "hello")
    assert (await store.get("line-test:U1")).needs_reply
