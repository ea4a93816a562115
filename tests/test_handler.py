"""InboundHandler tests: classification routed to the engine and notifier."""

from datetime import timedelta

import pytest

from helpers import OPERATOR_ID, T0, VOCABULARY, make_event

from reply_tracker.core.types import EventKind, SourceKind
from reply_tracker.relay.handler import InboundHandler


async def test_user_message_notifies(handler, notifier, store):
    kind = await handler.handle(make_event("Is the shop open?", message_id="m42"))
    assert kind is EventKind.USER_MESSAGE

    record = await store.get("line-test:U1")
    assert record.needs_reply
    (text,) = notifier.texts_for("line-test:U1")
    assert "*New message*" in text
    assert "Is the shop open?" in text
    assert "m42" in text
    assert "*Source*: Direct chat" in text
    assert "/confirm/line-test%3AU1?token=" in text


async def test_notifier_failure_still_records(handler, notifier, store):
    notifier.fail_all = True
    await handler.handle(make_event())
    assert (await store.get("line-test:U1")).needs_reply


async def test_operator_message_marks_replied(handler, notifier, store):
    await handler.handle(make_event("help please", chat_id="C1", source_kind=SourceKind.GROUP))
    kind = await handler.handle(
        make_event("on it", chat_id="C1", sender_id=OPERATOR_ID, source_kind=SourceKind.GROUP)
    )
    assert kind is EventKind.OPERATOR_REPLY
    assert not (await store.get("line-test:C1")).needs_reply
    assert len(notifier.sent) == 1


async def test_unrepliable_group_message_ignored(handler, notifier, store):
    kind = await handler.handle(
        make_event(chat_id="C1", source_kind=SourceKind.GROUP, is_repliable=False)
    )
    assert kind is EventKind.IGNORE
    assert len(store) == 0
    assert notifier.sent == []


async def test_status_command(handler, adapter):
    await handler.handle(make_event("question", message_id="m1"))
    kind = await handler.handle(make_event("STATUS", message_id="m2", reply_handle="rt-2"))
    assert kind is EventKind.COMMAND

    (handle, text) = adapter.replies[-1]
    assert handle == "rt-2"
    assert "Needs reply: yes" in text
    assert "question" in text


async def test_status_for_unknown_chat(handler, adapter, store):
    await handler.handle(make_event("STATUS"))
    assert adapter.replies[-1][1] == "No messages tracked for this chat yet."
    assert len(store) == 0


async def test_command_does_not_change_reply_state(handler, store):
    await handler.handle(make_event("question", message_id="m1"))
    await handler.handle(make_event("STATUS", message_id="m2"))
    record = await store.get("line-test:U1")
    assert record.needs_reply
    assert record.last_inbound.external_message_id == "m1"


async def test_mark_all_replied(handler, adapter, notifier, store):
    await handler.handle(make_event())
    await handler.handle(make_event("MARK_ALL_REPLIED", message_id="m2"))

    assert not (await store.get("line-test:U1")).needs_reply
    assert adapter.replies[-1][1] == "Unanswered state cleared."
    assert "*Marked as replied*" in notifier.sent[-1][1]


async def test_mark_all_replied_unknown_chat(handler, adapter, notifier):
    await handler.handle(make_event("MARK_ALL_REPLIED"))
    assert adapter.replies[-1][1] == "Nothing to clear for this chat."
    assert notifier.sent == []


async def test_global_reset(handler, adapter, store):
    await handler.handle(make_event(chat_id="U1"))
    await handler.handle(make_event(chat_id="U2"))
    await handler.handle(make_event("RESET", chat_id="U3"))

    assert not any(r.needs_reply for r in await store.snapshot())
    assert adapter.replies[-1][1] == "Reset complete: 2 conversation(s) cleared."


async def test_scoped_reset(engine, notifier, registry, templates, clock, adapter, store):
    handler = InboundHandler(
        engine=engine,
        notifier=notifier,
        bot_registry=registry,
        vocabulary=VOCABULARY,
        templates=templates,
        reset_scope="conversation",
        clock=clock,
    )
    await handler.handle(make_event(chat_id="U1"))
    await handler.handle(make_event(chat_id="U2"))
    await handler.handle(make_event("RESET", chat_id="U1", message_id="m2"))

    assert not (await store.get("line-test:U1")).needs_reply
    assert (await store.get("line-test:U2")).needs_reply
    assert adapter.replies[-1][1] == "Reset complete: 1 conversation(s) cleared."


async def test_debug_log(handler, adapter, notifier):
    await handler.handle(make_event())
    await handler.handle(make_event("DEBUG_LOG", message_id="m2"))
    assert "*Conversation state* (1 tracked)" in notifier.sent[-1][1]
    assert adapter.replies[-1][1] == "Conversation state logged (1 tracked)."


@pytest.mark.parametrize(
    "fail, expected",
    [(False, "Notification test sent."), (True, "Notification test failed; see logs.")],
)
async def test_test_notification(handler, adapter, notifier, fail, expected):
    notifier.fail_all = fail
    await handler.handle(make_event("TEST_NOTIFICATION"))
    assert adapter.replies[-1][1] == expected


async def test_command_reply_falls_back_to_push(handler, adapter):
    await handler.handle(make_event("STATUS", reply_handle=None))
    assert adapter.replies == []
    assert adapter.direct[-1][0] == "U1"


async def test_failed_command_reply_is_not_raised(handler, adapter, store):
    adapter.fail = True
    await handler.handle(make_event())
    assert await handler.handle(make_event("MARK_ALL_REPLIED", message_id="m2")) is EventKind.COMMAND
    assert not (await store.get("line-test:U1")).needs_reply


async def test_late_message_is_not_alerted(handler, notifier, store):
    await handler.handle(make_event("newer", message_id="m2", received_at=T0 + timedelta(minutes=5)))
    await handler.handle(make_event("older", message_id="m1"))

    assert len(notifier.sent) == 1
    assert (await store.get("line-test:U1")).last_inbound.text == "newer"
