from datetime import timedelta

from helpers import T0, make_event

from reply_tracker.core.types import SourceKind
from reply_tracker.notify.templates import MessageTemplates
from reply_tracker.tracking.models import StatusReport


async def test_no_link_without_base_url(engine):
    record = await engine.record_user_message(make_event())
    text = MessageTemplates().new_message(record)
    assert "/confirm/" not in text
    assert MessageTemplates().confirmation_url(record) is None


async def test_confirmation_url_escapes_id(engine, templates):
    record = await engine.record_user_message(make_event(chat_id="C/1"))
    url = templates.confirmation_url(record)
    assert url.startswith("https://tracker.example.com/confirm/line-test%3AC%2F1?token=")


async def test_long_text_is_clipped(engine, templates):
    record = await engine.record_user_message(
        make_event("x" * 2000, chat_id="C1", source_kind=SourceKind.GROUP)
    )
    text = templates.new_message(record)
    assert "x" * 499 + "…" in text
    assert "x" * 501 not in text
    assert "*Source*: Group" in text


async def test_status_and_debug(engine, templates):
    record = await engine.record_user_message(make_event("need help"))
    status = templates.status(StatusReport.from_record(record))
    assert "Needs reply: yes" in status
    assert "Last reply: -" in status

    dump = templates.debug_dump([record], T0 + timedelta(minutes=42))
    assert "age=42 min" in dump
    assert templates.debug_dump([], T0).endswith("(no conversations tracked)")
