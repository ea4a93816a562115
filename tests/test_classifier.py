"""Inbound event classification tests."""

from helpers import OPERATOR_ID, make_event

from reply_tracker.config import CommandVocabulary
from reply_tracker.core.types import CommandKind, EventKind, SourceKind
from reply_tracker.tracking.classifier import classify

VOCAB = CommandVocabulary(
    reset="RESET",
    mark_all_replied=["MARK_ALL_REPLIED", "全部返信済み"],
    status="STATUS",
    debug_log="DEBUG_LOG",
)


def test_plain_message_is_user_message():
    result = classify(make_event("hello"), VOCAB)
    assert result.kind is EventKind.USER_MESSAGE
    assert result.command is None


def test_each_command_recognized():
    for text, kind in [
        ("RESET", CommandKind.RESET),
        ("MARK_ALL_REPLIED", CommandKind.MARK_ALL_REPLIED),
        ("全部返信済み", CommandKind.MARK_ALL_REPLIED),
        ("STATUS", CommandKind.STATUS),
        ("DEBUG_LOG", CommandKind.DEBUG_LOG),
    ]:
        result = classify(make_event(text), VOCAB)
        assert result.is_command, text
        assert result.command is kind


def test_commands_are_case_sensitive_and_exact():
    assert classify(make_event("status"), VOCAB).kind is EventKind.USER_MESSAGE
    assert classify(make_event(" STATUS"), VOCAB).kind is EventKind.USER_MESSAGE
    assert classify(make_event("STATUS please"), VOCAB).kind is EventKind.USER_MESSAGE


def test_unrepliable_group_chatter_ignored():
    for kind in (SourceKind.GROUP, SourceKind.ROOM):
        event = make_event("lol", source_kind=kind, is_repliable=False)
        assert classify(event, VOCAB).kind is EventKind.IGNORE


def test_unrepliable_group_command_still_a_command():
    event = make_event("RESET", source_kind=SourceKind.GROUP, is_repliable=False)
    assert classify(event, VOCAB).command is CommandKind.RESET


def test_repliable_group_message_tracked():
    event = make_event("question", source_kind=SourceKind.GROUP, is_repliable=True)
    assert classify(event, VOCAB).kind is EventKind.USER_MESSAGE


def test_unrepliable_individual_message_tracked():
    event = make_event("hi", is_repliable=False)
    assert classify(event, VOCAB).kind is EventKind.USER_MESSAGE


def test_blank_text_ignored():
    assert classify(make_event("   "), VOCAB).kind is EventKind.IGNORE


def test_operator_sender_is_operator_reply():
    event = make_event("on it", sender_id=OPERATOR_ID, source_kind=SourceKind.GROUP)
    result = classify(event, VOCAB, frozenset({OPERATOR_ID}))
    assert result.kind is EventKind.OPERATOR_REPLY


def test_classification_is_pure():
    event = make_event("hello")
    assert classify(event, VOCAB) == classify(event, VOCAB)
