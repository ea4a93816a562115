"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class Platform(StrEnum):
    LINE = "line"
    TELEGRAM = "telegram"


class SourceKind(StrEnum):
    INDIVIDUAL = "individual"
    GROUP = "group"
    ROOM = "room"

    @property
    def label(self) -> str:
        return _SOURCE_LABELS[self]


_SOURCE_LABELS = {
    SourceKind.INDIVIDUAL: "Direct chat",
    SourceKind.GROUP: "Group",
    SourceKind.ROOM: "Room",
}


class EventKind(StrEnum):
    USER_MESSAGE = "user_message"
    OPERATOR_REPLY = "operator_reply"
    COMMAND = "command"
    IGNORE = "ignore"


class CommandKind(StrEnum):
    RESET = "reset"
    MARK_ALL_REPLIED = "mark_all_replied"
    STATUS = "status"
    DEBUG_LOG = "debug_log"
    TEST_NOTIFICATION = "test_notification"
