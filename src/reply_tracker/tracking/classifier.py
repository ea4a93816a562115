"""Decides what an inbound message means for reply tracking."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from reply_tracker.core.types import CommandKind, EventKind, SourceKind

if TYPE_CHECKING:
    from reply_tracker.config import CommandVocabulary
    from reply_tracker.messenger.models import InboundEvent


@dataclass(frozen=True, slots=True)
class Classification:
    kind: EventKind
    command: Optional[CommandKind] = None

    @property
    def is_command(self) -> bool:
        return self.kind is EventKind.COMMAND


_IGNORE = Classification(EventKind.IGNORE)
_USER_MESSAGE = Classification(EventKind.USER_MESSAGE)
_OPERATOR_REPLY = Classification(EventKind.OPERATOR_REPLY)


def match_command(text: str, vocabulary: CommandVocabulary) -> CommandKind | None:
    """Exact, case-sensitive lookup. Surrounding whitespace is not trimmed."""
    for kind in CommandKind:
        if text in getattr(vocabulary, kind.value):
            return kind
    return None


def classify(
    event: InboundEvent,
    vocabulary: CommandVocabulary,
    operator_ids: frozenset[str] = frozenset(),
) -> Classification:
    command = match_command(event.text, vocabulary)
    if command is not None:
        return Classification(EventKind.COMMAND, command)

    if not event.text.strip():
        return _IGNORE

    if event.sender_id in operator_ids:
        return _OPERATOR_REPLY

    # Group/room chatter that cannot be answered is not tracked
    if not event.is_repliable and event.source_kind in (SourceKind.GROUP, SourceKind.ROOM):
        return _IGNORE

    return _USER_MESSAGE
