"""Error taxonomy for reply tracking.

None of these are fatal to the process. Each one is local to a single
conversation (or a single request) and callers report it and move on.
"""

from __future__ import annotations


class ReplyTrackerError(Exception):
    """Base class for all reply-tracker errors."""


class NotFoundError(ReplyTrackerError):
    """An operation referenced a conversation the store does not know."""

    def __init__(self, conversation_id: str):
        super().__init__(f"Unknown conversation: {conversation_id}")
        self.conversation_id = conversation_id


class SendFailedError(ReplyTrackerError):
    """An outbound message or notification could not be delivered."""

    def __init__(self, conversation_id: str, reason: str):
        super().__init__(f"Delivery to {conversation_id} failed: {reason}")
        self.conversation_id = conversation_id
        self.reason = reason


class TokenMismatchError(ReplyTrackerError):
    """A confirmation token was missing, stale, or wrong."""

    def __init__(self, conversation_id: str):
        # The message never includes the expected token
        super().__init__(f"Confirmation rejected for {conversation_id}")
        self.conversation_id = conversation_id


class InvalidSignatureError(ReplyTrackerError):
    """A webhook body did not carry a valid platform signature."""


class ConfigError(ReplyTrackerError):
    """Configuration is present but unusable for the requested component."""
