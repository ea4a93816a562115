"""Confirmation tokens and locally generated message ids."""

from __future__ import annotations

import hmac
import secrets
import uuid
from typing import Optional


def new_confirmation_token() -> str:
    return secrets.token_urlsafe(32)


def tokens_match(expected: Optional[str], presented: Optional[str]) -> bool:
    """Exact, constant-time comparison. A missing token on either side never matches."""
    if not expected or not presented:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8"))


def new_message_id() -> str:
    return uuid.uuid4().hex
