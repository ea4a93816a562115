"""Typed results for fallible collaborator calls."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from reply_tracker.log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class DeliveryResult:
    """Outcome of one outbound message or notification."""

    ok: bool
    message_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, message_id: Optional[str] = None) -> DeliveryResult:
        return cls(ok=True, message_id=message_id)

    @classmethod
    def failure(cls, error: str) -> DeliveryResult:
        return cls(ok=False, error=error)


async def guarded_delivery(
    call: Callable[[], Awaitable[DeliveryResult]],
    *,
    operation: str,
    timeout: float | None = None,
    **context: Any,
) -> DeliveryResult:
    """Run a collaborator call, converting exceptions and timeouts into a failed result."""
    try:
        if timeout is not None:
            result = await asyncio.wait_for(call(), timeout=timeout)
        else:
            result = await call()
    except asyncio.TimeoutError:
        result = DeliveryResult.failure(f"timed out after {timeout}s")
    except Exception as e:
        result = DeliveryResult.failure(f"{type(e).__name__}: {e}")

    if not result.ok:
        logger.warning("delivery_failed", operation=operation, error=result.error, **context)
    return result
