"""Adapters by bot id: how a conversation finds the platform that owns it."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from reply_tracker.messenger.base import MessengerAdapter, WebhookAdapter


class BotRegistry:
    def __init__(self) -> None:
        self._adapters: dict[str, MessengerAdapter] = {}

    def __len__(self) -> int:
        return len(self._adapters)

    def __iter__(self) -> Iterator[MessengerAdapter]:
        return iter(list(self._adapters.values()))

    def register(self, bot_id: str, adapter: MessengerAdapter) -> None:
        if bot_id != adapter.bot_id:
            raise ValueError(f"Adapter for '{adapter.bot_id}' registered under '{bot_id}'")
        if bot_id in self._adapters:
            raise ValueError(f"Bot '{bot_id}' is already registered")
        self._adapters[bot_id] = adapter

    def unregister(self, bot_id: str) -> MessengerAdapter | None:
        return self._adapters.pop(bot_id, None)

    def get(self, bot_id: str) -> MessengerAdapter | None:
        return self._adapters.get(bot_id)

    def webhook_adapter(self, bot_id: str) -> WebhookAdapter | None:
        """The adapter for ``bot_id`` if it is fed by HTTP callbacks, else None."""
        adapter = self._adapters.get(bot_id)
        if adapter is None or not adapter.receives_webhooks:
            return None
        return adapter  # type: ignore[return-value]

    def ids(self) -> list[str]:
        return sorted(self._adapters)

    def clear(self) -> None:
        self._adapters.clear()
