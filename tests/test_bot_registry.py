import pytest

from helpers import FakeAdapter

from reply_tracker.config import BotConfig
from reply_tracker.core.bot_registry import BotRegistry
from reply_tracker.messenger.line import LineAdapter


def test_register_and_lookup():
    registry = BotRegistry()
    adapter = FakeAdapter("b")
    registry.register("b", adapter)
    registry.register("a", FakeAdapter("a"))

    assert registry.get("b") is adapter
    assert registry.get("zzz") is None
    assert registry.ids() == ["a", "b"]
    assert len(registry) == 2
    assert registry.unregister("b") is adapter
    assert registry.ids() == ["a"]


def test_rejects_duplicates_and_mismatched_ids():
    registry = BotRegistry()
    registry.register("a", FakeAdapter("a"))
    with pytest.raises(ValueError):
        registry.register("a", FakeAdapter("a"))
    with pytest.raises(ValueError):
        registry.register("x", FakeAdapter("y"))


def test_webhook_adapter_lookup():
    registry = BotRegistry()
    line = LineAdapter(BotConfig(id="line", platform="line", token="t", channel_secret="s"))
    registry.register("line", line)
    registry.register("push", FakeAdapter("push"))

    assert registry.webhook_adapter("line") is line
    assert registry.webhook_adapter("push") is None
    assert registry.webhook_adapter("missing") is None
