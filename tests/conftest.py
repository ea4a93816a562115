"""Pytest fixtures for the reply-tracker suite."""

import pytest

from helpers import VOCABULARY, FakeAdapter, FakeClock, RecordingNotifier

from reply_tracker.core.bot_registry import BotRegistry
from reply_tracker.notify.templates import MessageTemplates
from reply_tracker.relay.handler import InboundHandler
from reply_tracker.relay.outbound import OutboundRelay
from reply_tracker.tracking.engine import TransitionEngine
from reply_tracker.tracking.store import ConversationStore


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return ConversationStore()


@pytest.fixture
def engine(store, clock):
    return TransitionEngine(store, clock=clock)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def adapter():
    return FakeAdapter()


@pytest.fixture
def registry(adapter):
    reg = BotRegistry()
    reg.register(adapter.bot_id, adapter)
    return reg


@pytest.fixture
def templates():
    return MessageTemplates("https://tracker.example.com")


@pytest.fixture
def handler(engine, notifier, registry, templates, clock):
    return InboundHandler(
        engine=engine,
        notifier=notifier,
        bot_registry=registry,
        vocabulary=VOCABULARY,
        templates=templates,
        clock=clock,
    )


@pytest.fixture
def relay(engine, registry):
    return OutboundRelay(engine, registry)
