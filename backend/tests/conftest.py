"""Shared test fixtures and configuration for backend tests."""
from datetime import datetime, timezone
from typing import Iterable, List

import pytest
from fastapi.testclient import TestClient

from borderchat.chat.errors import NamingServiceError
from borderchat.chat.identity import IdentityRegistry
from borderchat.chat.moderation import ModerationGate
from borderchat.chat.service import ChatService
from borderchat.chat.state import ChatState, get_chat_state
from borderchat.chat.store import RoomStore
from borderchat.chat.subscriptions import SubscriptionDirectory
from borderchat.main import app

# 06:30 UTC is 14:30 in Asia/Brunei (UTC+8)
FIXED_NOW = datetime(2024, 5, 1, 6, 30, tzinfo=timezone.utc)


class StubNamer:
    """Stands in for RandomWordClient; hands out the given words in order.

    An entry that is an exception instance is raised instead of returned.
    """

    def __init__(self, words: Iterable = ()) -> None:
        self.words: List = list(words)
        self.calls = 0

    async def fetch_word(self) -> str:
        self.calls += 1
        if not self.words:
            raise NamingServiceError("no more words")
        word = self.words.pop(0)
        if isinstance(word, Exception):
            raise word
        return word


def build_state(
    namer=None,
    history_limit: int = 100,
    max_message_length: int = 50,
    banned: Iterable[str] = (),
    clock_ms=lambda: 1714545000123,
) -> ChatState:
    store = RoomStore(history_limit=history_limit, timezone="Asia/Brunei", clock=lambda: FIXED_NOW)
    identities = IdentityRegistry(namer, clock_ms=clock_ms)
    moderation = ModerationGate(banned)
    directory = SubscriptionDirectory()
    service = ChatService(
        store=store,
        identities=identities,
        moderation=moderation,
        directory=directory,
        max_message_length=max_message_length,
    )
    return ChatState(
        store=store,
        identities=identities,
        moderation=moderation,
        directory=directory,
        service=service,
    )


@pytest.fixture
def namer():
    return StubNamer(["amber", "birch", "cedar", "delta", "ember"])


@pytest.fixture
def chat_state(namer):
    return build_state(namer=namer, banned=["banned-device"])


@pytest.fixture
def api_client(chat_state):
    """TestClient for the main app, wired to the per-test ChatState.

    Not used as a context manager, so the lifespan (which would build state
    from the real config) does not run.
    """
    app.dependency_overrides[get_chat_state] = lambda: chat_state
    yield TestClient(app)
    app.dependency_overrides.clear()
