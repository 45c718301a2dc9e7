"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from tldrbot.store import Store
from tldrbot.text_generators import Completion, TextGeneratorAPI

NOW = datetime(2024, 6, 3, 9, 0, tzinfo=timezone.utc)  # a Monday


class FakeAuthor:
    def __init__(self, name: str, bot: bool = False):
        self.name = name
        self.display_name = name
        self.bot = bot


class FakeReaction:
    def __init__(self, count: int):
        self.count = count


class FakeMessage:
    def __init__(self, id, author, content, created_at, reactions=()):
        self.id = id
        self.author = author
        self.content = content
        self.created_at = created_at
        self.reactions = [FakeReaction(c) for c in reactions]


class FakeChannel:
    """Text channel whose history() pages newest-first like discord.py."""

    def __init__(self, id=100, name="general", messages=(), guild=None):
        self.id = id
        self.name = name
        self.guild = guild
        self.messages = sorted(messages, key=lambda m: m.id, reverse=True)
        self.history_calls = []

    async def history(self, limit=100, before=None):
        self.history_calls.append((limit, before.id if before is not None else None))
        page = [m for m in self.messages if before is None or m.id < before.id]
        for message in page[:limit]:
            yield message


class FakeGuild:
    def __init__(self, id=1, name="Test Server", channels=()):
        self.id = id
        self.name = name
        self._channels = {c.id: c for c in channels}
        for channel in channels:
            channel.guild = self

    def get_channel(self, channel_id):
        return self._channels.get(channel_id)


class FakeGenerator(TextGeneratorAPI):
    """Returns canned completions and records every call."""

    model = "fake-model"

    def __init__(self, responses=("A short summary.",), tokens=42):
        self.responses = list(responses)
        self.tokens = tokens
        self.calls = []

    async def complete(self, messages, *, max_tokens, temperature):
        self.calls.append({"messages": list(messages), "max_tokens": max_tokens, "temperature": temperature})
        text = self.responses[min(len(self.calls), len(self.responses)) - 1]
        return Completion(text=text, tokens_used=self.tokens)


def make_messages(count, *, now=NOW, spacing=timedelta(minutes=1), author="alice", start_id=1000):
    """Build *count* human messages ending one spacing before *now*, oldest first."""
    people = [FakeAuthor(author), FakeAuthor("bob")]
    return [
        FakeMessage(
            start_id + i,
            people[i % 2],
            f"message {i}",
            now - spacing * (count - i),
        )
        for i in range(count)
    ]


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store(tmp_path):
    """Open a store on a temporary database file."""
    db = Store(tmp_path / "test.db").open()
    yield db
    db.close()


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def mock_interaction():
    """Create a mock slash-command interaction in guild 1."""
    interaction = MagicMock()
    interaction.guild = MagicMock()
    interaction.guild.id = 1
    interaction.guild.name = "Test Server"
    interaction.user = MagicMock()
    interaction.user.id = 111222333
    interaction.response = MagicMock()
    interaction.response.send_message = AsyncMock()
    interaction.response.defer = AsyncMock()
    interaction.followup = MagicMock()
    interaction.followup.send = AsyncMock()
    return interaction
