"""Tests for windowed channel summaries and the artifact cache."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import FakeChannel, FakeGenerator, FakeGuild, make_messages
from tldrbot.summarization.summarizer import Summarizer
from tldrbot.summarization.summary_cache import SummaryCache


def _history_rows(store):
    return store.connection.execute("SELECT * FROM summary_history").fetchall()


@pytest.fixture
def llm():
    return FakeGenerator(responses=["Everyone agreed on Friday.\nHighlights:\n- Friday release"])


@pytest.fixture
def cache(store, llm):
    return SummaryCache(store, Summarizer(llm))


@pytest.fixture
def busy_channel():
    channel = FakeChannel(id=100, name="general", messages=make_messages(12))
    FakeGuild(channels=[channel])
    return channel


class TestSummarizeChannel:
    """Tests for SummaryCache.summarize_channel."""

    @pytest.mark.asyncio
    async def test_empty_window(self, store, cache, llm, now):
        channel = FakeChannel(id=100, name="general")
        FakeGuild(channels=[channel])

        result = await cache.summarize_channel(channel, "24h", now=now)

        assert result.summary == "No messages in #general in the last 24h."
        assert result.highlights == []
        assert result.message_count == 0
        assert not result.cached
        assert _history_rows(store) == []
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_computes_and_records(self, store, cache, busy_channel, now):
        result = await cache.summarize_channel(busy_channel, "24h", now=now)

        assert not result.cached
        assert result.summary == "Everyone agreed on Friday."
        assert result.highlights == ["Friday release"]
        assert result.message_count == 12
        assert result.tokens_used == 42
        rows = _history_rows(store)
        assert len(rows) == 1
        assert rows[0]["guild_id"] == 1
        assert rows[0]["channel_id"] == 100
        assert rows[0]["message_count"] == 12

    @pytest.mark.asyncio
    async def test_repeat_within_horizon_is_cached(self, store, cache, llm, busy_channel, now):
        first = await cache.summarize_channel(busy_channel, "24h", now=now)
        second = await cache.summarize_channel(busy_channel, "24h", now=now + timedelta(minutes=10))

        assert second.cached
        assert second.summary == first.summary
        assert second.highlights == first.highlights
        assert second.message_count == first.message_count
        assert len(llm.calls) == 1
        assert len(_history_rows(store)) == 1

    @pytest.mark.asyncio
    async def test_force_recomputes(self, store, cache, llm, busy_channel, now):
        await cache.summarize_channel(busy_channel, "24h", now=now)
        result = await cache.summarize_channel(busy_channel, "24h", force=True, now=now + timedelta(minutes=1))

        assert not result.cached
        assert len(llm.calls) == 2
        assert len(_history_rows(store)) == 2

    @pytest.mark.asyncio
    async def test_stale_artifact_is_not_served(self, cache, llm, busy_channel, now):
        await cache.summarize_channel(busy_channel, "24h", now=now)
        result = await cache.summarize_channel(busy_channel, "24h", now=now + timedelta(minutes=61))

        assert not result.cached
        assert len(llm.calls) == 2

    @pytest.mark.asyncio
    async def test_narrow_artifact_is_not_served_for_wider_request(self, cache, llm, busy_channel, now):
        await cache.summarize_channel(busy_channel, "1h", now=now)
        result = await cache.summarize_channel(busy_channel, "24h", now=now)

        assert not result.cached
        assert len(llm.calls) == 2

    @pytest.mark.asyncio
    async def test_artifacts_are_per_channel(self, cache, llm, now):
        first = FakeChannel(id=100, name="general", messages=make_messages(5))
        second = FakeChannel(id=200, name="random", messages=make_messages(5))
        FakeGuild(channels=[first, second])

        await cache.summarize_channel(first, "24h", now=now)
        result = await cache.summarize_channel(second, "24h", now=now)

        assert not result.cached
        assert len(llm.calls) == 2


class TestGetCatchupSummary:
    """Tests for SummaryCache.get_catchup_summary."""

    @pytest.mark.asyncio
    async def test_keeps_only_active_channels(self, cache, now):
        active = FakeChannel(id=100, name="general", messages=make_messages(3))
        silent = FakeChannel(id=200, name="quiet")
        guild = FakeGuild(channels=[active, silent])

        results = await cache.get_catchup_summary(guild, [100, 200, 999], "24h", now=now)

        assert [r.channel_name for r in results] == ["general"]

    @pytest.mark.asyncio
    async def test_one_failing_channel_does_not_stop_the_rest(self, cache, now):
        class BrokenChannel(FakeChannel):
            async def history(self, limit=100, before=None):
                raise RuntimeError("gateway hiccup")
                yield  # pragma: no cover

        broken = BrokenChannel(id=100, name="broken")
        healthy = FakeChannel(id=200, name="healthy", messages=make_messages(3))
        guild = FakeGuild(channels=[broken, healthy])

        results = await cache.get_catchup_summary(guild, [100, 200], "24h", now=now)

        assert [r.channel_id for r in results] == [200]
