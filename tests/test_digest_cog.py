"""Tests for the /digest commands."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from conftest import FakeGenerator
from tldrbot.cogs.digest import TIME_FORMAT_MESSAGE, UPGRADE_MESSAGE, DigestCog
from tldrbot.settings import Tier
from tldrbot.summarization import QuotaLedger, Summarizer, SubscriptionStore, SummaryCache

USER = 111222333


def _channel(channel_id):
    channel = MagicMock()
    channel.id = channel_id
    return channel


@pytest.fixture
def subs(store):
    return SubscriptionStore(store)


@pytest.fixture
def cog(store, subs):
    summarizer = Summarizer(FakeGenerator())
    return DigestCog(
        MagicMock(),
        store,
        QuotaLedger(store),
        subs,
        SummaryCache(store, summarizer),
        start_loops=False,
    )


@pytest.fixture
def pro_guild(store):
    store.set_tier(1, Tier.PRO)


class TestTierGate:
    """Digest management requires a tier with digests."""

    @pytest.mark.asyncio
    async def test_free_tier_cannot_subscribe(self, cog, subs, mock_interaction):
        await cog.subscribe.callback(cog, mock_interaction, "daily", "09:00")

        mock_interaction.response.send_message.assert_awaited_once_with(UPGRADE_MESSAGE, ephemeral=True)
        assert subs.get(1, USER) is None

    @pytest.mark.asyncio
    async def test_status_is_available_on_free_tier(self, cog, mock_interaction):
        await cog.status.callback(cog, mock_interaction)

        text = mock_interaction.response.send_message.call_args.args[0]
        assert text.startswith("You are not subscribed")


@pytest.mark.usefixtures("pro_guild")
class TestSubscriptionCommands:
    """Tests for subscribe/channels/unsubscribe/status."""

    @pytest.mark.asyncio
    async def test_subscribe(self, cog, subs, mock_interaction):
        await cog.subscribe.callback(cog, mock_interaction, "weekly", "18:00")

        sub = subs.get(1, USER)
        assert sub.enabled
        assert sub.frequency.value == "weekly"
        assert sub.time == "18:00"
        embed = mock_interaction.response.send_message.call_args.kwargs["embed"]
        assert embed.description == "You'll receive weekly digests at 18:00 UTC."

    @pytest.mark.asyncio
    async def test_subscribe_rejects_partial_hours(self, cog, subs, mock_interaction):
        await cog.subscribe.callback(cog, mock_interaction, "daily", "09:30")

        mock_interaction.response.send_message.assert_awaited_once_with(TIME_FORMAT_MESSAGE, ephemeral=True)
        assert subs.get(1, USER) is None

    @pytest.mark.asyncio
    async def test_channels_requires_subscription(self, cog, mock_interaction):
        await cog.channels.callback(cog, mock_interaction, _channel(10), None, None, None, None)

        text = mock_interaction.response.send_message.call_args.args[0]
        assert "don't have a digest subscription" in text

    @pytest.mark.asyncio
    async def test_channels_are_saved(self, cog, subs, mock_interaction):
        subs.subscribe(1, USER, "daily")

        await cog.channels.callback(cog, mock_interaction, _channel(10), None, _channel(30), None, None)

        assert subs.get(1, USER).channel_ids == [10, 30]
        embed = mock_interaction.response.send_message.call_args.kwargs["embed"]
        assert embed.description == "Your digest will now include: <#10>, <#30>"

    @pytest.mark.asyncio
    async def test_unsubscribe_then_status(self, cog, subs, mock_interaction):
        subs.subscribe(1, USER, "daily")

        await cog.unsubscribe.callback(cog, mock_interaction)
        await cog.status.callback(cog, mock_interaction)

        assert not subs.get(1, USER).enabled
        text = mock_interaction.response.send_message.call_args.args[0]
        assert text.startswith("You are not subscribed")

    @pytest.mark.asyncio
    async def test_status_shows_subscription(self, cog, subs, mock_interaction):
        subs.subscribe(1, USER, "daily", "07:00")
        subs.set_channels(1, USER, [10])

        await cog.status.callback(cog, mock_interaction)

        embed = mock_interaction.response.send_message.call_args.kwargs["embed"]
        fields = {f.name: f.value for f in embed.fields}
        assert fields == {
            "Frequency": "daily",
            "Time (UTC)": "07:00",
            "Channels": "<#10>",
            "Last Sent": "Never",
        }
