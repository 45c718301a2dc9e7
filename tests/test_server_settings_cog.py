"""Tests for /tldr-settings and guild registration."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from tldrbot.cogs.server_settings import ServerSettingsCog, build_upgrade_embed
from tldrbot.settings import Tier
from tldrbot.summarization import CommandKind, QuotaLedger


@pytest.fixture
def ledger(store):
    return QuotaLedger(store)


@pytest.fixture
def cog(store, ledger):
    return ServerSettingsCog(MagicMock(), store, ledger)


class TestGuildJoin:
    """Tests for on_guild_join."""

    @pytest.mark.asyncio
    async def test_join_registers_free_guild(self, store, cog):
        guild = MagicMock()
        guild.id = 55
        guild.name = "New Server"

        await cog.on_guild_join(guild)

        assert store.get_tier(55) is Tier.FREE
        assert store.connection.execute("SELECT COUNT(*) FROM server_config").fetchone()[0] == 1


class TestStatus:
    """Tests for /tldr-settings status."""

    @pytest.mark.asyncio
    async def test_status_shows_plan_and_usage(self, store, ledger, cog, mock_interaction):
        store.set_tier(1, Tier.PRO)
        ledger.track_usage(1, 10, CommandKind.TLDR, 100)
        ledger.track_usage(1, 11, CommandKind.CATCHMEUP, 50)

        await cog.status.callback(cog, mock_interaction)

        embed = mock_interaction.response.send_message.call_args.kwargs["embed"]
        fields = {f.name: f.value for f in embed.fields}
        assert fields["Plan"] == "Pro"
        assert fields["Daily Limit"] == "100 summaries/day"
        assert fields["Digests"] == "Enabled"
        assert "Summaries: 2" in fields["Last 30 Days"]
        assert "Unique users: 2" in fields["Last 30 Days"]
        assert "/tldr: 1" in fields["By Command"]

    @pytest.mark.asyncio
    async def test_status_creates_missing_config(self, store, cog, mock_interaction):
        await cog.status.callback(cog, mock_interaction)

        embed = mock_interaction.response.send_message.call_args.kwargs["embed"]
        assert {f.name: f.value for f in embed.fields}["Digests"] == "Pro only"
        assert store.connection.execute("SELECT COUNT(*) FROM server_config").fetchone()[0] == 1


def test_upgrade_embed_lists_every_plan():
    embed = build_upgrade_embed()
    assert [f.name for f in embed.fields] == ["Free", "Pro", "Enterprise"]
    assert "Unlimited" in embed.fields[2].value
