"""Server plan and usage commands.

This cog provides /tldr-settings status (plan, limits and 30-day usage) and
/tldr-settings upgrade (plan comparison), and registers new guilds on join.
"""

from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

from tldrbot.settings import TIER_LIMITS, Tier, describe_allowance
from tldrbot.store import Store
from tldrbot.summarization import QuotaLedger

__all__ = ["ServerSettingsCog"]

_log = logging.getLogger(__name__)

STATUS_COLOR = 0x5865F2
UPGRADE_COLOR = 0xFEE75C
STATS_DAYS = 30


def _lookback_text(hours: int) -> str:
    return f"{hours // 24} days" if hours >= 48 else f"{hours} hours"


def build_status_embed(guild_name: str, tier: Tier, stats: dict) -> discord.Embed:
    limits = TIER_LIMITS[tier]
    embed = discord.Embed(title=f"TL;DR Bot Settings for {guild_name}", color=STATUS_COLOR)
    embed.add_field(name="Plan", value=tier.value.capitalize(), inline=True)
    embed.add_field(name="Daily Limit", value=describe_allowance(limits.daily_allowance), inline=True)
    embed.add_field(name="Digests", value="Enabled" if limits.digests_enabled else "Pro only", inline=True)

    totals = stats["totals"]
    embed.add_field(
        name=f"Last {STATS_DAYS} Days",
        value=(
            f"Summaries: {totals['summaries']}\n"
            f"Unique users: {totals['unique_users']}\n"
            f"Tokens used: {totals['tokens']:,}"
        ),
        inline=False,
    )
    if stats["by_command"]:
        breakdown = "\n".join(f"/{row['command']}: {row['count']}" for row in stats["by_command"])
        embed.add_field(name="By Command", value=breakdown, inline=False)
    embed.set_footer(text="TL;DR Bot")
    return embed


def build_upgrade_embed() -> discord.Embed:
    embed = discord.Embed(
        title="TL;DR Bot Plans",
        description="Compare what each plan includes.",
        color=UPGRADE_COLOR,
    )
    for tier, limits in TIER_LIMITS.items():
        lines = [
            describe_allowance(limits.daily_allowance),
            f"Look back up to {_lookback_text(limits.max_timeframe_hours)}",
            "Daily & weekly digests" if limits.digests_enabled else "No digests",
        ]
        embed.add_field(name=tier.value.capitalize(), value="\n".join(lines), inline=True)
    embed.set_footer(text="TL;DR Bot • Ask a server admin to change plans")
    return embed


class ServerSettingsCog(
    commands.GroupCog, group_name="tldr-settings", group_description="View TL;DR Bot settings for this server"
):
    """Plan and usage information for server admins."""

    def __init__(self, bot: commands.Bot, store: Store, ledger: QuotaLedger) -> None:
        """Initialize the settings cog.

        Args:
            bot: Discord bot instance
            store: Open persistent store
            ledger: Usage ledger for stats and tier lookups
        """
        super().__init__()
        self.bot = bot
        self.store = store
        self.ledger = ledger

    @commands.Cog.listener()
    async def on_guild_join(self, guild: discord.Guild) -> None:
        self.store.ensure_community(guild.id, guild.name)
        _log.info(f"Joined guild {guild.name} ({guild.id})")

    @app_commands.command(name="status", description="Show plan, limits and usage for this server")
    @app_commands.default_permissions(manage_guild=True)
    async def status(self, interaction: discord.Interaction) -> None:
        guild = interaction.guild
        if guild is None:
            await interaction.response.send_message("This command only works in a server.", ephemeral=True)
            return
        try:
            self.store.ensure_community(guild.id, guild.name)
            tier = self.ledger.get_tier(guild.id)
            stats = self.ledger.get_server_usage_stats(guild.id, STATS_DAYS)
        except Exception:
            _log.exception(f"Failed to load settings for guild {guild.id}")
            await interaction.response.send_message(
                "❌ Failed to retrieve server settings. Please try again later.", ephemeral=True
            )
            return
        await interaction.response.send_message(embed=build_status_embed(guild.name, tier, stats), ephemeral=True)

    @app_commands.command(name="upgrade", description="Compare TL;DR Bot plans")
    async def upgrade(self, interaction: discord.Interaction) -> None:
        await interaction.response.send_message(embed=build_upgrade_embed(), ephemeral=True)


async def setup(bot: commands.Bot) -> None:
    """Load the ServerSettingsCog."""
    services = bot.services
    await bot.add_cog(ServerSettingsCog(bot, services.store, services.ledger))
