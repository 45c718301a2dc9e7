"""Digest subscription commands and the background loops that serve them."""

from __future__ import annotations

import logging
from datetime import time, timezone
from typing import Literal

import discord
from discord import app_commands
from discord.ext import commands, tasks

from tldrbot.settings import CACHE_RETENTION_DAYS
from tldrbot.store import Store, utcnow
from tldrbot.summarization import DigestScheduler, QuotaLedger, SubscriptionStore, SummaryCache
from tldrbot.summarization.subscriptions import DEFAULT_DIGEST_TIME, is_valid_digest_time

__all__ = ["DigestCog"]

_LOG = logging.getLogger(__name__)

CONFIRM_COLOR = 0x57F287
STATUS_COLOR = 0x5865F2

UPGRADE_MESSAGE = "Digest subscriptions require **TL;DR Pro**. See `/tldr-settings upgrade` for plans."
TIME_FORMAT_MESSAGE = "Invalid time. Use a whole hour in UTC, HH:00 (e.g., 09:00)."

HOURLY = [time(hour=h, tzinfo=timezone.utc) for h in range(24)]
CLEANUP_TIME = time(hour=3, minute=30, tzinfo=timezone.utc)


class DigestCog(commands.GroupCog, group_name="digest", group_description="Configure daily/weekly digest summaries"):
    """/digest subcommands plus the hourly delivery and daily cleanup loops."""

    def __init__(
        self,
        bot: commands.Bot,
        store: Store,
        ledger: QuotaLedger,
        subscriptions: SubscriptionStore,
        cache: SummaryCache,
        *,
        start_loops: bool = True,
    ) -> None:
        super().__init__()
        self.bot = bot
        self.store = store
        self.ledger = ledger
        self.subscriptions = subscriptions
        self.scheduler = DigestScheduler(bot, subscriptions, cache)
        if start_loops:
            self.deliver_digests.start()
            self.cleanup_cache.start()
        _LOG.info("DigestCog initialized")

    def cog_unload(self) -> None:
        self.stop()

    def stop(self) -> None:
        self.deliver_digests.cancel()
        self.cleanup_cache.cancel()

    # ==================== Loops ====================

    @tasks.loop(time=HOURLY)
    async def deliver_digests(self) -> None:
        try:
            await self.scheduler.process_digests(utcnow())
        except Exception:
            _LOG.exception("Digest tick failed")

    @deliver_digests.before_loop
    async def before_deliver(self) -> None:
        await self.bot.wait_until_ready()

    @tasks.loop(time=CLEANUP_TIME)
    async def cleanup_cache(self) -> None:
        try:
            removed = self.store.cleanup_old_cache(CACHE_RETENTION_DAYS)
        except Exception:
            _LOG.exception("Cache cleanup failed")
            return
        _LOG.info("Daily cleanup removed %d cached messages", removed)

    @cleanup_cache.before_loop
    async def before_cleanup(self) -> None:
        await self.bot.wait_until_ready()

    # ==================== Commands ====================

    async def _require_digests(self, interaction: discord.Interaction) -> bool:
        if interaction.guild is None:
            await interaction.response.send_message("This command only works in a server.", ephemeral=True)
            return False
        self.store.ensure_community(interaction.guild.id, interaction.guild.name)
        if not self.ledger.has_feature_access(interaction.guild.id, "digest"):
            await interaction.response.send_message(UPGRADE_MESSAGE, ephemeral=True)
            return False
        return True

    @app_commands.command(name="subscribe", description="Subscribe to digest summaries")
    @app_commands.describe(
        frequency="How often to receive digests (weekly digests arrive on Mondays)",
        time="Hour to receive the digest in UTC, HH:00 (default 09:00)",
    )
    async def subscribe(
        self,
        interaction: discord.Interaction,
        frequency: Literal["daily", "weekly"],
        time: str = DEFAULT_DIGEST_TIME,
    ) -> None:
        if not await self._require_digests(interaction):
            return
        if not is_valid_digest_time(time):
            await interaction.response.send_message(TIME_FORMAT_MESSAGE, ephemeral=True)
            return

        self.subscriptions.subscribe(interaction.guild.id, interaction.user.id, frequency, time)

        embed = discord.Embed(
            title="Digest Subscription Active",
            description=f"You'll receive {frequency} digests at {time} UTC.",
            color=CONFIRM_COLOR,
        )
        embed.add_field(name="Next Step", value="Use `/digest channels` to select which channels to include.")
        embed.set_footer(text="TL;DR Bot")
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="channels", description="Set which channels to include in your digest")
    async def channels(
        self,
        interaction: discord.Interaction,
        channel1: discord.TextChannel,
        channel2: discord.TextChannel | None = None,
        channel3: discord.TextChannel | None = None,
        channel4: discord.TextChannel | None = None,
        channel5: discord.TextChannel | None = None,
    ) -> None:
        if not await self._require_digests(interaction):
            return

        chosen = [c.id for c in (channel1, channel2, channel3, channel4, channel5) if c is not None]
        if not self.subscriptions.set_channels(interaction.guild.id, interaction.user.id, chosen):
            await interaction.response.send_message(
                "You don't have a digest subscription yet. Use `/digest subscribe` first.", ephemeral=True
            )
            return

        mentions = ", ".join(f"<#{cid}>" for cid in dict.fromkeys(chosen))
        embed = discord.Embed(
            title="Digest Channels Updated",
            description=f"Your digest will now include: {mentions}",
            color=CONFIRM_COLOR,
        )
        embed.set_footer(text="TL;DR Bot")
        await interaction.response.send_message(embed=embed, ephemeral=True)

    @app_commands.command(name="unsubscribe", description="Stop receiving digest summaries")
    async def unsubscribe(self, interaction: discord.Interaction) -> None:
        if not await self._require_digests(interaction):
            return
        self.subscriptions.unsubscribe(interaction.guild.id, interaction.user.id)
        await interaction.response.send_message("You have been unsubscribed from digest summaries.", ephemeral=True)

    @app_commands.command(name="status", description="Check your digest subscription status")
    async def status(self, interaction: discord.Interaction) -> None:
        if interaction.guild is None:
            await interaction.response.send_message("This command only works in a server.", ephemeral=True)
            return

        sub = self.subscriptions.get(interaction.guild.id, interaction.user.id)
        if sub is None or not sub.enabled:
            await interaction.response.send_message(
                "You are not subscribed to any digests. Use `/digest subscribe` to start.", ephemeral=True
            )
            return

        channels = ", ".join(f"<#{cid}>" for cid in sub.channel_ids) or "No channels configured"
        last_sent = sub.last_sent.strftime("%Y-%m-%d %H:%M UTC") if sub.last_sent else "Never"

        embed = discord.Embed(title="Your Digest Subscription", color=STATUS_COLOR)
        embed.add_field(name="Frequency", value=sub.frequency.value, inline=True)
        embed.add_field(name="Time (UTC)", value=sub.time, inline=True)
        embed.add_field(name="Channels", value=channels, inline=False)
        embed.add_field(name="Last Sent", value=last_sent, inline=False)
        embed.set_footer(text="TL;DR Bot")
        await interaction.response.send_message(embed=embed, ephemeral=True)


async def setup(bot: commands.Bot) -> None:
    """Load the DigestCog."""
    services = bot.services
    await bot.add_cog(
        DigestCog(bot, services.store, services.ledger, services.subscriptions, services.cache)
    )
