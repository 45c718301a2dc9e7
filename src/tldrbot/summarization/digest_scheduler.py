"""Hourly digest delivery to subscribed users."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import discord

from tldrbot.summarization.subscriptions import Frequency, Subscription, SubscriptionStore
from tldrbot.summarization.summary_cache import ChannelSummary, SummaryCache

_LOG = logging.getLogger(__name__)

DIGEST_COLOR = 0x5865F2
FIELD_LIMIT = 1000


def time_token(now: datetime) -> str:
    return f"{now.astimezone(timezone.utc).hour:02d}:00"


def truncate(text: str, limit: int = FIELD_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def build_digest_embed(
    guild_name: str, frequency: Frequency, summaries: list[ChannelSummary], now: datetime
) -> discord.Embed:
    weekly = frequency is Frequency.WEEKLY
    period = "this week" if weekly else "today"
    embed = discord.Embed(
        title=f"Your {'Weekly' if weekly else 'Daily'} Digest for {guild_name}",
        description=f"Here's what happened {period} in the channels you follow.",
        color=DIGEST_COLOR,
        timestamp=now,
    )
    total = 0
    for summary in summaries:
        total += summary.message_count
        embed.add_field(
            name=f"#{summary.channel_name} ({summary.message_count} messages)",
            value=truncate(summary.summary),
            inline=False,
        )
    embed.add_field(
        name="Stats",
        value=f"{total} messages across {len(summaries)} channels",
        inline=True,
    )
    embed.set_footer(text="TL;DR Bot • Manage with /digest")
    return embed


class DigestScheduler:
    """Selects due subscriptions on each tick and delivers their digests."""

    def __init__(self, bot: Any, subscriptions: SubscriptionStore, cache: SummaryCache):
        self.bot = bot
        self.subscriptions = subscriptions
        self.cache = cache

    def due_subscriptions(self, now: datetime) -> list[Subscription]:
        token = time_token(now)
        due = self.subscriptions.due_daily(token, now)
        if now.astimezone(timezone.utc).weekday() == 0:
            due.extend(self.subscriptions.due_weekly(token, now))
        return due

    async def process_digests(self, now: datetime) -> int:
        """
        Run one tick.

        Returns:
            Number of subscriptions that were due
        """
        due = self.due_subscriptions(now)
        for subscription in due:
            try:
                await self.send_digest(subscription, now)
            except Exception:
                _LOG.exception("Failed to send digest %s", subscription.id)
        if due:
            _LOG.info("Processed %d digests", len(due))
        return len(due)

    async def _resolve_user(self, user_id: int) -> Any | None:
        try:
            return await self.bot.fetch_user(user_id)
        except (discord.NotFound, discord.HTTPException):
            return None

    async def send_digest(self, subscription: Subscription, now: datetime) -> bool:
        """
        Compose and DM one digest.

        Returns:
            True if a delivery was attempted (and the watermark moved)
        """
        guild = self.bot.get_guild(subscription.guild_id)
        if guild is None:
            _LOG.info("Guild %s not found, skipping digest %s", subscription.guild_id, subscription.id)
            return False

        user = await self._resolve_user(subscription.user_id)
        if user is None:
            _LOG.info("User %s not found, skipping digest %s", subscription.user_id, subscription.id)
            return False

        if not subscription.channel_ids:
            return False

        summaries = await self.cache.get_catchup_summary(
            guild, subscription.channel_ids, subscription.timeframe, now=now
        )
        summaries = [s for s in summaries if s.message_count > 0]
        if not summaries:
            _LOG.debug("No activity for digest %s, skipping", subscription.id)
            return False

        embed = build_digest_embed(guild.name, subscription.frequency, summaries, now)
        try:
            await user.send(embed=embed)
            _LOG.info("Sent %s digest to user %s for guild %s", subscription.frequency.value, user.id, guild.id)
        except discord.HTTPException as exc:
            _LOG.warning("Failed to DM user %s: %s", subscription.user_id, exc)
        finally:
            self.subscriptions.mark_sent(subscription.id, now)
        return True
