"""Slash commands that summarize channel activity.

/catchmeup summarizes a channel over a timeframe, /tldr summarizes the current
thread or the last N messages and /highlights picks out notable moments. All
three are gated by the guild's tier and the caller's daily quota.
"""

from __future__ import annotations

import logging
from typing import Literal

import discord
from discord import app_commands
from discord.ext import commands

from tldrbot.settings import MAX_MESSAGES_TO_FETCH, MAX_SUMMARY_MESSAGES
from tldrbot.store import Store, utcnow
from tldrbot.summarization import (
    ChannelSummary,
    CommandKind,
    Highlight,
    QuotaLedger,
    Summarizer,
    SummaryCache,
    UsageCheck,
    fetch_message_window,
    fetch_recent_messages,
    parse_timeframe,
    window_for,
)

__all__ = ["SummariesCog"]

_log = logging.getLogger(__name__)

SUMMARY_COLOR = 0x5865F2
HIGHLIGHTS_COLOR = 0xFEE75C
EMBED_DESCRIPTION_LIMIT = 4096
EMBED_FIELD_LIMIT = 1024
MIN_HIGHLIGHT_MESSAGES = 5

FAILURE_MESSAGE = "Failed to generate summary. Please try again later."
GUILD_ONLY_MESSAGE = "This command only works in a server."

HIGHLIGHT_EMOJIS = {
    "announcement": "📢",
    "discussion": "💬",
    "question": "❓",
    "resource": "📚",
    "achievement": "🏆",
    "funny": "😂",
}
DEFAULT_HIGHLIGHT_EMOJI = "✨"

Style = Literal["concise", "detailed", "bullet"]


def quota_message(check: UsageCheck) -> str:
    return f"You've reached your daily limit of {check.limit_text} summaries. Upgrade to Pro for more!"


def lookback_message(max_hours: int) -> str:
    span = f"{max_hours // 24} days" if max_hours % 24 == 0 and max_hours >= 48 else f"{max_hours} hours"
    return f"Your plan can look back at most {span}. Upgrade with `/tldr-settings upgrade` to see further."


def remaining_footer(check: UsageCheck) -> str:
    if check.remaining is None:
        return "TL;DR Bot • Unlimited summaries"
    left = max(0, check.remaining - 1)
    return f"TL;DR Bot • {left} summaries remaining today"


def highlight_emoji(kind: str) -> str:
    return HIGHLIGHT_EMOJIS.get(kind, DEFAULT_HIGHLIGHT_EMOJI)


def _clip(text: str, limit: int) -> str:
    text = text or "\u200b"
    return text if len(text) <= limit else text[: limit - 3] + "..."


def build_summary_embed(result: ChannelSummary, timeframe: str, check: UsageCheck) -> discord.Embed:
    embed = discord.Embed(
        title=f"TL;DR for #{result.channel_name}",
        description=_clip(result.summary, EMBED_DESCRIPTION_LIMIT),
        color=SUMMARY_COLOR,
        timestamp=utcnow(),
    )
    embed.add_field(name="Messages", value=str(result.message_count), inline=True)
    embed.add_field(name="Timeframe", value=timeframe, inline=True)
    if result.highlights:
        moments = "\n".join(f"{i}. {h}" for i, h in enumerate(result.highlights, start=1))
        embed.add_field(name="Key Moments", value=_clip(moments, EMBED_FIELD_LIMIT), inline=False)
    if result.cached:
        embed.set_footer(text="TL;DR Bot • Cached summary (< 1 hour old)")
    else:
        embed.set_footer(text=remaining_footer(check))
    return embed


def build_highlights_embed(
    channel_name: str, items: list[Highlight], timeframe: str, message_count: int
) -> discord.Embed:
    embed = discord.Embed(
        title=f"Highlights from #{channel_name}",
        description=f"Top {len(items)} moments from the last {timeframe}",
        color=HIGHLIGHTS_COLOR,
        timestamp=utcnow(),
    )
    for item in items:
        embed.add_field(
            name=_clip(f"{highlight_emoji(item.type)} {item.title}", 256),
            value=_clip(item.description, EMBED_FIELD_LIMIT),
            inline=False,
        )
    embed.set_footer(text=f"TL;DR Bot • Based on {message_count} messages")
    return embed


class SummariesCog(commands.Cog):
    """On-demand summaries gated by tier and daily quota."""

    def __init__(
        self,
        bot: commands.Bot,
        store: Store,
        ledger: QuotaLedger,
        summarizer: Summarizer,
        cache: SummaryCache,
    ) -> None:
        self.bot = bot
        self.store = store
        self.ledger = ledger
        self.summarizer = summarizer
        self.cache = cache

    async def _admit(
        self, interaction: discord.Interaction, timeframe: str | None = None
    ) -> UsageCheck | None:
        """Run the community, lookback and quota checks.

        Replies ephemerally and returns None when the request is refused.
        """
        guild = interaction.guild
        if guild is None:
            await interaction.response.send_message(GUILD_ONLY_MESSAGE, ephemeral=True)
            return None

        self.store.ensure_community(guild.id, guild.name)

        if timeframe is not None:
            max_hours = self.ledger.max_timeframe_hours(guild.id)
            if parse_timeframe(timeframe) > max_hours:
                await interaction.response.send_message(lookback_message(max_hours), ephemeral=True)
                return None

        check = self.ledger.check_usage_limit(guild.id, interaction.user.id)
        if not check.allowed:
            await interaction.response.send_message(quota_message(check), ephemeral=True)
            return None
        return check

    # ==================== /catchmeup ====================

    @app_commands.command(name="catchmeup", description="Get a summary of what you missed in a channel")
    @app_commands.describe(
        channel="Channel to summarize (defaults to current)",
        timeframe="How far back to look, e.g. 6h, 24h, 3d, 1w",
        style="Summary style",
        refresh="Ignore a recent cached summary and regenerate",
    )
    async def catchmeup(
        self,
        interaction: discord.Interaction,
        channel: discord.TextChannel | None = None,
        timeframe: str = "24h",
        style: Style = "concise",
        refresh: bool = False,
    ) -> None:
        target = channel or interaction.channel
        check = await self._admit(interaction, timeframe)
        if check is None:
            return

        await interaction.response.defer(thinking=True)
        try:
            result = await self.cache.summarize_channel(target, timeframe, style=style, force=refresh)
        except Exception:
            _log.exception(f"Catchmeup failed for channel {getattr(target, 'id', '?')}")
            await interaction.followup.send(FAILURE_MESSAGE)
            return

        if result.message_count == 0:
            await interaction.followup.send(result.summary)
            return

        self.ledger.track_usage(interaction.guild.id, interaction.user.id, CommandKind.CATCHMEUP, result.tokens_used)
        await interaction.followup.send(embed=build_summary_embed(result, timeframe, check))

    # ==================== /tldr ====================

    @app_commands.command(name="tldr", description="Summarize the current thread or recent conversation")
    @app_commands.describe(
        messages="Number of recent messages to summarize (default: 50)",
        style="Summary style",
    )
    async def tldr(
        self,
        interaction: discord.Interaction,
        messages: app_commands.Range[int, 10, 200] = 50,
        style: Style = "concise",
    ) -> None:
        check = await self._admit(interaction)
        if check is None:
            return

        await interaction.response.defer(thinking=True)
        channel = interaction.channel
        try:
            if isinstance(channel, discord.Thread):
                window = await fetch_message_window(
                    channel, None, max_scan=MAX_MESSAGES_TO_FETCH, keep=MAX_SUMMARY_MESSAGES
                )
                title = f"TL;DR: {channel.name}"
            else:
                window = await fetch_recent_messages(channel, messages)
                title = f"TL;DR: Last {len(window)} messages"
            result = await self.summarizer.summarize_messages(window, style=style)
        except Exception:
            _log.exception(f"TLDR failed for channel {getattr(channel, 'id', '?')}")
            await interaction.followup.send(FAILURE_MESSAGE)
            return

        if result.message_count == 0:
            await interaction.followup.send(result.summary)
            return

        self.ledger.track_usage(interaction.guild.id, interaction.user.id, CommandKind.TLDR, result.tokens_used)

        embed = discord.Embed(
            title=title,
            description=_clip(result.summary, EMBED_DESCRIPTION_LIMIT),
            color=SUMMARY_COLOR,
            timestamp=utcnow(),
        )
        embed.add_field(name="Messages Analyzed", value=str(result.message_count), inline=True)
        if result.highlights:
            points = "\n".join(f"• {h}" for h in result.highlights)
            embed.add_field(name="Key Points", value=_clip(points, EMBED_FIELD_LIMIT), inline=False)
        embed.set_footer(text=remaining_footer(check))
        await interaction.followup.send(embed=embed)

    # ==================== /highlights ====================

    @app_commands.command(name="highlights", description="Get the most important moments from a channel")
    @app_commands.describe(
        channel="Channel to get highlights from (defaults to current)",
        timeframe="How far back to look, e.g. 24h, 3d, 7d",
        count="Number of highlights to show (default: 5)",
    )
    async def highlights(
        self,
        interaction: discord.Interaction,
        channel: discord.TextChannel | None = None,
        timeframe: str = "24h",
        count: app_commands.Range[int, 3, 10] = 5,
    ) -> None:
        target = channel or interaction.channel
        check = await self._admit(interaction, timeframe)
        if check is None:
            return

        await interaction.response.defer(thinking=True)
        try:
            since, _ = window_for(timeframe, utcnow())
            window = await fetch_message_window(target, since)
            if len(window) < MIN_HIGHLIGHT_MESSAGES:
                await interaction.followup.send(
                    f"Not enough messages in #{target.name} in the last {timeframe} to generate highlights."
                )
                return
            result = await self.summarizer.extract_highlights(window, count)
        except Exception:
            _log.exception(f"Highlights failed for channel {getattr(target, 'id', '?')}")
            await interaction.followup.send("Failed to extract highlights. Please try again later.")
            return

        self.ledger.track_usage(interaction.guild.id, interaction.user.id, CommandKind.HIGHLIGHTS, result.tokens_used)
        await interaction.followup.send(
            embed=build_highlights_embed(target.name, result.items, timeframe, len(window))
        )


async def setup(bot: commands.Bot) -> None:
    """Load the SummariesCog."""
    services = bot.services
    await bot.add_cog(
        SummariesCog(bot, services.store, services.ledger, services.summarizer, services.cache)
    )
