"""Time-windowed channel summaries backed by summary_history.

Artifacts are append-only: a fresh artifact covering the requested window is
served as-is, anything else is recomputed and written as a new row.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from tldrbot.settings import MAX_MESSAGES_TO_FETCH, MAX_SUMMARY_MESSAGES, SUMMARY_FRESHNESS_MINUTES
from tldrbot.store import Store, to_db_time, utcnow
from tldrbot.summarization.fetcher import fetch_message_window
from tldrbot.summarization.summarizer import DEFAULT_STYLE, Summarizer
from tldrbot.summarization.timeframe import DEFAULT_TIMEFRAME, window_for

_LOG = logging.getLogger(__name__)


@dataclass
class ChannelSummary:
    channel_id: int
    channel_name: str
    summary: str
    highlights: list[str] = field(default_factory=list)
    message_count: int = 0
    tokens_used: int = 0
    cached: bool = False


def _guild_id(channel: Any) -> int:
    guild = getattr(channel, "guild", None)
    return guild.id if guild is not None else 0


def _decode_highlights(raw: str | None) -> list[str]:
    if not raw:
        return []
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        _LOG.warning("Ignoring unreadable highlights_json in summary_history")
        return []
    return [str(h) for h in decoded] if isinstance(decoded, list) else []


class SummaryCache:
    """Summarize channels over a timeframe, reusing recent artifacts."""

    def __init__(
        self,
        store: Store,
        summarizer: Summarizer,
        *,
        freshness: timedelta = timedelta(minutes=SUMMARY_FRESHNESS_MINUTES),
        max_scan: int = MAX_MESSAGES_TO_FETCH,
        keep: int = MAX_SUMMARY_MESSAGES,
    ):
        self.store = store
        self.summarizer = summarizer
        self.freshness = freshness
        self.max_scan = max_scan
        self.keep = keep

    # ==================== Artifacts ====================

    def find_fresh(self, guild_id: int, channel_id: int, since: datetime, now: datetime) -> dict | None:
        """
        Return the newest artifact that can answer a request for [since, now).

        An artifact qualifies when it is younger than the freshness horizon,
        its window starts at or before *since* (by at most one horizon) and it
        ends no later than *now*.
        """
        horizon_start = to_db_time(since - self.freshness)
        row = self.store.connection.execute(
            """
            SELECT summary, highlights_json, message_count, start_time, end_time
            FROM summary_history
            WHERE guild_id = ? AND channel_id = ?
              AND start_time >= ? AND start_time <= ?
              AND end_time <= ?
              AND created_at > ?
            ORDER BY created_at DESC
            LIMIT 1
            """,
            (
                guild_id,
                channel_id,
                horizon_start,
                to_db_time(since),
                to_db_time(now),
                to_db_time(now - self.freshness),
            ),
        ).fetchone()
        return dict(row) if row else None

    def record(
        self,
        guild_id: int,
        channel_id: int,
        since: datetime,
        now: datetime,
        *,
        message_count: int,
        summary: str,
        highlights: list[str],
    ) -> None:
        with self.store.transaction() as conn:
            conn.execute(
                """
                INSERT INTO summary_history
                (guild_id, channel_id, start_time, end_time, message_count, summary, highlights_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    guild_id,
                    channel_id,
                    to_db_time(since),
                    to_db_time(now),
                    message_count,
                    summary,
                    json.dumps(highlights),
                    to_db_time(now),
                ),
            )

    # ==================== Summaries ====================

    async def summarize_channel(
        self,
        channel: Any,
        timeframe: str = DEFAULT_TIMEFRAME,
        *,
        style: str = DEFAULT_STYLE,
        include_highlights: bool = True,
        force: bool = False,
        now: datetime | None = None,
    ) -> ChannelSummary:
        """
        Summarize *channel* over the last *timeframe*.

        Args:
            channel: Text channel or thread exposing history()
            timeframe: "<n>h", "<n>d" or "<n>w"; anything else means 24h
            style: Summary style passed to the summarizer
            include_highlights: Ask the summarizer for highlights
            force: Skip the artifact lookup and always recompute
            now: Window end (defaults to the current UTC time)

        Returns:
            ChannelSummary; message_count == 0 means the window was empty and
            nothing was written

        Raises:
            discord.HTTPException, SummarizationError and provider errors
            propagate to the caller
        """
        since, now = window_for(timeframe, now or utcnow())
        guild_id = _guild_id(channel)
        name = getattr(channel, "name", str(channel.id))

        if not force:
            hit = self.find_fresh(guild_id, channel.id, since, now)
            if hit is not None:
                _LOG.debug("Serving cached summary for channel %s", channel.id)
                return ChannelSummary(
                    channel_id=channel.id,
                    channel_name=name,
                    summary=hit["summary"],
                    highlights=_decode_highlights(hit["highlights_json"]),
                    message_count=hit["message_count"],
                    cached=True,
                )

        messages = await fetch_message_window(channel, since, max_scan=self.max_scan, keep=self.keep)
        if not messages:
            return ChannelSummary(
                channel_id=channel.id,
                channel_name=name,
                summary=f"No messages in #{name} in the last {timeframe}.",
            )

        result = await self.summarizer.summarize_messages(
            messages, style=style, include_highlights=include_highlights
        )
        self.record(
            guild_id,
            channel.id,
            since,
            now,
            message_count=result.message_count,
            summary=result.summary,
            highlights=result.highlights,
        )
        _LOG.info(
            "Summarized %d messages in channel %s (%d tokens)",
            result.message_count,
            channel.id,
            result.tokens_used,
        )
        return ChannelSummary(
            channel_id=channel.id,
            channel_name=name,
            summary=result.summary,
            highlights=result.highlights,
            message_count=result.message_count,
            tokens_used=result.tokens_used,
            cached=False,
        )

    async def get_catchup_summary(
        self,
        guild: Any,
        channel_ids: list[int],
        timeframe: str = DEFAULT_TIMEFRAME,
        *,
        now: datetime | None = None,
    ) -> list[ChannelSummary]:
        """
        Summarize several channels of one guild, keeping only active ones.

        Channels that cannot be resolved or have no history are skipped.
        A failure in one channel is logged and does not stop the others.
        """
        now = now or utcnow()
        summaries: list[ChannelSummary] = []
        for channel_id in channel_ids:
            channel = guild.get_channel(channel_id)
            if channel is None or not hasattr(channel, "history"):
                _LOG.debug("Skipping unresolved or non-text channel %s in guild %s", channel_id, guild.id)
                continue
            try:
                result = await self.summarize_channel(channel, timeframe, now=now)
            except Exception:
                _LOG.exception("Error summarizing channel %s in guild %s", channel_id, guild.id)
                continue
            if result.message_count > 0:
                summaries.append(result)
        return summaries
