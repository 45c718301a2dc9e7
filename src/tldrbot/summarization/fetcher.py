"""Paged, time-bounded reads of channel and thread history."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import discord

from tldrbot.settings import HISTORY_BATCH_SIZE, MAX_MESSAGES_TO_FETCH, MAX_SUMMARY_MESSAGES

_LOG = logging.getLogger(__name__)


@dataclass
class FetchedMessage:
    """Pipeline input only; never persisted."""

    author_name: str
    content: str
    created_at: datetime
    reactions: int = 0


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def _reaction_count(message: Any) -> int:
    return sum(getattr(r, "count", 0) or 0 for r in getattr(message, "reactions", None) or [])


def _is_content(message: Any) -> bool:
    """Human-authored and carrying text."""
    return not message.author.bot and bool((message.content or "").strip())


def _to_fetched(message: Any) -> FetchedMessage:
    author = message.author
    name = getattr(author, "display_name", None) or getattr(author, "name", None) or str(author)
    return FetchedMessage(
        author_name=name,
        content=message.content,
        created_at=_aware(message.created_at),
        reactions=_reaction_count(message),
    )


async def fetch_history(channel: Any, *, limit: int, before_id: int | None = None) -> list[Any]:
    """Return one page of raw messages, newest first."""
    before = discord.Object(id=before_id) if before_id is not None else None
    return [message async for message in channel.history(limit=limit, before=before)]


async def fetch_message_window(
    channel: Any,
    since: datetime | None,
    *,
    max_scan: int = MAX_MESSAGES_TO_FETCH,
    keep: int = MAX_SUMMARY_MESSAGES,
    batch_size: int = HISTORY_BATCH_SIZE,
) -> list[FetchedMessage]:
    """
    Page backward from the newest message and return a bounded window.

    Paging stops when a page reaches a message older than *since*, when a
    page comes back short (start of history), or once *max_scan* messages
    have been kept. ``since=None`` reads until history or the ceiling runs
    out. The result is oldest-first and holds at most the *keep* most recent
    messages.

    Transport errors from the history call propagate unchanged.
    """
    since = _aware(since) if since is not None else None
    kept: list[FetchedMessage] = []
    before_id: int | None = None

    while True:
        page = await fetch_history(channel, limit=batch_size, before_id=before_id)
        if not page:
            break

        reached_boundary = False
        for message in page:
            if since is not None and _aware(message.created_at) < since:
                reached_boundary = True
                break
            if _is_content(message):
                kept.append(_to_fetched(message))

        if reached_boundary or len(page) < batch_size or len(kept) >= max_scan:
            break
        before_id = page[-1].id

    kept.sort(key=lambda m: m.created_at)
    if len(kept) > keep:
        kept = kept[-keep:]

    _LOG.debug(
        "Fetched %d messages from channel %s since %s",
        len(kept),
        getattr(channel, "id", "?"),
        since.isoformat() if since else "beginning",
    )
    return kept


async def fetch_recent_messages(channel: Any, count: int) -> list[FetchedMessage]:
    """Return the content messages among the last *count* entries, oldest first."""
    page = await fetch_history(channel, limit=count)
    messages = [_to_fetched(m) for m in page if _is_content(m)]
    messages.sort(key=lambda m: m.created_at)
    return messages
