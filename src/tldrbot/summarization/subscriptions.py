"""Digest subscription records (one per guild member)."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from tldrbot.store import Store, from_db_time, to_db_time, utcnow

_LOG = logging.getLogger(__name__)

MAX_DIGEST_CHANNELS = 5
DEFAULT_DIGEST_TIME = "09:00"

# Delivery runs on the hour, so only whole hours are accepted.
_DIGEST_TIME_RE = re.compile(r"([01]\d|2[0-3]):00")


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


@dataclass
class Subscription:
    id: int
    guild_id: int
    user_id: int
    channel_ids: list[int] = field(default_factory=list)
    frequency: Frequency = Frequency.DAILY
    time: str = DEFAULT_DIGEST_TIME
    timezone: str = "UTC"
    enabled: bool = True
    last_sent: datetime | None = None

    @property
    def timeframe(self) -> str:
        return "7d" if self.frequency is Frequency.WEEKLY else "24h"


def is_valid_digest_time(value: str) -> bool:
    return bool(_DIGEST_TIME_RE.fullmatch(value or ""))


def decode_channel_ids(raw: str | None) -> list[int]:
    """Decode the stored JSON channel list, tolerating junk."""
    if not raw:
        return []
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        _LOG.warning("Unreadable channel_ids value %r", raw)
        return []
    if not isinstance(decoded, list):
        return []
    ids = []
    for value in decoded:
        try:
            ids.append(int(value))
        except (TypeError, ValueError):
            continue
    return ids


def _row_to_subscription(row) -> Subscription:
    return Subscription(
        id=row["id"],
        guild_id=row["guild_id"],
        user_id=row["user_id"],
        channel_ids=decode_channel_ids(row["channel_ids"]),
        frequency=Frequency(row["frequency"]),
        time=row["time"],
        timezone=row["timezone"],
        enabled=bool(row["enabled"]),
        last_sent=from_db_time(row["last_sent"]),
    )


def _date_key(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d")


class SubscriptionStore:
    """Owns digest_subscriptions."""

    def __init__(self, store: Store):
        self.store = store

    def get(self, guild_id: int, user_id: int) -> Subscription | None:
        row = self.store.connection.execute(
            "SELECT * FROM digest_subscriptions WHERE guild_id = ? AND user_id = ?",
            (guild_id, user_id),
        ).fetchone()
        return _row_to_subscription(row) if row else None

    def subscribe(
        self,
        guild_id: int,
        user_id: int,
        frequency: Frequency | str,
        time: str = DEFAULT_DIGEST_TIME,
        *,
        now: datetime | None = None,
    ) -> Subscription:
        """Create or re-enable a subscription. Channel choices are kept."""
        if not is_valid_digest_time(time):
            raise ValueError(f"Digest time must be a whole hour (HH:00), got {time!r}")
        frequency = Frequency(frequency)
        with self.store.transaction() as conn:
            conn.execute(
                """
                INSERT INTO digest_subscriptions (guild_id, user_id, frequency, time, enabled, created_at)
                VALUES (?, ?, ?, ?, 1, ?)
                ON CONFLICT(guild_id, user_id) DO UPDATE SET
                    frequency = excluded.frequency,
                    time = excluded.time,
                    enabled = 1
                """,
                (guild_id, user_id, frequency.value, time, to_db_time(now or utcnow())),
            )
        _LOG.info("User %s subscribed to %s digests at %s in guild %s", user_id, frequency.value, time, guild_id)
        return self.get(guild_id, user_id)

    def set_channels(self, guild_id: int, user_id: int, channel_ids: list[int]) -> bool:
        """Replace the channel list. Returns False when there is no subscription."""
        unique = list(dict.fromkeys(int(c) for c in channel_ids))
        if len(unique) > MAX_DIGEST_CHANNELS:
            raise ValueError(f"A digest can follow at most {MAX_DIGEST_CHANNELS} channels")
        with self.store.transaction() as conn:
            cursor = conn.execute(
                "UPDATE digest_subscriptions SET channel_ids = ? WHERE guild_id = ? AND user_id = ?",
                (json.dumps(unique), guild_id, user_id),
            )
            return cursor.rowcount > 0

    def unsubscribe(self, guild_id: int, user_id: int) -> bool:
        with self.store.transaction() as conn:
            cursor = conn.execute(
                "UPDATE digest_subscriptions SET enabled = 0 WHERE guild_id = ? AND user_id = ?",
                (guild_id, user_id),
            )
            return cursor.rowcount > 0

    # ==================== Scheduler queries ====================

    def due_daily(self, time_token: str, now: datetime) -> list[Subscription]:
        """Enabled daily subscriptions at *time_token* not yet sent today."""
        rows = self.store.connection.execute(
            """
            SELECT * FROM digest_subscriptions
            WHERE enabled = 1 AND frequency = ? AND time = ?
              AND (last_sent IS NULL OR substr(last_sent, 1, 10) < ?)
            ORDER BY id
            """,
            (Frequency.DAILY.value, time_token, _date_key(now)),
        ).fetchall()
        return [_row_to_subscription(r) for r in rows]

    def due_weekly(self, time_token: str, now: datetime) -> list[Subscription]:
        """Enabled weekly subscriptions at *time_token* last sent before six days ago."""
        rows = self.store.connection.execute(
            """
            SELECT * FROM digest_subscriptions
            WHERE enabled = 1 AND frequency = ? AND time = ?
              AND (last_sent IS NULL OR substr(last_sent, 1, 10) < ?)
            ORDER BY id
            """,
            (Frequency.WEEKLY.value, time_token, _date_key(now - timedelta(days=6))),
        ).fetchall()
        return [_row_to_subscription(r) for r in rows]

    def mark_sent(self, subscription_id: int, when: datetime) -> None:
        with self.store.transaction() as conn:
            conn.execute(
                "UPDATE digest_subscriptions SET last_sent = ? WHERE id = ?",
                (to_db_time(when), subscription_id),
            )
