"""Daily usage quotas per (guild, user).

This module provides the QuotaLedger class which manages:
- Tier resolution for a guild (free when unconfigured)
- Daily allowance checks against the tier table
- Append-only usage events and reporting
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from tldrbot.settings import TIER_LIMITS, Bounded, DailyAllowance, Tier, TierLimits, Unbounded
from tldrbot.store import Store, to_db_time, utcnow

_log = logging.getLogger(__name__)


class CommandKind(str, Enum):
    """Quota-gated commands; the value is recorded with each usage event."""

    CATCHMEUP = "catchmeup"
    TLDR = "tldr"
    HIGHLIGHTS = "highlights"


@dataclass(frozen=True)
class UsageCheck:
    allowed: bool
    used: int
    limit: DailyAllowance
    remaining: int | None  # None when the allowance is unbounded
    tier: Tier

    @property
    def limit_text(self) -> str:
        return "unlimited" if isinstance(self.limit, Unbounded) else str(self.limit.limit)


def _day_bounds(now: datetime) -> tuple[str, str]:
    """Return the UTC calendar day containing *now* as stored-time strings."""
    start = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return to_db_time(start), to_db_time(start + timedelta(days=1))


class QuotaLedger:
    """Owns usage_tracking writes and answers quota questions."""

    def __init__(self, store: Store, tier_limits: dict[Tier, TierLimits] | None = None) -> None:
        """Initialize the ledger.

        Args:
            store: Open persistent store
            tier_limits: Tier table; defaults to settings.TIER_LIMITS
        """
        self.store = store
        self.tier_limits = tier_limits or TIER_LIMITS

    def limits_for(self, tier: Tier) -> TierLimits:
        return self.tier_limits.get(tier) or self.tier_limits[Tier.FREE]

    def get_tier(self, guild_id: int) -> Tier:
        return self.store.get_tier(guild_id)

    def count_today(self, guild_id: int, user_id: int, *, now: datetime | None = None) -> int:
        day_start, day_end = _day_bounds(now or utcnow())
        row = self.store.connection.execute(
            """
            SELECT COUNT(*) FROM usage_tracking
            WHERE guild_id = ? AND user_id = ? AND created_at >= ? AND created_at < ?
            """,
            (guild_id, user_id, day_start, day_end),
        ).fetchone()
        return int(row[0]) if row else 0

    def check_usage_limit(self, guild_id: int, user_id: int, *, now: datetime | None = None) -> UsageCheck:
        """Check whether a user may run another summary command today.

        Args:
            guild_id: Discord guild ID
            user_id: Discord user ID
            now: Evaluation time (defaults to the current UTC time)

        Returns:
            UsageCheck with allowed/used/limit/remaining/tier
        """
        tier = self.get_tier(guild_id)
        allowance = self.limits_for(tier).daily_allowance
        used = self.count_today(guild_id, user_id, now=now)

        if isinstance(allowance, Bounded):
            remaining: int | None = max(0, allowance.limit - used)
            allowed = used < allowance.limit
        else:
            remaining = None
            allowed = True

        if not allowed:
            _log.info(f"User {user_id} in guild {guild_id} hit the {tier.value} limit ({used} used)")
        return UsageCheck(allowed=allowed, used=used, limit=allowance, remaining=remaining, tier=tier)

    def track_usage(
        self,
        guild_id: int,
        user_id: int,
        command: CommandKind | str,
        tokens_used: int = 0,
        *,
        now: datetime | None = None,
    ) -> bool:
        """Append one usage event.

        Failures are logged and reported through the return value; accounting
        never fails the request that already passed its check.

        Returns:
            True if the event was recorded
        """
        kind = command.value if isinstance(command, CommandKind) else str(command)
        try:
            with self.store.transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO usage_tracking (guild_id, user_id, command, tokens_used, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (guild_id, user_id, kind, int(tokens_used or 0), to_db_time(now or utcnow())),
                )
        except sqlite3.Error:
            _log.exception(f"Failed to track {kind} usage for user {user_id} in guild {guild_id}")
            return False
        return True

    # ==================== Features ====================

    def has_feature_access(self, guild_id: int, feature: str) -> bool:
        tier = self.get_tier(guild_id)
        if feature == "digest":
            return self.limits_for(tier).digests_enabled
        if feature == "extended_timeframe":
            return tier is not Tier.FREE
        if feature == "unlimited":
            return tier is Tier.ENTERPRISE
        return True

    def max_timeframe_hours(self, guild_id: int) -> int:
        return self.limits_for(self.get_tier(guild_id)).max_timeframe_hours

    # ==================== Reporting ====================

    def get_server_usage_stats(self, guild_id: int, days: int = 30, *, now: datetime | None = None) -> dict:
        """Summarize a guild's usage over the last *days* days.

        Returns:
            Dictionary with keys: by_command (list of {command, count, tokens}),
            daily (list of {date, count}), totals ({summaries, tokens, unique_users})
        """
        since = to_db_time((now or utcnow()) - timedelta(days=days))
        conn = self.store.connection

        by_command = [
            dict(row)
            for row in conn.execute(
                """
                SELECT command, COUNT(*) AS count, COALESCE(SUM(tokens_used), 0) AS tokens
                FROM usage_tracking
                WHERE guild_id = ? AND created_at >= ?
                GROUP BY command
                ORDER BY count DESC
                """,
                (guild_id, since),
            ).fetchall()
        ]
        daily = [
            dict(row)
            for row in conn.execute(
                """
                SELECT substr(created_at, 1, 10) AS date, COUNT(*) AS count
                FROM usage_tracking
                WHERE guild_id = ? AND created_at >= ?
                GROUP BY date
                ORDER BY date ASC
                """,
                (guild_id, since),
            ).fetchall()
        ]
        unique_users = conn.execute(
            "SELECT COUNT(DISTINCT user_id) FROM usage_tracking WHERE guild_id = ? AND created_at >= ?",
            (guild_id, since),
        ).fetchone()[0]

        return {
            "by_command": by_command,
            "daily": daily,
            "totals": {
                "summaries": sum(c["count"] for c in by_command),
                "tokens": sum(c["tokens"] for c in by_command),
                "unique_users": int(unique_users or 0),
            },
        }
