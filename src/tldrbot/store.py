# store.py
"""SQLite persistence shared by every component.

One ``Store`` is opened during startup and closed during shutdown. Components
receive it explicitly; each table is written by exactly one owner (see the
modules that issue the INSERT/UPDATE statements).
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path

from tldrbot.settings import Tier

_LOG = logging.getLogger(__name__)

# Fixed width so lexicographic order matches chronological order.
_DB_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class StoreClosedError(RuntimeError):
    """Raised when the store is used before open() or after close()."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_time(dt: datetime) -> str:
    """Format an aware (or naive UTC) datetime for storage."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(_DB_TIME_FORMAT)


def from_db_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.strptime(value, _DB_TIME_FORMAT).replace(tzinfo=timezone.utc)


class Store:
    """Owner of the single SQLite connection."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    # ==================== Lifecycle ====================

    def open(self) -> "Store":
        if self._conn is not None:
            return self
        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        self._conn = conn
        self.init_schema()
        _LOG.info("Database initialized at %s", self.db_path)
        return self

    def close(self) -> None:
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
        _LOG.info("Database connection closed")

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreClosedError(f"Store at {self.db_path} is not open")
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield the connection; commit on success, roll back on error."""
        conn = self.connection
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def init_schema(self) -> None:
        """Create required tables if they don't exist."""
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS server_config (
                    guild_id INTEGER PRIMARY KEY,
                    guild_name TEXT,
                    tier TEXT NOT NULL DEFAULT 'free',
                    created_at TEXT NOT NULL,
                    settings_json TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS message_cache (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    guild_id INTEGER NOT NULL,
                    channel_id INTEGER NOT NULL,
                    message_id INTEGER UNIQUE NOT NULL,
                    author_id INTEGER NOT NULL,
                    author_name TEXT NOT NULL,
                    content TEXT,
                    created_at TEXT NOT NULL,
                    cached_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_cache_guild_channel ON message_cache(guild_id, channel_id)"
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_cache_cached_at ON message_cache(cached_at)")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS usage_tracking (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    guild_id INTEGER NOT NULL,
                    user_id INTEGER NOT NULL,
                    command TEXT NOT NULL,
                    tokens_used INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_usage_guild_user_time ON usage_tracking(guild_id, user_id, created_at)"
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS digest_subscriptions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    guild_id INTEGER NOT NULL,
                    user_id INTEGER NOT NULL,
                    channel_ids TEXT,
                    frequency TEXT NOT NULL DEFAULT 'daily',
                    time TEXT NOT NULL DEFAULT '09:00',
                    timezone TEXT NOT NULL DEFAULT 'UTC',
                    enabled INTEGER NOT NULL DEFAULT 1,
                    last_sent TEXT,
                    created_at TEXT NOT NULL,
                    UNIQUE(guild_id, user_id)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS summary_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    guild_id INTEGER NOT NULL,
                    channel_id INTEGER NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT NOT NULL,
                    message_count INTEGER NOT NULL,
                    summary TEXT NOT NULL,
                    highlights_json TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_summary_lookup "
                "ON summary_history(guild_id, channel_id, start_time, end_time)"
            )

    # ==================== Community config ====================

    def ensure_community(self, guild_id: int, guild_name: str | None = None, *, now: datetime | None = None) -> None:
        """Create the free-tier config row on first contact (no-op afterwards)."""
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO server_config (guild_id, guild_name, tier, created_at) VALUES (?, ?, ?, ?)",
                (guild_id, guild_name, Tier.FREE.value, to_db_time(now or utcnow())),
            )

    def get_tier(self, guild_id: int) -> Tier:
        row = self.connection.execute(
            "SELECT tier FROM server_config WHERE guild_id = ?", (guild_id,)
        ).fetchone()
        return Tier.parse(row["tier"] if row else None)

    def set_tier(self, guild_id: int, tier: Tier) -> None:
        """Used by the external upgrade process."""
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO server_config (guild_id, tier, created_at) VALUES (?, ?, ?)
                ON CONFLICT(guild_id) DO UPDATE SET tier = excluded.tier
                """,
                (guild_id, tier.value, to_db_time(utcnow())),
            )
        _LOG.info("Guild %s moved to tier %s", guild_id, tier.value)

    # ==================== Raw message cache ====================

    def cleanup_old_cache(self, days_old: int = 7, *, now: datetime | None = None) -> int:
        """Delete cached raw messages older than *days_old* by caching time."""
        cutoff = to_db_time((now or utcnow()) - timedelta(days=days_old))
        with self.transaction() as conn:
            cursor = conn.execute("DELETE FROM message_cache WHERE cached_at < ?", (cutoff,))
            removed = cursor.rowcount
        _LOG.info("Cleaned up %d old cached messages", removed)
        return removed
