"""Tests for the quota ledger."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from tldrbot.settings import Bounded, Tier, Unbounded
from tldrbot.summarization.quota import CommandKind, QuotaLedger

GUILD = 1
USER = 42


@pytest.fixture
def ledger(store):
    return QuotaLedger(store)


def _track(ledger, times, now, command=CommandKind.TLDR, user=USER):
    for _ in range(times):
        assert ledger.track_usage(GUILD, user, command, 10, now=now)


class TestCheckUsageLimit:
    """Tests for check_usage_limit."""

    def test_unknown_guild_is_free(self, ledger, now):
        check = ledger.check_usage_limit(GUILD, USER, now=now)
        assert check.tier is Tier.FREE
        assert check.limit == Bounded(5)
        assert check.allowed
        assert check.used == 0
        assert check.remaining == 5

    def test_one_below_limit_is_allowed(self, ledger, now):
        _track(ledger, 4, now)
        check = ledger.check_usage_limit(GUILD, USER, now=now)
        assert check.allowed
        assert check.remaining == 1

    def test_at_limit_is_refused(self, ledger, now):
        _track(ledger, 5, now)
        check = ledger.check_usage_limit(GUILD, USER, now=now)
        assert not check.allowed
        assert check.remaining == 0
        assert check.used == 5

    def test_counts_only_today_utc(self, ledger, now):
        yesterday = now.replace(hour=0, minute=0) - timedelta(minutes=1)
        _track(ledger, 5, yesterday)
        _track(ledger, 1, now)
        check = ledger.check_usage_limit(GUILD, USER, now=now)
        assert check.used == 1
        assert check.allowed

    def test_counts_are_per_user(self, ledger, now):
        _track(ledger, 5, now, user=7)
        assert ledger.check_usage_limit(GUILD, USER, now=now).allowed
        assert not ledger.check_usage_limit(GUILD, 7, now=now).allowed

    def test_all_command_kinds_share_the_allowance(self, ledger, now):
        _track(ledger, 2, now, CommandKind.CATCHMEUP)
        _track(ledger, 2, now, CommandKind.HIGHLIGHTS)
        _track(ledger, 1, now, CommandKind.TLDR)
        assert not ledger.check_usage_limit(GUILD, USER, now=now).allowed

    def test_pro_tier_limit(self, store, ledger, now):
        store.set_tier(GUILD, Tier.PRO)
        _track(ledger, 5, now)
        check = ledger.check_usage_limit(GUILD, USER, now=now)
        assert check.allowed
        assert check.limit == Bounded(100)
        assert check.remaining == 95

    def test_enterprise_is_unbounded(self, store, ledger, now):
        store.set_tier(GUILD, Tier.ENTERPRISE)
        _track(ledger, 150, now)
        check = ledger.check_usage_limit(GUILD, USER, now=now)
        assert check.allowed
        assert isinstance(check.limit, Unbounded)
        assert check.remaining is None
        assert check.limit_text == "unlimited"


class TestTrackUsage:
    """Tests for track_usage."""

    def test_records_command_and_tokens(self, store, ledger, now):
        ledger.track_usage(GUILD, USER, CommandKind.HIGHLIGHTS, 321, now=now)
        row = store.connection.execute("SELECT command, tokens_used FROM usage_tracking").fetchone()
        assert row["command"] == "highlights"
        assert row["tokens_used"] == 321

    def test_database_errors_do_not_propagate(self):
        broken = MagicMock()

        @contextmanager
        def failing_transaction():
            raise sqlite3.OperationalError("database is locked")
            yield  # pragma: no cover

        broken.transaction = failing_transaction
        ledger = QuotaLedger(broken)

        assert ledger.track_usage(GUILD, USER, CommandKind.TLDR, 1) is False


class TestFeatureAccess:
    """Tests for tier feature lookups."""

    def test_free_tier_features(self, ledger):
        assert not ledger.has_feature_access(GUILD, "digest")
        assert not ledger.has_feature_access(GUILD, "extended_timeframe")
        assert not ledger.has_feature_access(GUILD, "unlimited")
        assert ledger.has_feature_access(GUILD, "anything-else")
        assert ledger.max_timeframe_hours(GUILD) == 24

    def test_pro_tier_features(self, store, ledger):
        store.set_tier(GUILD, Tier.PRO)
        assert ledger.has_feature_access(GUILD, "digest")
        assert ledger.has_feature_access(GUILD, "extended_timeframe")
        assert not ledger.has_feature_access(GUILD, "unlimited")
        assert ledger.max_timeframe_hours(GUILD) == 168

    def test_enterprise_tier_features(self, store, ledger):
        store.set_tier(GUILD, Tier.ENTERPRISE)
        assert ledger.has_feature_access(GUILD, "unlimited")
        assert ledger.max_timeframe_hours(GUILD) == 720


class TestServerUsageStats:
    """Tests for get_server_usage_stats."""

    def test_aggregates_recent_usage(self, ledger, now):
        ledger.track_usage(GUILD, 1, CommandKind.TLDR, 100, now=now)
        ledger.track_usage(GUILD, 2, CommandKind.TLDR, 50, now=now - timedelta(days=1))
        ledger.track_usage(GUILD, 2, CommandKind.CATCHMEUP, 25, now=now)
        ledger.track_usage(GUILD, 3, CommandKind.TLDR, 999, now=now - timedelta(days=40))
        ledger.track_usage(2, 1, CommandKind.TLDR, 999, now=now)

        stats = ledger.get_server_usage_stats(GUILD, 30, now=now)

        assert stats["totals"] == {"summaries": 3, "tokens": 175, "unique_users": 2}
        assert stats["by_command"][0] == {"command": "tldr", "count": 2, "tokens": 150}
        assert [d["date"] for d in stats["daily"]] == ["2024-06-02", "2024-06-03"]

    def test_empty_guild(self, ledger, now):
        stats = ledger.get_server_usage_stats(GUILD, now=now)
        assert stats["totals"] == {"summaries": 0, "tokens": 0, "unique_users": 0}
        assert stats["by_command"] == []
