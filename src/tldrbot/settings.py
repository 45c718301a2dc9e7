"""Centralized constant settings for the bot.

Non-secret values are tracked here with environment overrides. Secrets (the
Discord token and model API keys) must remain in .env.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Union


def _project_root() -> Path:
    """Return the repository root (settings.py lives at src/tldrbot/settings.py)."""
    return Path(__file__).resolve().parents[2]


# --------------------- Storage ---------------------

DB_PATH = Path(os.getenv("TLDR_DB_PATH", str(_project_root() / "data" / "tldr.db"))).expanduser()

# Raw message cache rows older than this are swept once a day.
CACHE_RETENTION_DAYS = int(os.getenv("CACHE_RETENTION_DAYS", "7"))


# --------------------- Model ---------------------

SUMMARY_PROVIDER = os.getenv("SUMMARY_PROVIDER", "openai").strip().lower()
SUMMARY_MODEL = os.getenv("SUMMARY_MODEL", "gpt-4o-mini")


# --------------------- Message windows ---------------------

HISTORY_BATCH_SIZE = 100
MAX_MESSAGES_TO_FETCH = int(os.getenv("MAX_MESSAGES_TO_FETCH", "500"))
MAX_SUMMARY_MESSAGES = int(os.getenv("MAX_SUMMARY_MESSAGES", "200"))

# Cached summaries younger than this are served instead of recomputing.
SUMMARY_FRESHNESS_MINUTES = int(os.getenv("SUMMARY_FRESHNESS_MINUTES", "60"))


# --------------------- Process ---------------------

HEALTH_PORT = int(os.getenv("PORT", "8080"))


# --------------------- Tiers ---------------------


class Tier(str, Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"

    @classmethod
    def parse(cls, value: str | None) -> "Tier":
        """Return the tier named by *value*, falling back to free."""
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.FREE


@dataclass(frozen=True)
class Bounded:
    limit: int


@dataclass(frozen=True)
class Unbounded:
    pass


DailyAllowance = Union[Bounded, Unbounded]


@dataclass(frozen=True)
class TierLimits:
    daily_allowance: DailyAllowance
    max_timeframe_hours: int
    digests_enabled: bool


TIER_LIMITS: dict[Tier, TierLimits] = {
    Tier.FREE: TierLimits(Bounded(5), max_timeframe_hours=24, digests_enabled=False),
    Tier.PRO: TierLimits(Bounded(100), max_timeframe_hours=7 * 24, digests_enabled=True),
    Tier.ENTERPRISE: TierLimits(Unbounded(), max_timeframe_hours=30 * 24, digests_enabled=True),
}


def describe_allowance(allowance: DailyAllowance) -> str:
    if isinstance(allowance, Unbounded):
        return "Unlimited"
    return f"{allowance.limit} summaries/day"


# --------------------- Validation ---------------------

_PROVIDER_KEYS = {
    "openai": "OPENAI_API_KEY",
    "chatgpt": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


def validate_config() -> list[str]:
    """Return the names of required environment variables that are unset."""
    required = ["DISCORD_TOKEN"]
    key_name = _PROVIDER_KEYS.get(SUMMARY_PROVIDER)
    if key_name:
        required.append(key_name)
    return [name for name in required if not os.getenv(name)]
