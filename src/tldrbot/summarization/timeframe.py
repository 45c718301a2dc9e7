"""Symbolic lookback tokens such as ``24h`` or ``7d``."""

import re
from datetime import datetime, timedelta

DEFAULT_TIMEFRAME = "24h"
DEFAULT_TIMEFRAME_HOURS = 24

_TIMEFRAME_RE = re.compile(r"(\d+)([hdw])", re.IGNORECASE)
_UNIT_HOURS = {"h": 1, "d": 24, "w": 168}


def parse_timeframe(timeframe: str | None) -> int:
    """
    Convert a ``<integer><h|d|w>`` token into hours.

    Anything that does not match falls back to 24 hours instead of raising,
    so a malformed option still produces a summary.
    """
    if not isinstance(timeframe, str):
        return DEFAULT_TIMEFRAME_HOURS
    match = _TIMEFRAME_RE.fullmatch(timeframe)
    if not match:
        return DEFAULT_TIMEFRAME_HOURS
    count, unit = match.groups()
    return int(count) * _UNIT_HOURS[unit.lower()]


def window_for(timeframe: str | None, now: datetime) -> tuple[datetime, datetime]:
    """Return the absolute ``[since, now)`` window for *timeframe*."""
    return now - timedelta(hours=parse_timeframe(timeframe)), now
