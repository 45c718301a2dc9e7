"""Summarization pipeline: fetching, summarizing, caching, quotas and digests."""

from .digest_scheduler import DigestScheduler, build_digest_embed
from .errors import SummarizationError
from .fetcher import FetchedMessage, fetch_message_window, fetch_recent_messages
from .quota import CommandKind, QuotaLedger, UsageCheck
from .subscriptions import Frequency, Subscription, SubscriptionStore
from .summarizer import Highlight, HighlightsResult, Summarizer, SummaryResult
from .summary_cache import ChannelSummary, SummaryCache
from .timeframe import parse_timeframe, window_for

__all__ = [
    "ChannelSummary",
    "CommandKind",
    "DigestScheduler",
    "FetchedMessage",
    "Frequency",
    "Highlight",
    "HighlightsResult",
    "QuotaLedger",
    "Subscription",
    "SubscriptionStore",
    "SummarizationError",
    "Summarizer",
    "SummaryCache",
    "SummaryResult",
    "UsageCheck",
    "build_digest_embed",
    "fetch_message_window",
    "fetch_recent_messages",
    "parse_timeframe",
    "window_for",
]
