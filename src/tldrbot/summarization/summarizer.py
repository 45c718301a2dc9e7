"""Summary generation logic."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from tldrbot.summarization.errors import SummarizationError
from tldrbot.summarization.fetcher import FetchedMessage
from tldrbot.text_generators import TextGeneratorAPI

_LOG = logging.getLogger(__name__)

EMPTY_SUMMARY = "No messages to summarize."
SUMMARY_TEMPERATURE = 0.3
HIGHLIGHTS_MAX_TOKENS = 1000
MAX_SECTION_HIGHLIGHTS = 3
MIN_HIGHLIGHT_COUNT = 3
MAX_HIGHLIGHT_COUNT = 10

STYLE_INSTRUCTIONS = {
    "concise": "Provide a brief 2-3 sentence summary.",
    "detailed": "Provide a comprehensive summary covering all main topics discussed.",
    "bullet": "Provide a bullet-point summary of the key points.",
}
DEFAULT_STYLE = "concise"

HIGHLIGHT_TYPES = ("announcement", "discussion", "question", "resource", "achievement", "funny")

# "Highlights:", "**Key moments:**", "## Highlight:" and similar.
_SECTION_HEADING_RE = re.compile(r"[#*_]*\b(?:highlights?|key\s+moments?)[*_]*\s*:[*_]*", re.IGNORECASE)
_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*", re.MULTILINE)
_JSON_ARRAY_RE = re.compile(r"\[[\s\S]*\]")


@dataclass(frozen=True)
class Highlight:
    title: str
    description: str
    type: str = "discussion"


@dataclass
class SummaryResult:
    summary: str
    highlights: list[str] = field(default_factory=list)
    message_count: int = 0
    tokens_used: int = 0


@dataclass
class HighlightsResult:
    items: list[Highlight]
    tokens_used: int = 0


# ==================== Prompt building ====================


def style_instruction(style: str | None) -> str:
    return STYLE_INSTRUCTIONS.get((style or "").lower(), STYLE_INSTRUCTIONS[DEFAULT_STYLE])


def format_transcript(messages: Sequence[FetchedMessage]) -> str:
    return "\n".join(f"[{m.author_name}]: {m.content}" for m in messages)


def format_reaction_transcript(messages: Sequence[FetchedMessage]) -> str:
    return "\n".join(f"[{m.author_name}] ({m.reactions} reactions): {m.content}" for m in messages)


def build_summary_prompt(
    messages: Sequence[FetchedMessage], style: str, include_highlights: bool
) -> list[dict[str, str]]:
    """
    Build the chat messages for a channel summary.

    Args:
        messages: Oldest-first transcript to summarize
        style: concise, detailed or bullet (unknown values fall back to concise)
        include_highlights: Ask for a separate highlights section

    Returns:
        System and user messages for the text generator
    """
    system_prompt = f"""You are a Discord conversation summarizer. Your job is to create clear, helpful summaries that help people catch up on what they missed.

Rules:
- Be concise and focus on substance
- Mention key participants when relevant
- Highlight any decisions made, questions asked, or important announcements
- Use present tense for ongoing topics
- Don't include every detail - focus on what matters
- If there are links or resources mentioned, note them
- {style_instruction(style)}"""

    user_prompt = f"Summarize this Discord conversation:\n\n{format_transcript(messages)}"
    if include_highlights:
        user_prompt += (
            "\n\nAlso identify 1-3 highlights or key moments worth noting separately, "
            "under a heading 'Highlights:' with one bullet per highlight."
        )

    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]


def build_highlights_prompt(messages: Sequence[FetchedMessage], count: int) -> list[dict[str, str]]:
    system_prompt = f"""You are an expert at identifying the most important, interesting, or noteworthy moments in Discord conversations.

Identify the top {count} highlights based on:
- Important announcements or decisions
- Highly-reacted messages
- Key questions and answers
- Interesting discussions or debates
- Milestones or achievements mentioned
- Helpful resources shared

For each highlight, provide:
1. A short title (max 50 chars)
2. A brief description (1-2 sentences)
3. The type: {", ".join(HIGHLIGHT_TYPES[:-1])}, or {HIGHLIGHT_TYPES[-1]}

Format as JSON array:
[{{"title": "...", "description": "...", "type": "..."}}]"""

    user_prompt = f"Find the top {count} highlights from this conversation:\n\n{format_reaction_transcript(messages)}"
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]


# ==================== Response parsing ====================


def split_summary_and_highlights(
    text: str, max_highlights: int = MAX_SECTION_HIGHLIGHTS
) -> tuple[str, list[str]]:
    """
    Split a model response into summary text and highlight strings.

    The highlights section starts at the first "Highlights:" or "Key moments:"
    heading. Its body is split on bullet and numbering markers at the start
    of a line. Without a heading the whole text is the summary.
    """
    match = _SECTION_HEADING_RE.search(text)
    if match is None:
        return text.strip(), []

    summary = text[: match.start()].strip()
    section = text[match.end() :]
    parts = _BULLET_RE.split(section)
    highlights = [p.strip() for p in parts if p.strip()]
    return summary, highlights[:max_highlights]


def _coerce_highlight(item: object) -> Highlight | None:
    if not isinstance(item, dict):
        return None
    title = str(item.get("title") or "").strip()
    description = str(item.get("description") or "").strip()
    if not title and not description:
        return None
    kind = str(item.get("type") or "discussion").strip().lower()
    return Highlight(title=title or "Highlight", description=description or title, type=kind)


def parse_highlight_items(raw: str, count: int) -> list[Highlight]:
    """
    Extract up to *count* highlights from a model response.

    Looks for the outermost JSON array in *raw*. When nothing usable can be
    parsed, the raw text is returned as a single "Summary" highlight so the
    caller always has something to show.
    """
    fallback = [Highlight(title="Summary", description=raw.strip(), type="discussion")]

    match = _JSON_ARRAY_RE.search(raw)
    if match is None:
        _LOG.warning("Highlights response held no JSON array; using raw text")
        return fallback
    try:
        decoded = json.loads(match.group(0))
    except json.JSONDecodeError:
        _LOG.warning("Failed to parse highlights JSON; using raw text", exc_info=True)
        return fallback

    if not isinstance(decoded, list):
        return fallback
    items = [h for h in (_coerce_highlight(entry) for entry in decoded) if h is not None]
    return items[:count] or fallback


def clamp_highlight_count(count: int) -> int:
    return max(MIN_HIGHLIGHT_COUNT, min(MAX_HIGHLIGHT_COUNT, int(count)))


# ==================== Summarizer ====================


class Summarizer:
    """Handles summary generation using a text generator."""

    def __init__(self, llm: TextGeneratorAPI):
        """
        Initialize summarizer.

        Args:
            llm: Text generator that implements complete()
        """
        self.llm = llm

    async def summarize_messages(
        self,
        messages: Sequence[FetchedMessage],
        *,
        style: str = DEFAULT_STYLE,
        include_highlights: bool = True,
        max_length: int = 500,
    ) -> SummaryResult:
        """
        Summarize a message window.

        Args:
            messages: Oldest-first messages to summarize
            style: concise, detailed or bullet
            include_highlights: Parse a highlights section out of the response
            max_length: Output budget; the model gets twice this in tokens

        Returns:
            SummaryResult; empty input gives a fixed result without a model call

        Raises:
            SummarizationError: The model returned no text
        """
        if not messages:
            return SummaryResult(summary=EMPTY_SUMMARY)

        prompt = build_summary_prompt(messages, style, include_highlights)
        completion = await self.llm.complete(
            prompt,
            max_tokens=max_length * 2,
            temperature=SUMMARY_TEMPERATURE,
        )

        text = (completion.text or "").strip()
        if not text:
            raise SummarizationError("Model returned an empty summary")

        if include_highlights:
            summary, highlights = split_summary_and_highlights(text)
            if not summary:
                summary = text
        else:
            summary, highlights = text, []

        return SummaryResult(
            summary=summary,
            highlights=highlights,
            message_count=len(messages),
            tokens_used=completion.tokens_used,
        )

    async def extract_highlights(self, messages: Sequence[FetchedMessage], count: int = 5) -> HighlightsResult:
        """
        Ask for the top *count* moments (clamped to 3..10) as structured items.

        Malformed output never fails the call; see parse_highlight_items().
        """
        count = clamp_highlight_count(count)
        completion = await self.llm.complete(
            build_highlights_prompt(messages, count),
            max_tokens=HIGHLIGHTS_MAX_TOKENS,
            temperature=SUMMARY_TEMPERATURE,
        )
        items = parse_highlight_items(completion.text or "", count)
        return HighlightsResult(items=items, tokens_used=completion.tokens_used)
