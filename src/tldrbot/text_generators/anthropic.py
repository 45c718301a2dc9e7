"""Text-generation backend that calls Anthropic's Claude models."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from anthropic import APIConnectionError, APIError, AsyncAnthropic, RateLimitError

from .base import Completion, TextGeneratorAPI

_log = logging.getLogger(__name__)

# --------------------------------------------------------------------------- #
# A single shared client is plenty; reuse it across all requests              #
# --------------------------------------------------------------------------- #
_CLIENT_CACHE: Dict[str, AsyncAnthropic] = {}


def _content_to_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: List[str] = []
        for item in content:
            if isinstance(item, dict) and item.get("type") == "text":
                parts.append(item.get("text", ""))
            else:
                parts.append(str(item))
        return "\n".join(p for p in parts if p)
    return str(content)


class AnthropicTextGenerator(TextGeneratorAPI):
    """Generate text using Anthropic's Claude models.

    The class relies on the ``anthropic`` package and an ``ANTHROPIC_API_KEY``
    environment variable being present.

    Messages use the OpenAI-style role/content shape. Any messages with role
    "system" are moved to the top-level ``system`` parameter as required by
    the Anthropic Messages API; multiple system entries are joined with blank
    lines.
    """

    def __init__(self, model: str = "claude-3-5-haiku-latest") -> None:
        self.model = model

    def _get_client(self) -> AsyncAnthropic:
        """Return (and cache) a shared ``AsyncAnthropic`` client instance."""
        if "default" not in _CLIENT_CACHE:
            _CLIENT_CACHE["default"] = AsyncAnthropic()  # picks up API key
        return _CLIENT_CACHE["default"]

    async def complete(
        self,
        messages: Sequence[Dict[str, Any]],
        *,
        max_tokens: int,
        temperature: float,
    ) -> Completion:
        if not all(isinstance(m, dict) and "role" in m and "content" in m for m in messages):
            raise TypeError("Each message must be a dict with 'role' and 'content' keys")

        system_parts: List[str] = []
        cleaned: List[Dict[str, Any]] = []
        for m in messages:
            role = (m.get("role") or "").lower()
            if role == "system":
                system_parts.append(_content_to_text(m.get("content")))
            else:
                cleaned.append({"role": role, "content": m.get("content")})
        system_text = "\n\n".join(p for p in system_parts if p).strip() or None

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": cleaned,
            "temperature": temperature,
        }
        if system_text:
            kwargs["system"] = system_text

        client = self._get_client()
        try:
            response = await client.messages.create(**kwargs)
        except RateLimitError as e:
            _log.warning("Anthropic rate limit hit for model %s: %s", self.model, e)
            raise
        except APIConnectionError as e:
            _log.error("Anthropic connection error for model %s: %s", self.model, e)
            raise
        except APIError as e:
            _log.error("Anthropic API error for model %s: %s", self.model, e)
            raise

        # SDK returns a list of content blocks; aggregate text blocks.
        parts: List[str] = []
        for block in getattr(response, "content", []) or []:
            text = getattr(block, "text", None)
            if text:
                parts.append(text)

        usage = getattr(response, "usage", None)
        tokens = (getattr(usage, "input_tokens", 0) or 0) + (getattr(usage, "output_tokens", 0) or 0)
        return Completion(text="".join(parts).strip(), tokens_used=int(tokens))
