# text_generators/openai_chatgpt.py
from __future__ import annotations

import logging
from typing import Any, Dict, Sequence

from openai import APIConnectionError, APIError, AsyncOpenAI, RateLimitError

from .base import Completion, TextGeneratorAPI

_CLIENT_CACHE: Dict[str, AsyncOpenAI] = {}
_LOG = logging.getLogger(__name__)


class OpenAIChatTextGenerator(TextGeneratorAPI):
    """Text-generation backend for OpenAI chat models (default: gpt-4o-mini).

    Requires OPENAI_API_KEY in the environment. Uses the Chat Completions API
    so the output budget and sampling temperature are honoured as given.
    """

    def __init__(self, model: str = "gpt-4o-mini") -> None:
        self.model = model

    def _get_client(self) -> AsyncOpenAI:
        if "default" not in _CLIENT_CACHE:
            _CLIENT_CACHE["default"] = AsyncOpenAI()  # picks up OPENAI_API_KEY
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

        client = self._get_client()
        try:
            resp = await client.chat.completions.create(
                model=self.model,
                messages=list(messages),  # type: ignore[arg-type]
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except RateLimitError as e:
            _LOG.warning("OpenAI rate limit hit for model %s: %s", self.model, e)
            raise
        except APIConnectionError as e:
            _LOG.error("OpenAI connection error for model %s: %s", self.model, e)
            raise
        except APIError as e:
            _LOG.error("OpenAI API error for model %s: %s", self.model, e)
            raise

        text = ""
        if resp.choices:
            text = resp.choices[0].message.content or ""
        usage = getattr(resp, "usage", None)
        tokens = getattr(usage, "total_tokens", 0) or 0
        return Completion(text=text.strip(), tokens_used=int(tokens))
