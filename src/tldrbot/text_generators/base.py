from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Sequence


@dataclass(frozen=True)
class Completion:
    """Model output plus the total token count reported by the provider."""

    text: str
    tokens_used: int = 0


class TextGeneratorAPI(ABC):
    """Abstract base class for text generator providers."""

    model: str

    @abstractmethod
    async def complete(
        self,
        messages: Sequence[dict[str, Any]],
        *,
        max_tokens: int,
        temperature: float,
    ) -> Completion:
        """Return the completion for a list of role/content messages."""
        raise NotImplementedError
