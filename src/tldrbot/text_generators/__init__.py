# text_generators/__init__.py
from .base import Completion, TextGeneratorAPI
from .anthropic import AnthropicTextGenerator
from .openai_chatgpt import OpenAIChatTextGenerator

__all__ = [
    "Completion",
    "TextGeneratorAPI",
    "AnthropicTextGenerator",
    "OpenAIChatTextGenerator",
    "get_text_generator",
]


def get_text_generator(api: str, model: str) -> TextGeneratorAPI:
    """Return an appropriate text-generator instance for the given API."""
    if api == "anthropic":
        return AnthropicTextGenerator(model)
    if api in ("openai", "chatgpt"):
        return OpenAIChatTextGenerator(model)
    raise ValueError(f"Unknown API: {api}")
