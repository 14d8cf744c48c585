"""Wire adapters, one per vendor family."""

from kele.llm.providers.anthropic import AnthropicProvider
from kele.llm.providers.base import HTTPProvider, Provider
from kele.llm.providers.ollama import OllamaProvider
from kele.llm.providers.openai_compat import OpenAICompatProvider

__all__ = [
    "AnthropicProvider",
    "HTTPProvider",
    "OllamaProvider",
    "OpenAICompatProvider",
    "Provider",
]
