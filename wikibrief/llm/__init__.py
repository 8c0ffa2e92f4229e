"""Summarization and generative-text providers."""

from .providers.base import CompletionProvider
from .providers.factory import available_providers, create_provider
from .providers.gemini import GeminiProvider
from .providers.openai_compatible import OpenAICompatibleProvider
from .summarizer import Summarizer

__all__ = [
    "CompletionProvider",
    "GeminiProvider",
    "OpenAICompatibleProvider",
    "Summarizer",
    "available_providers",
    "create_provider",
]
