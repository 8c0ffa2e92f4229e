"""Article summarization through a generative-text provider."""

from __future__ import annotations

from ..config import ProviderConfig
from .providers.base import CompletionProvider


class Summarizer:
    """Turns raw article text into a summary using a fixed system prompt.

    The provider's text is returned verbatim: no trimming, truncation or
    format checks are applied.
    """

    def __init__(self, provider: CompletionProvider, system_prompt: str, model: str):
        self.provider = provider
        self.system_prompt = system_prompt
        self.model = model

    @classmethod
    def from_config(cls, provider: CompletionProvider, cfg: ProviderConfig) -> "Summarizer":
        return cls(provider, cfg.system_prompt, cfg.model)

    async def summarize(self, content: str) -> str:
        """Return the summary for ``content``.

        Raises:
            GenerationError: If the provider call fails or yields no candidate
        """
        return await self.provider.complete(self.system_prompt, content, self.model)
