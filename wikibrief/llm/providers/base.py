"""Abstract interface for generative-text providers."""

from __future__ import annotations

from abc import ABC, abstractmethod


class CompletionProvider(ABC):
    """Provider interface for single-turn text generation."""

    name: str = ""
    default_base_url: str = ""

    @abstractmethod
    async def complete(self, system_prompt: str, user_content: str, model: str) -> str:
        """Return the first candidate's text for a system + user prompt.

        Raises:
            GenerationError: On transport failure or when no candidate is returned
        """
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release any network resources held by the provider."""
        return None
