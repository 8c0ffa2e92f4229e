"""Query to canonical-title resolution."""

from __future__ import annotations

from typing import Protocol

from ..core.errors import NotFoundError


class SearchProvider(Protocol):
    async def search(self, query: str, limit: int = 1) -> list[str]: ...


class ArticleResolver:
    """Resolves a free-text query to the single best-matching article title.

    The first candidate is always taken. No disambiguation or spelling
    correction is attempted.
    """

    def __init__(self, search_provider: SearchProvider):
        self.search_provider = search_provider

    async def resolve(self, query: str) -> str:
        """Return the canonical title for a query.

        Raises:
            NotFoundError: If the query is blank or nothing matches
            ResolutionError: If the search provider fails
        """
        if not query.strip():
            raise NotFoundError("Empty search query")
        candidates = await self.search_provider.search(query, limit=1)
        if not candidates:
            raise NotFoundError(f"No article matches '{query}'")
        return candidates[0]
