"""
Wikipedia search and content retrieval over the MediaWiki action API.

Two calls are used:
1. list=search: full-text title search, best match first
2. prop=extracts (explaintext): plain-text body of a page

Network failures and unexpected payloads are raised as ResolutionError
(search) or FetchError (content) so callers only deal with the pipeline
error taxonomy.
"""

from __future__ import annotations

from typing import Any

import httpx

from ..config import WikipediaConfig, get_wikipedia_api_url
from ..core.errors import FetchError, ResolutionError


class WikipediaClient:
    """Async MediaWiki client for title search and article text."""

    def __init__(self, cfg: WikipediaConfig, client: httpx.AsyncClient | None = None):
        self.cfg = cfg
        self.api_url = get_wikipedia_api_url(cfg)
        self._client = client or httpx.AsyncClient(
            timeout=cfg.timeout_seconds,
            headers={"User-Agent": cfg.user_agent},
            follow_redirects=True,
            trust_env=cfg.trust_env,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def search(self, query: str, limit: int = 1) -> list[str]:
        """Return up to ``limit`` matching titles, best match first.

        Raises:
            ResolutionError: If the request fails or the payload is malformed
        """
        params = {
            "action": "query",
            "list": "search",
            "srsearch": query,
            "srlimit": limit,
            "srprop": "",
            "format": "json",
            "formatversion": 2,
        }
        try:
            data = await self._get(params)
        except httpx.HTTPError as exc:
            raise ResolutionError(f"Search request failed: {type(exc).__name__}: {exc}") from exc
        except ValueError as exc:
            raise ResolutionError(f"Search returned a non-JSON response: {exc}") from exc

        _raise_api_error(data, ResolutionError)
        results = (data.get("query") or {}).get("search")
        if not isinstance(results, list):
            raise ResolutionError("Search response missing results")
        titles = [str(item["title"]) for item in results if isinstance(item, dict) and item.get("title")]
        return titles[:limit]

    async def fetch_content(self, title: str) -> str:
        """Return the plain-text body of the page with the given title.

        Raises:
            FetchError: If the request fails, the page does not exist
                or the page has no text
        """
        params = {
            "action": "query",
            "prop": "extracts",
            "explaintext": 1,
            "redirects": 1,
            "titles": title,
            "format": "json",
            "formatversion": 2,
        }
        try:
            data = await self._get(params)
        except httpx.HTTPError as exc:
            raise FetchError(f"Content request failed: {type(exc).__name__}: {exc}") from exc
        except ValueError as exc:
            raise FetchError(f"Content request returned a non-JSON response: {exc}") from exc

        _raise_api_error(data, FetchError)
        pages = (data.get("query") or {}).get("pages")
        if not isinstance(pages, list) or not pages:
            raise FetchError(f"No page returned for '{title}'")
        page = pages[0]
        if not isinstance(page, dict) or page.get("missing") or page.get("invalid"):
            raise FetchError(f"Page '{title}' does not exist")
        extract = page.get("extract")
        if not isinstance(extract, str) or not extract.strip():
            raise FetchError(f"Page '{title}' has no text content")
        return extract

    async def _get(self, params: dict[str, Any]) -> dict[str, Any]:
        resp = await self._client.get(self.api_url, params=params)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError("response was not a JSON object")
        return data


def _raise_api_error(data: dict[str, Any], error_cls: type[Exception]) -> None:
    error = data.get("error")
    if not error:
        return
    if isinstance(error, dict):
        code = error.get("code", "unknown")
        info = error.get("info", "")
        raise error_cls(f"MediaWiki error {code}: {info}".rstrip(": "))
    raise error_cls(f"MediaWiki error: {error}")
