"""Web search for rounds where the judge asks for more information (Tavily API)."""

import logging

import httpx

from ai_consensus.errors import ConsensusError
from ai_consensus.models import SearchResult

logger = logging.getLogger(__name__)

_TIMEOUT_SEC = 30.0


class SearchError(ConsensusError):
    """Raised when the search API call fails."""


class TavilySearchClient:
    """Tavily search over httpx. Pass ``client`` to reuse a connection pool (or in tests)."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.tavily.com",
        max_results: int = 5,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._max_results = max_results
        self._client = client

    async def search(self, query: str) -> list[SearchResult]:
        payload = {
            "query": query,
            "max_results": self._max_results,
            "search_depth": "basic",
            "include_answer": False,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            if self._client is not None:
                resp = await self._client.post(f"{self._base_url}/search", json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=_TIMEOUT_SEC) as client:
                    resp = await client.post(f"{self._base_url}/search", json=payload, headers=headers)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise SearchError(f"Search API error ({exc.response.status_code}): {exc.response.text[:200]}") from exc
        except httpx.HTTPError as exc:
            raise SearchError(f"Search request failed: {exc}") from exc
        except ValueError as exc:
            raise SearchError(f"Search API returned invalid JSON: {exc}") from exc

        try:
            results = [
                SearchResult(
                    title=str(item.get("title", "")),
                    url=str(item.get("url", "")),
                    content=str(item.get("content", "")),
                    score=float(item.get("score", 0.0) or 0.0),
                )
                for item in data.get("results", [])
            ]
        except (AttributeError, TypeError, ValueError) as exc:
            raise SearchError(f"Search API returned malformed results: {exc}") from exc
        logger.info("Search '%s': %d results", query, len(results))
        return results
