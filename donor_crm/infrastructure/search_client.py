"""Web Search Client — Google Custom Search JSON API over httpx.

Invariants:
    - Returns a list of {title, link, snippet} dicts; never the raw API payload
    - Non-2xx, transport failures and non-JSON bodies raise ExternalServiceError
      (caller decides to degrade)
    - Missing credentials raise before any network call

Design Decisions:
    - httpx.AsyncClient injected: tests pass an httpx.MockTransport-backed client
"""

import logging

import httpx

from donor_crm.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)

GOOGLE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"


class WebSearchClient:
    """Thin wrapper over the Google Custom Search API."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        engine_id: str,
        results_per_query: int = 6,
    ):
        self._http = http
        self._api_key = api_key
        self._engine_id = engine_id
        self._num = results_per_query

    async def search(self, query: str) -> list[dict]:
        if not self._api_key or not self._engine_id:
            raise ExternalServiceError("search", "Google search credentials not configured")
        params = {
            "key": self._api_key,
            "cx": self._engine_id,
            "q": query,
            "num": self._num,
        }
        try:
            response = await self._http.get(GOOGLE_SEARCH_URL, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                "search", f"HTTP {e.response.status_code} for query '{query}'",
            )
        except httpx.HTTPError as e:
            raise ExternalServiceError("search", str(e))

        try:
            payload = response.json()
        except ValueError as e:
            raise ExternalServiceError("search", f"Invalid JSON response for query '{query}': {e}")
        items = payload.get("items", []) if isinstance(payload, dict) else []
        logger.info(f"Search returned {len(items)} results for '{query}'")
        return [
            {
                "title": item.get("title", ""),
                "link": item.get("link", ""),
                "snippet": item.get("snippet", ""),
            }
            for item in items
            if item.get("link")
        ]
