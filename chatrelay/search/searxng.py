from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from chatrelay.config.models import SearchConfig
from chatrelay.utils.errors import TransportError, UpstreamError
from chatrelay.utils.logging import get_logger

from .base import BaseSearchProvider, SearchResult

logger = get_logger(__name__)

UA = "ChatRelay/1.0"


class SearXNGSearch(BaseSearchProvider):
    """Web search through a SearXNG instance's JSON API"""

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_config(
        cls, config: SearchConfig, client: Optional[httpx.AsyncClient] = None
    ) -> "SearXNGSearch":
        return cls(config.base_url, timeout=config.timeout, client=client)

    async def _get(self, url: str, params: Dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, params=params)
        async with httpx.AsyncClient(timeout=self.timeout, headers={"User-Agent": UA}) as client:
            return await client.get(url, params=params)

    async def search(self, query: str, limit: int = 5) -> List[SearchResult]:
        url = f"{self.base_url}/search"
        params = {"q": query, "format": "json", "pageno": 1}
        logger.debug(f"Searching {url} for {query!r}")

        try:
            response = await self._get(url, params)
        except httpx.TimeoutException as e:
            raise TransportError(f"Search request timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransportError(
                f"Search backend unreachable: {e}", hint=f"Is SearXNG running at {self.base_url}?"
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Search request failed: {e}") from e

        if not response.is_success:
            raise UpstreamError(
                f"SearXNG API error: {response.status_code}",
                status_code=response.status_code,
                hint="Make sure the json format is enabled in the SearXNG settings"
                if response.status_code == 403
                else None,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(f"SearXNG returned invalid JSON: {e}") from e

        items = data.get("results") if isinstance(data, dict) else None
        if not isinstance(items, list):
            logger.warning("No results array in search response")
            return []

        results: List[SearchResult] = []
        for item in items:
            if len(results) >= limit:
                break
            if not isinstance(item, dict):
                continue
            try:
                result = SearchResult(
                    title=item.get("title") or "",
                    url=item.get("url") or "",
                    snippet=item.get("content") or item.get("description") or "",
                    source_engine=item.get("engine"),
                )
            except ValidationError as e:
                logger.warning(f"Skipping malformed search result: {e}")
                continue
            results.append(result)

        logger.info(f"Found {len(results)} search results for {query!r}")
        return results
