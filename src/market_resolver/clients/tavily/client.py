"""Async HTTP client for the Tavily search API."""

from typing import Any

import httpx

from market_resolver.clients.tavily.exceptions import TavilyAPIError
from market_resolver.clients.tavily.models import SearchAnswer, SearchResult

_HTTP_BAD_REQUEST = 400


class TavilyClient:
    """Async client for Tavily's answer-generating web search.

    Args:
        api_key: Tavily API key.
        base_url: Base URL for the Tavily API.
        timeout: Request timeout in seconds.

    """

    BASE_URL = "https://api.tavily.com"

    def __init__(
        self,
        api_key: str,
        base_url: str = BASE_URL,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the Tavily client.

        Args:
            api_key: Tavily API key.
            base_url: Base URL for the Tavily API.
            timeout: Request timeout in seconds.

        """
        self.base_url = base_url.rstrip("/")
        self._http_client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    async def search(self, query: str, *, max_results: int = 5) -> SearchAnswer:
        """Run an advanced search and return the generated answer.

        Args:
            query: Natural-language search query.
            max_results: Maximum number of sources to return.

        Returns:
            Typed answer with its sources.

        Raises:
            TavilyAPIError: When the request fails or the API returns an error.

        """
        body = {
            "query": query,
            "search_depth": "advanced",
            "include_answer": True,
            "include_raw_content": False,
            "max_results": max_results,
        }
        try:
            response = await self._http_client.post(f"{self.base_url}/search", json=body)
        except httpx.HTTPError as exc:
            raise TavilyAPIError(msg=f"HTTP request failed: {exc}", status_code=0) from exc

        if response.status_code >= _HTTP_BAD_REQUEST:
            self._handle_error(response)

        try:
            data: Any = response.json()
        except ValueError as exc:
            raise TavilyAPIError(
                msg="Response body is not JSON", status_code=response.status_code
            ) from exc
        if not isinstance(data, dict):
            msg = f"Malformed search payload: {type(data).__name__}"
            raise TavilyAPIError(msg=msg, status_code=response.status_code)

        results = tuple(
            SearchResult(title=str(r.get("title", "")), url=str(r.get("url", "")))
            for r in data.get("results") or []
            if isinstance(r, dict)
        )
        return SearchAnswer(query=query, answer=str(data.get("answer") or ""), results=results)

    @staticmethod
    def _handle_error(response: httpx.Response) -> None:
        """Raise a TavilyAPIError from an error response.

        Args:
            response: HTTP response with a non-2xx status code.

        Raises:
            TavilyAPIError: Always raised with status code and message.

        """
        try:
            data = response.json()
            detail = data.get("detail", f"HTTP {response.status_code}")
            msg = detail.get("error", str(detail)) if isinstance(detail, dict) else str(detail)
        except Exception:
            msg = f"HTTP {response.status_code}"
        raise TavilyAPIError(msg=msg, status_code=response.status_code)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http_client.aclose()

    async def __aenter__(self) -> "TavilyClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()
