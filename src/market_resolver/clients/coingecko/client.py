"""Async HTTP client for the CoinGecko public price API.

Follow the ``BinanceClient`` pattern: async context manager with structured
error handling. CoinGecko's free tier answers throttled requests either with
HTTP 429 or with a 200 body of the form
``{"status": {"error_code": 429, "error_message": "..."}}``; both are raised
as ``CoinGeckoAPIError`` with status code 429.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from market_resolver.clients.coingecko.exceptions import CoinGeckoAPIError
from market_resolver.clients.coingecko.models import SimplePrice

_HTTP_BAD_REQUEST = 400


class CoinGeckoClient:
    """Async HTTP client for CoinGecko spot prices.

    Args:
        base_url: Base URL for the CoinGecko API.
        timeout: Request timeout in seconds.

    """

    BASE_URL = "https://api.coingecko.com/api/v3"

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the CoinGecko client.

        Args:
            base_url: Base URL for the CoinGecko API.
            timeout: Request timeout in seconds.

        """
        self.base_url = base_url.rstrip("/")
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def get_simple_price(self, coin_id: str) -> SimplePrice:
        """Fetch the USD spot price of one coin.

        Args:
            coin_id: CoinGecko coin identifier (e.g. ``bitcoin``).

        Returns:
            Typed spot price with CoinGecko's last-update timestamp.

        Raises:
            CoinGeckoAPIError: When the request fails, is throttled, or the
                payload lacks a price for ``coin_id``.

        """
        data = await self._get(
            "/simple/price",
            params={
                "ids": coin_id,
                "vs_currencies": "usd",
                "include_last_updated_at": "true",
            },
        )
        entry: Any = data.get(coin_id) if isinstance(data, dict) else None
        if not isinstance(entry, dict) or "usd" not in entry:
            raise CoinGeckoAPIError(
                msg=f"No USD price for {coin_id} in payload",
                status_code=0,
            )
        try:
            usd = Decimal(str(entry["usd"]))
        except InvalidOperation as exc:
            raise CoinGeckoAPIError(
                msg=f"Malformed USD price for {coin_id}: {entry['usd']!r}",
                status_code=0,
            ) from exc
        updated = entry.get("last_updated_at")
        return SimplePrice(
            coin_id=coin_id,
            usd=usd,
            last_updated_at=int(updated) if isinstance(updated, int | float) else None,
        )

    async def _get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send a GET request and return parsed JSON.

        Args:
            path: Request path relative to base_url.
            params: Query parameters.

        Returns:
            Parsed JSON response.

        Raises:
            CoinGeckoAPIError: When the API returns an error response or a
                throttling status in the body.

        """
        url = f"{self.base_url}{path}"
        try:
            response = await self._http_client.request("GET", url, params=params)
        except httpx.HTTPError as exc:
            raise CoinGeckoAPIError(
                msg=f"HTTP request failed: {exc}",
                status_code=0,
            ) from exc

        if response.status_code >= _HTTP_BAD_REQUEST:
            self._handle_error(response)

        try:
            result: Any = response.json()
        except ValueError as exc:
            raise CoinGeckoAPIError(msg="Response body is not JSON", status_code=0) from exc

        status = result.get("status") if isinstance(result, dict) else None
        if isinstance(status, dict) and status.get("error_code"):
            raise CoinGeckoAPIError(
                msg=str(status.get("error_message", "error status in payload")),
                status_code=int(status["error_code"]),
            )
        return result

    @staticmethod
    def _handle_error(response: httpx.Response) -> None:
        """Raise a CoinGeckoAPIError from an error response.

        Args:
            response: HTTP response with a non-2xx status code.

        Raises:
            CoinGeckoAPIError: Always raised with status code and message.

        """
        try:
            data = response.json()
            msg: str = data.get("error", f"HTTP {response.status_code}")
        except Exception:
            msg = f"HTTP {response.status_code}"
        raise CoinGeckoAPIError(msg=msg, status_code=response.status_code)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http_client.aclose()

    async def __aenter__(self) -> "CoinGeckoClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()
