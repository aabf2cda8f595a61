"""HTTP client for the Binance public API."""

from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from market_resolver.clients.binance.exceptions import BinanceAPIError

_HTTP_BAD_REQUEST = 400
_HTTP_TOO_MANY_REQUESTS = 429
_HTTP_IP_BANNED = 418


class BinanceClient:
    """HTTP client for Binance public market-data endpoints.

    No authentication is required for public endpoints such as
    ``/api/v3/ticker/price``.
    """

    BASE_URL = "https://api.binance.com"

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the Binance client.

        Args:
            base_url: Base URL for the Binance API.
            timeout: Request timeout in seconds.

        """
        self.base_url = base_url.rstrip("/")
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Send a GET request and return parsed JSON.

        Args:
            path: Request path relative to base_url.
            params: Query parameters.

        Returns:
            Parsed JSON response (list or dict).

        Raises:
            BinanceAPIError: When the request fails or the API returns an error response.

        """
        if not path.startswith("/"):
            path = f"/{path}"

        url = f"{self.base_url}{path}"
        try:
            response = await self._http_client.request("GET", url, params=params)
        except httpx.HTTPError as exc:
            raise BinanceAPIError(code=0, msg=f"HTTP request failed: {exc}") from exc

        if response.status_code >= _HTTP_BAD_REQUEST:
            self._handle_error(response)

        try:
            result: Any = response.json()
        except ValueError as exc:
            raise BinanceAPIError(code=0, msg="Response body is not JSON") from exc
        return result

    async def get_ticker_price(self, symbol: str) -> Decimal:
        """Fetch the latest traded price for a symbol.

        Args:
            symbol: Binance symbol (e.g. ``BTCUSDT``).

        Returns:
            Last price as a ``Decimal``.

        Raises:
            BinanceAPIError: When the request fails or the payload has no usable price.

        """
        data = await self.get("/api/v3/ticker/price", params={"symbol": symbol})
        try:
            return Decimal(str(data["price"]))
        except (KeyError, TypeError, InvalidOperation) as exc:
            raise BinanceAPIError(code=0, msg=f"Malformed ticker payload: {data!r}") from exc

    @staticmethod
    def is_rate_limited(error: BinanceAPIError) -> bool:
        """Return whether an error signals request-weight throttling."""
        return error.code in (_HTTP_TOO_MANY_REQUESTS, _HTTP_IP_BANNED)

    @staticmethod
    def _handle_error(response: httpx.Response) -> None:
        """Raise a BinanceAPIError from an error response.

        Rate-limit statuses (429, 418) keep the HTTP status as the code so
        callers can tell throttling apart from bad requests.

        Args:
            response: HTTP response with a non-2xx status code.

        Raises:
            BinanceAPIError: Always raised with code and message from the response.

        """
        try:
            data = response.json()
            code: int = data.get("code", response.status_code)
            msg: str = data.get("msg", f"HTTP {response.status_code}")
        except Exception:
            code = response.status_code
            msg = f"HTTP {response.status_code}"
        if response.status_code in (_HTTP_TOO_MANY_REQUESTS, _HTTP_IP_BANNED):
            code = response.status_code
        raise BinanceAPIError(code=code, msg=msg)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http_client.aclose()

    async def __aenter__(self) -> "BinanceClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()
