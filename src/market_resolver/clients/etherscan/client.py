"""Async HTTP client for the Etherscan gas tracker.

Query the ``gastracker``/``gasoracle`` action of the Etherscan V2 API. The
oracle reports Ethereum mainnet gas prices in gwei as decimal strings
(``SafeGasPrice``, ``ProposeGasPrice``, ``FastGasPrice``).
"""

from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from market_resolver.clients.etherscan.exceptions import EtherscanAPIError

_HTTP_BAD_REQUEST = 400
_HTTP_TOO_MANY_REQUESTS = 429
_ETHEREUM_MAINNET_CHAIN_ID = 1
_RATE_LIMIT_MARKERS = ("rate limit", "max calls per sec")


class EtherscanClient:
    """Async HTTP client for Etherscan gas price data.

    Args:
        base_url: Base URL for the Etherscan V2 API.
        api_key: Etherscan API key; the unauthenticated tier is heavily
            throttled.
        chain_id: EVM chain to query.
        timeout: Request timeout in seconds.

    """

    BASE_URL = "https://api.etherscan.io/v2/api"

    def __init__(
        self,
        base_url: str = BASE_URL,
        api_key: str = "",
        chain_id: int = _ETHEREUM_MAINNET_CHAIN_ID,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the Etherscan client.

        Args:
            base_url: Base URL for the Etherscan V2 API.
            api_key: Etherscan API key.
            chain_id: EVM chain to query.
            timeout: Request timeout in seconds.

        """
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._chain_id = chain_id
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def get_proposed_gas_price(self) -> Decimal:
        """Fetch the gas oracle's proposed gas price.

        Returns:
            Proposed gas price in gwei.

        Raises:
            EtherscanAPIError: When the request fails, is throttled, or the
                payload has no usable ``ProposeGasPrice``.

        """
        result = await self._call(module="gastracker", action="gasoracle")
        raw = result.get("ProposeGasPrice") if isinstance(result, dict) else None
        if raw is None:
            raise EtherscanAPIError(msg=f"No ProposeGasPrice in result: {result!r}", status_code=0)
        try:
            return Decimal(str(raw))
        except InvalidOperation as exc:
            raise EtherscanAPIError(
                msg=f"Malformed ProposeGasPrice: {raw!r}",
                status_code=0,
            ) from exc

    async def _call(self, *, module: str, action: str) -> Any:
        """Call one module/action pair and return the ``result`` field.

        Args:
            module: Etherscan module name.
            action: Action within the module.

        Returns:
            The ``result`` member of a successful response.

        Raises:
            EtherscanAPIError: On transport errors, error statuses, or a
                ``"status": "0"`` payload.

        """
        params: dict[str, Any] = {
            "chainid": self._chain_id,
            "module": module,
            "action": action,
        }
        if self._api_key:
            params["apikey"] = self._api_key

        try:
            response = await self._http_client.request("GET", self.base_url, params=params)
        except httpx.HTTPError as exc:
            raise EtherscanAPIError(msg=f"HTTP request failed: {exc}", status_code=0) from exc

        if response.status_code >= _HTTP_BAD_REQUEST:
            raise EtherscanAPIError(
                msg=f"HTTP {response.status_code}",
                status_code=response.status_code,
                rate_limited=response.status_code == _HTTP_TOO_MANY_REQUESTS,
            )

        try:
            data: Any = response.json()
        except ValueError as exc:
            raise EtherscanAPIError(msg="Response body is not JSON", status_code=0) from exc

        if not isinstance(data, dict):
            raise EtherscanAPIError(msg=f"Unexpected payload: {data!r}", status_code=0)
        if str(data.get("status")) != "1":
            reason = str(data.get("result") or data.get("message") or "unknown error")
            raise EtherscanAPIError(
                msg=reason,
                status_code=response.status_code,
                rate_limited=any(marker in reason.lower() for marker in _RATE_LIMIT_MARKERS),
            )
        return data.get("result")

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http_client.aclose()

    async def __aenter__(self) -> "EtherscanClient":
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        await self.close()
