"""Tests for Binance HTTP client."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from market_resolver.clients.binance.client import BinanceClient
from market_resolver.clients.binance.exceptions import BinanceAPIError

_BINANCE_ERROR_CODE = -1121
_HTTP_TOO_MANY_REQUESTS = 429
_HTTP_IP_BANNED = 418


def _response(status_code: int, payload: object) -> MagicMock:
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.json.return_value = payload
    return mock_response


class TestBinanceClient:
    """Test suite for Binance HTTP client."""

    @pytest.fixture
    def client(self) -> BinanceClient:
        """Create a BinanceClient instance."""
        return BinanceClient(base_url="https://api.binance.com")

    def test_client_initialization(self) -> None:
        """Test client can be initialized with defaults."""
        client = BinanceClient()
        assert client.base_url == "https://api.binance.com"

    def test_trailing_slash_stripped(self) -> None:
        """Test trailing slash is stripped from base URL."""
        client = BinanceClient(base_url="https://api.binance.com/")
        assert client.base_url == "https://api.binance.com"

    @pytest.mark.asyncio
    async def test_get_prepends_slash(self, client: BinanceClient) -> None:
        """Test that a missing leading slash is added to the path."""
        with patch.object(
            client._http_client, "request", new=AsyncMock(return_value=_response(200, {}))
        ) as mock_request:
            await client.get("api/v3/ticker/price")
            called_url = mock_request.call_args[0][1]
            assert called_url == "https://api.binance.com/api/v3/ticker/price"

    @pytest.mark.asyncio
    async def test_get_ticker_price(self, client: BinanceClient) -> None:
        """Parse the last traded price as a Decimal."""
        payload = {"symbol": "BTCUSDT", "price": "95123.45000000"}
        with patch.object(
            client._http_client, "request", new=AsyncMock(return_value=_response(200, payload))
        ) as mock_request:
            price = await client.get_ticker_price("BTCUSDT")

        assert price == Decimal("95123.45")
        assert mock_request.call_args[1]["params"] == {"symbol": "BTCUSDT"}

    @pytest.mark.asyncio
    async def test_malformed_ticker_payload(self, client: BinanceClient) -> None:
        """Raise BinanceAPIError when the payload has no price."""
        with (
            patch.object(
                client._http_client,
                "request",
                new=AsyncMock(return_value=_response(200, {"symbol": "BTCUSDT"})),
            ),
            pytest.raises(BinanceAPIError, match="Malformed ticker payload"),
        ):
            await client.get_ticker_price("BTCUSDT")

    @pytest.mark.asyncio
    async def test_error_response_raises_api_error(self, client: BinanceClient) -> None:
        """Test that a Binance error response raises BinanceAPIError."""
        payload = {"code": _BINANCE_ERROR_CODE, "msg": "Invalid symbol."}
        with (
            patch.object(
                client._http_client, "request", new=AsyncMock(return_value=_response(400, payload))
            ),
            pytest.raises(BinanceAPIError, match="Invalid symbol") as exc_info,
        ):
            await client.get_ticker_price("BAD")

        assert exc_info.value.code == _BINANCE_ERROR_CODE
        assert not BinanceClient.is_rate_limited(exc_info.value)

    @pytest.mark.asyncio
    async def test_error_response_without_json(self, client: BinanceClient) -> None:
        """Fall back to the HTTP status when the error body is not JSON."""
        mock_response = MagicMock()
        mock_response.status_code = 500
        mock_response.json.side_effect = ValueError("not json")

        with (
            patch.object(client._http_client, "request", new=AsyncMock(return_value=mock_response)),
            pytest.raises(BinanceAPIError, match="HTTP 500"),
        ):
            await client.get_ticker_price("BTCUSDT")

    @pytest.mark.asyncio
    async def test_success_response_without_json(self, client: BinanceClient) -> None:
        """Raise BinanceAPIError when a 200 body is not JSON."""
        response = httpx.Response(200, text="<html>blocked</html>")

        with (
            patch.object(client._http_client, "request", new=AsyncMock(return_value=response)),
            pytest.raises(BinanceAPIError, match="not JSON") as exc_info,
        ):
            await client.get_ticker_price("BTCUSDT")

        assert not BinanceClient.is_rate_limited(exc_info.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [_HTTP_TOO_MANY_REQUESTS, _HTTP_IP_BANNED])
    async def test_rate_limit_keeps_http_status(self, client: BinanceClient, status: int) -> None:
        """Report throttling with the HTTP status as the error code."""
        payload = {"code": -1003, "msg": "Too much request weight used."}
        with (
            patch.object(
                client._http_client,
                "request",
                new=AsyncMock(return_value=_response(status, payload)),
            ),
            pytest.raises(BinanceAPIError) as exc_info,
        ):
            await client.get_ticker_price("BTCUSDT")

        assert exc_info.value.code == status
        assert BinanceClient.is_rate_limited(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self, client: BinanceClient) -> None:
        """Wrap httpx transport failures in BinanceAPIError."""
        with (
            patch.object(
                client._http_client,
                "request",
                new=AsyncMock(side_effect=httpx.ConnectError("refused")),
            ),
            pytest.raises(BinanceAPIError, match="HTTP request failed") as exc_info,
        ):
            await client.get_ticker_price("BTCUSDT")

        assert exc_info.value.code == 0

    @pytest.mark.asyncio
    async def test_context_manager_closes_client(self) -> None:
        """Close the HTTP client when leaving the context."""
        client = BinanceClient()
        with patch.object(client._http_client, "aclose", new=AsyncMock()) as mock_close:
            async with client:
                pass
        mock_close.assert_awaited_once()
