"""Concrete fact sources backed by the HTTP and JSON-RPC clients.

Each source adapts one client to the ``FactSource`` protocol: it maps a
``FactKind`` onto the client's identifiers, converts the client's errors
into ``OracleError`` (or ``OracleRateLimitError`` when the upstream API
reports throttling), and rejects non-finite and non-positive values.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from decimal import Decimal

from web3 import Web3

from market_resolver.apps.resolver.config import (
    SOURCE_BINANCE,
    SOURCE_COINGECKO,
    SOURCE_ETHERSCAN,
    SOURCE_RPC,
    OracleConfig,
)
from market_resolver.apps.resolver.exceptions import OracleError, OracleRateLimitError
from market_resolver.clients.binance import BinanceAPIError, BinanceClient
from market_resolver.clients.coingecko import CoinGeckoAPIError, CoinGeckoClient
from market_resolver.clients.etherscan import EtherscanAPIError, EtherscanClient
from market_resolver.core.models import Fact, FactKind
from market_resolver.core.protocols import FactSource

logger = logging.getLogger(__name__)

_RPC_RATE_LIMIT_MARKERS = ("429", "rate limit", "too many requests")

_COINGECKO_IDS: dict[FactKind, str] = {
    FactKind.BITCOIN_USD: "bitcoin",
    FactKind.ETHEREUM_USD: "ethereum",
    FactKind.SOLANA_USD: "solana",
}

_BINANCE_SYMBOLS: dict[FactKind, str] = {
    FactKind.BITCOIN_USD: "BTCUSDT",
    FactKind.ETHEREUM_USD: "ETHUSDT",
    FactKind.SOLANA_USD: "SOLUSDT",
}


def _checked_fact(
    source: str,
    kind: FactKind,
    value: Decimal,
    observed_at: float,
) -> Fact:
    """Build a fact, rejecting non-finite, zero and negative observations."""
    if not value.is_finite():
        raise OracleError(source, f"non-finite {kind.value} value {value}")
    if value <= 0:
        raise OracleError(source, f"non-positive {kind.value} value {value}")
    return Fact(kind=kind, value=value, source=source, observed_at=observed_at)


def _unsupported(source: str, kind: FactKind) -> OracleError:
    return OracleError(source, f"does not provide {kind.value}")


class CoinGeckoSource:
    """USD spot prices from CoinGecko, timestamped by CoinGecko's last update."""

    def __init__(
        self,
        client: CoinGeckoClient,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the source.

        Args:
            client: CoinGecko HTTP client.
            clock: Fallback observation time when the payload has none.

        """
        self._client = client
        self._clock = clock

    @property
    def name(self) -> str:
        """Return the source name."""
        return SOURCE_COINGECKO

    def supports(self, kind: FactKind) -> bool:
        """Return whether ``kind`` is a priced asset."""
        return kind in _COINGECKO_IDS

    async def fetch(self, kind: FactKind) -> Fact:
        """Fetch the current USD price for ``kind``."""
        if not self.supports(kind):
            raise _unsupported(self.name, kind)
        try:
            price = await self._client.get_simple_price(_COINGECKO_IDS[kind])
        except CoinGeckoAPIError as exc:
            if exc.rate_limited:
                raise OracleRateLimitError(self.name, exc.msg) from exc
            raise OracleError(self.name, str(exc)) from exc
        observed_at = (
            float(price.last_updated_at) if price.last_updated_at is not None else self._clock()
        )
        return _checked_fact(self.name, kind, price.usd, observed_at)

    async def close(self) -> None:
        """Close the underlying client."""
        await self._client.close()


class BinanceSource:
    """Last traded USDT prices from Binance, observed at fetch time."""

    def __init__(
        self,
        client: BinanceClient,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the source.

        Args:
            client: Binance HTTP client.
            clock: Source of the observation time.

        """
        self._client = client
        self._clock = clock

    @property
    def name(self) -> str:
        """Return the source name."""
        return SOURCE_BINANCE

    def supports(self, kind: FactKind) -> bool:
        """Return whether ``kind`` has a Binance symbol."""
        return kind in _BINANCE_SYMBOLS

    async def fetch(self, kind: FactKind) -> Fact:
        """Fetch the last traded price for ``kind``."""
        if not self.supports(kind):
            raise _unsupported(self.name, kind)
        try:
            price = await self._client.get_ticker_price(_BINANCE_SYMBOLS[kind])
        except BinanceAPIError as exc:
            if BinanceClient.is_rate_limited(exc):
                raise OracleRateLimitError(self.name, exc.msg) from exc
            raise OracleError(self.name, str(exc)) from exc
        return _checked_fact(self.name, kind, price, self._clock())

    async def close(self) -> None:
        """Close the underlying client."""
        await self._client.close()


class EtherscanGasSource:
    """Proposed Ethereum mainnet gas price in gwei from Etherscan's gas oracle."""

    def __init__(
        self,
        client: EtherscanClient,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the source.

        Args:
            client: Etherscan HTTP client.
            clock: Source of the observation time.

        """
        self._client = client
        self._clock = clock

    @property
    def name(self) -> str:
        """Return the source name."""
        return SOURCE_ETHERSCAN

    def supports(self, kind: FactKind) -> bool:
        """Return whether ``kind`` is the gas price."""
        return kind is FactKind.ETHEREUM_GAS_GWEI

    async def fetch(self, kind: FactKind) -> Fact:
        """Fetch the proposed gas price."""
        if not self.supports(kind):
            raise _unsupported(self.name, kind)
        try:
            gwei = await self._client.get_proposed_gas_price()
        except EtherscanAPIError as exc:
            if exc.rate_limited:
                raise OracleRateLimitError(self.name, exc.msg) from exc
            raise OracleError(self.name, str(exc)) from exc
        return _checked_fact(self.name, kind, gwei, self._clock())

    async def close(self) -> None:
        """Close the underlying client."""
        await self._client.close()


class RpcGasSource:
    """Ethereum gas price from a JSON-RPC node's ``eth_gasPrice``, in gwei.

    ``web3`` is synchronous, so the call runs in a worker thread. The
    caller bounds it with its own timeout.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the source.

        Args:
            rpc_url: Ethereum mainnet JSON-RPC endpoint.
            timeout: HTTP timeout for the RPC request.
            clock: Source of the observation time.

        """
        self._w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        self._clock = clock

    @property
    def name(self) -> str:
        """Return the source name."""
        return SOURCE_RPC

    def supports(self, kind: FactKind) -> bool:
        """Return whether ``kind`` is the gas price."""
        return kind is FactKind.ETHEREUM_GAS_GWEI

    async def fetch(self, kind: FactKind) -> Fact:
        """Fetch the node's gas price and convert it from wei to gwei."""
        if not self.supports(kind):
            raise _unsupported(self.name, kind)
        try:
            wei = await asyncio.to_thread(lambda: self._w3.eth.gas_price)
        except Exception as exc:
            text = str(exc).lower()
            if any(marker in text for marker in _RPC_RATE_LIMIT_MARKERS):
                raise OracleRateLimitError(self.name, str(exc)) from exc
            raise OracleError(self.name, f"eth_gasPrice failed: {exc}") from exc
        gwei = Decimal(int(wei)) / Decimal(10**9)
        return _checked_fact(self.name, kind, gwei, self._clock())

    async def close(self) -> None:
        """Nothing to release; ``web3`` HTTP sessions are managed by the provider."""


def build_sources(config: OracleConfig) -> dict[str, FactSource]:
    """Instantiate every source named in the oracle configuration.

    Args:
        config: Oracle settings.

    Returns:
        Sources keyed by name, only for names the configuration uses.

    """
    names: Iterable[str] = {name for names in config.sources.values() for name in names}
    sources: dict[str, FactSource] = {}
    for name in sorted(names):
        if name == SOURCE_COINGECKO:
            sources[name] = CoinGeckoSource(
                CoinGeckoClient(config.coingecko_url, timeout=config.timeout_seconds)
            )
        elif name == SOURCE_BINANCE:
            sources[name] = BinanceSource(
                BinanceClient(config.binance_url, timeout=config.timeout_seconds)
            )
        elif name == SOURCE_ETHERSCAN:
            sources[name] = EtherscanGasSource(
                EtherscanClient(
                    config.etherscan_url,
                    api_key=config.etherscan_api_key,
                    timeout=config.timeout_seconds,
                )
            )
        elif name == SOURCE_RPC:
            sources[name] = RpcGasSource(config.gas_rpc_url, timeout=config.timeout_seconds)
    logger.debug("Configured fact sources: %s", ", ".join(sources))
    return sources
