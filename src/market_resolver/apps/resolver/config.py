"""Typed configuration for the resolver service.

Build immutable dataclasses from a ``ConfigLoader`` so that every network
parameter (endpoints, timeouts, retry counts, budgets) is supplied from
YAML and the environment and passed explicitly into the engine. Nothing in
the engine reads configuration on its own.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from market_resolver.core.config import ConfigError, ConfigLoader
from market_resolver.core.models import FactKind

_MAX_BPS = 10_000
_MAX_SOURCES_PER_KIND = 2

SOURCE_COINGECKO = "coingecko"
SOURCE_BINANCE = "binance"
SOURCE_ETHERSCAN = "etherscan"
SOURCE_RPC = "rpc"
KNOWN_SOURCES = frozenset({SOURCE_COINGECKO, SOURCE_BINANCE, SOURCE_ETHERSCAN, SOURCE_RPC})

_DEFAULT_SOURCES: dict[FactKind, tuple[str, ...]] = {
    FactKind.BITCOIN_USD: (SOURCE_COINGECKO, SOURCE_BINANCE),
    FactKind.ETHEREUM_USD: (SOURCE_COINGECKO, SOURCE_BINANCE),
    FactKind.SOLANA_USD: (SOURCE_COINGECKO, SOURCE_BINANCE),
    FactKind.ETHEREUM_GAS_GWEI: (SOURCE_ETHERSCAN, SOURCE_RPC),
}


@dataclass(frozen=True)
class OracleConfig:
    """Immutable oracle settings.

    Attributes:
        sources: Ordered source names per fact kind, primary first.
        timeout_seconds: Timeout for a single source call.
        retries: Extra fetch attempts when both sources fail.
        retry_backoff_seconds: Fixed pause between those attempts.
        max_fact_age_seconds: Oldest observation the engine will use.
        coingecko_url: CoinGecko API base URL.
        binance_url: Binance API base URL.
        etherscan_url: Etherscan V2 API URL.
        etherscan_api_key: Etherscan API key (may be empty).
        gas_rpc_url: Ethereum JSON-RPC URL used for ``eth_gasPrice``.

    """

    sources: MappingProxyType[FactKind, tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType(dict(_DEFAULT_SOURCES)),
    )
    timeout_seconds: float = 10.0
    retries: int = 3
    retry_backoff_seconds: float = 3.0
    max_fact_age_seconds: float = 300.0
    coingecko_url: str = "https://api.coingecko.com/api/v3"
    binance_url: str = "https://api.binance.com"
    etherscan_url: str = "https://api.etherscan.io/v2/api"
    etherscan_api_key: str = ""
    gas_rpc_url: str = "https://ethereum-rpc.publicnode.com"


@dataclass(frozen=True)
class LedgerConfig:
    """Immutable ledger connection settings.

    Attributes:
        endpoints: JSON-RPC URLs, primary first. Duplicates are removed.
        contract_address: Ledger contract address.
        private_key: Resolver signing key; empty for read-only use.
        timeout_seconds: Timeout for a single read or send.
        receipt_timeout_seconds: How long to wait for a receipt.

    """

    endpoints: tuple[str, ...]
    contract_address: str
    private_key: str = ""
    timeout_seconds: float = 30.0
    receipt_timeout_seconds: float = 60.0


@dataclass(frozen=True)
class ReviewConfig:
    """Immutable settings for the manual review advisor."""

    tavily_url: str = "https://api.tavily.com"
    tavily_api_key: str = ""
    max_results: int = 5


@dataclass(frozen=True)
class ResolverConfig:
    """Immutable configuration for the whole resolver service.

    Attributes:
        ledger: Ledger connection settings.
        oracle: Oracle source settings.
        review: Manual review advisor settings.
        fee_bps: Protocol fee on winning payouts, in basis points.
        pass_budget_seconds: Wall-clock budget of one resolution pass.
        pass_interval_seconds: Pause between scheduled passes.
        read_delay_seconds: Pause between consecutive ledger reads.
        rate_limit_cooldown_seconds: Pause after any rate-limit signal.

    """

    ledger: LedgerConfig
    oracle: OracleConfig = field(default_factory=OracleConfig)
    review: ReviewConfig = field(default_factory=ReviewConfig)
    fee_bps: int = 250
    pass_budget_seconds: float = 300.0
    pass_interval_seconds: float = 600.0
    read_delay_seconds: float = 0.4
    rate_limit_cooldown_seconds: float = 5.0

    @classmethod
    def from_loader(cls, loader: ConfigLoader) -> "ResolverConfig":
        """Build and validate the configuration from a loader.

        Args:
            loader: Loaded YAML configuration.

        Returns:
            Validated resolver configuration.

        Raises:
            ConfigError: When a value is missing, malformed, or out of range.

        """
        ledger = loader.get_section("ledger")
        oracle = loader.get_section("oracle")
        review = loader.get_section("review")
        resolver = loader.get_section("resolver")

        fee_bps = _as_int(loader.get("settlement.fee_bps", 250), "settlement.fee_bps")
        if not 0 <= fee_bps <= _MAX_BPS:
            msg = f"settlement.fee_bps must be within [0, {_MAX_BPS}], got {fee_bps}"
            raise ConfigError(msg)

        return cls(
            ledger=_build_ledger(ledger),
            oracle=_build_oracle(oracle),
            review=ReviewConfig(
                tavily_url=str(review.get("tavily_url", ReviewConfig.tavily_url)),
                tavily_api_key=str(review.get("tavily_api_key") or ""),
                max_results=_as_int(review.get("max_results", 5), "review.max_results"),
            ),
            fee_bps=fee_bps,
            pass_budget_seconds=_as_float(
                resolver.get("pass_budget_seconds", 300), "resolver.pass_budget_seconds"
            ),
            pass_interval_seconds=_as_float(
                resolver.get("pass_interval_seconds", 600), "resolver.pass_interval_seconds"
            ),
            read_delay_seconds=_as_float(
                resolver.get("read_delay_seconds", 0.4), "resolver.read_delay_seconds"
            ),
            rate_limit_cooldown_seconds=_as_float(
                resolver.get("rate_limit_cooldown_seconds", 5),
                "resolver.rate_limit_cooldown_seconds",
            ),
        )


def _build_ledger(section: dict[str, Any]) -> LedgerConfig:
    """Build the ledger settings, de-duplicating endpoints in order."""
    raw_endpoints = section.get("endpoints") or []
    if not isinstance(raw_endpoints, list):
        msg = "ledger.endpoints must be a list"
        raise ConfigError(msg)
    endpoints = tuple(dict.fromkeys(str(e).strip() for e in raw_endpoints if str(e).strip()))
    if not endpoints:
        msg = "ledger.endpoints must name at least one endpoint"
        raise ConfigError(msg)
    contract_address = str(section.get("contract_address") or "")
    if not contract_address:
        msg = "ledger.contract_address is required"
        raise ConfigError(msg)
    return LedgerConfig(
        endpoints=endpoints,
        contract_address=contract_address,
        private_key=str(section.get("private_key") or ""),
        timeout_seconds=_as_float(section.get("timeout_seconds", 30), "ledger.timeout_seconds"),
        receipt_timeout_seconds=_as_float(
            section.get("receipt_timeout_seconds", 60), "ledger.receipt_timeout_seconds"
        ),
    )


def _build_oracle(section: dict[str, Any]) -> OracleConfig:
    """Build the oracle settings and validate the per-kind source lists."""
    defaults = OracleConfig()
    raw_sources = section.get("sources")
    sources = dict(_DEFAULT_SOURCES)
    if raw_sources is not None:
        if not isinstance(raw_sources, dict):
            msg = "oracle.sources must be a mapping of fact kind to source list"
            raise ConfigError(msg)
        sources = {
            _parse_kind(key): _parse_sources(key, value) for key, value in raw_sources.items()
        }
    return OracleConfig(
        sources=MappingProxyType(sources),
        timeout_seconds=_as_float(section.get("timeout_seconds", 10), "oracle.timeout_seconds"),
        retries=_as_int(section.get("retries", 3), "oracle.retries"),
        retry_backoff_seconds=_as_float(
            section.get("retry_backoff_seconds", 3), "oracle.retry_backoff_seconds"
        ),
        max_fact_age_seconds=_as_float(
            section.get("max_fact_age_seconds", 300), "oracle.max_fact_age_seconds"
        ),
        coingecko_url=str(section.get("coingecko_url") or defaults.coingecko_url),
        binance_url=str(section.get("binance_url") or defaults.binance_url),
        etherscan_url=str(section.get("etherscan_url") or defaults.etherscan_url),
        etherscan_api_key=str(section.get("etherscan_api_key") or ""),
        gas_rpc_url=str(section.get("gas_rpc_url") or defaults.gas_rpc_url),
    )


def _parse_kind(key: Any) -> FactKind:
    try:
        return FactKind(str(key))
    except ValueError as exc:
        msg = f"Unknown fact kind in oracle.sources: {key!r}"
        raise ConfigError(msg) from exc


def _parse_sources(key: Any, value: Any) -> tuple[str, ...]:
    if not isinstance(value, list) or not value:
        msg = f"oracle.sources.{key} must be a non-empty list"
        raise ConfigError(msg)
    names = tuple(str(v) for v in value)
    if len(names) > _MAX_SOURCES_PER_KIND:
        msg = f"oracle.sources.{key} allows a primary and one fallback, got {len(names)}"
        raise ConfigError(msg)
    unknown = [n for n in names if n not in KNOWN_SOURCES]
    if unknown:
        msg = f"Unknown source(s) in oracle.sources.{key}: {', '.join(unknown)}"
        raise ConfigError(msg)
    return names


def _as_float(value: Any, key: str) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        msg = f"{key} must be a number, got {value!r}"
        raise ConfigError(msg) from exc
    if result < 0:
        msg = f"{key} must be non-negative, got {result}"
        raise ConfigError(msg)
    return result


def _as_int(value: Any, key: str) -> int:
    try:
        result = int(value)
    except (TypeError, ValueError) as exc:
        msg = f"{key} must be an integer, got {value!r}"
        raise ConfigError(msg) from exc
    if result < 0:
        msg = f"{key} must be non-negative, got {result}"
        raise ConfigError(msg)
    return result
