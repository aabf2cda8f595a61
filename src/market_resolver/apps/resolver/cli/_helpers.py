"""Shared helpers for resolver CLI commands.

Centralise logging setup, configuration loading, and construction of the
ledger client and the fully wired coordinator so that every command builds
the engine the same way. Operator decisions from several commands share one
commit helper.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import Decimal
from pathlib import Path

import typer

from market_resolver.apps.resolver.config import ResolverConfig
from market_resolver.apps.resolver.coordinator import ResolutionCoordinator
from market_resolver.apps.resolver.decision import DecisionEngine
from market_resolver.apps.resolver.models import MarketOutcome, OutcomeStatus
from market_resolver.apps.resolver.oracle import FactOracle
from market_resolver.apps.resolver.sources import build_sources
from market_resolver.apps.resolver.throttle import RateLimitCooldown
from market_resolver.clients.ledger import LedgerClient, LedgerError
from market_resolver.core.config import ConfigError, ConfigLoader, get_config
from market_resolver.core.models import Side

_WEI_PER_ETH = Decimal(10**18)


def configure_logging(*, verbose: bool = False) -> None:
    """Enable INFO-level logging, or DEBUG with ``--verbose``."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def load_resolver_config(config_dir: Path | None = None) -> ResolverConfig:
    """Load and validate the resolver configuration, aborting on errors.

    Args:
        config_dir: Directory holding ``settings.yaml``; the packaged
            defaults are used when ``None``.

    Returns:
        Validated configuration.

    """
    try:
        loader = ConfigLoader(config_dir) if config_dir is not None else get_config()
        return ResolverConfig.from_loader(loader)
    except ConfigError as exc:
        typer.echo(f"Error: invalid configuration: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def build_ledger(
    config: ResolverConfig,
    *,
    cooldown: RateLimitCooldown | None = None,
    require_key: bool = False,
) -> LedgerClient:
    """Build a ledger client from configuration.

    Args:
        config: Resolver configuration.
        cooldown: Cooldown tripped when an endpoint rate-limits.
        require_key: Abort when no signing key is configured.

    Returns:
        Ledger client, read-only when no key is configured.

    """
    ledger = config.ledger
    if require_key and not ledger.private_key:
        typer.echo("Error: RESOLVER_PRIVATE_KEY environment variable is required.", err=True)
        raise typer.Exit(code=1)
    return LedgerClient(
        ledger.endpoints,
        ledger.contract_address,
        private_key=ledger.private_key or None,
        timeout=ledger.timeout_seconds,
        receipt_timeout=ledger.receipt_timeout_seconds,
        read_delay=config.read_delay_seconds,
        on_rate_limit=cooldown.trip if cooldown is not None else None,
    )


@asynccontextmanager
async def resolver_runtime(config: ResolverConfig) -> AsyncIterator[ResolutionCoordinator]:
    """Wire the oracle, decision engine, ledger, and coordinator together.

    The fact sources' HTTP clients are closed on exit.

    Args:
        config: Resolver configuration.

    Yields:
        A coordinator ready to run passes or guarded commits.

    """
    cooldown = RateLimitCooldown(config.rate_limit_cooldown_seconds)
    sources = build_sources(config.oracle)
    try:
        try:
            oracle = FactOracle.from_config(config.oracle, sources, cooldown)
        except ConfigError as exc:
            typer.echo(f"Error: invalid oracle configuration: {exc}", err=True)
            raise typer.Exit(code=1) from exc
        engine = DecisionEngine(
            oracle,
            retries=config.oracle.retries,
            retry_backoff=config.oracle.retry_backoff_seconds,
        )
        ledger = build_ledger(config, cooldown=cooldown, require_key=True)
        yield ResolutionCoordinator(
            ledger,
            engine,
            cooldown=cooldown,
            pass_budget=config.pass_budget_seconds,
            read_delay=config.read_delay_seconds,
        )
    finally:
        for source in sources.values():
            close = getattr(source, "close", None)
            if close is not None:
                await close()


def parse_side(value: str) -> Side:
    """Parse ``yes``/``no`` (any case) into a ``Side``, aborting otherwise."""
    try:
        return Side(value.strip().upper())
    except ValueError:
        typer.echo(f"Error: side must be 'yes' or 'no', got '{value}'.", err=True)
        raise typer.Exit(code=1) from None


def format_eth(wei: int) -> str:
    """Format a wei amount as ETH with six decimals."""
    return f"{Decimal(wei) / _WEI_PER_ETH:.6f}"


def commit_decision(
    config: ResolverConfig,
    market_id: int,
    side: Side | None,
    reason: str,
) -> MarketOutcome:
    """Commit an operator decision through the guarded commit.

    Args:
        config: Resolver configuration.
        market_id: Market to settle.
        side: Winning side, or ``None`` to cancel the market.
        reason: Explanation recorded on the outcome.

    Returns:
        The commit outcome.

    """
    try:
        return asyncio.run(_commit_decision(config, market_id, side, reason))
    except LedgerError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


async def _commit_decision(
    config: ResolverConfig,
    market_id: int,
    side: Side | None,
    reason: str,
) -> MarketOutcome:
    async with resolver_runtime(config) as coordinator:
        if side is None:
            return await coordinator.cancel_manually(market_id, reason=reason)
        return await coordinator.resolve_manually(market_id, side, reason=reason)


def report_outcome(outcome: MarketOutcome) -> None:
    """Print a commit outcome, exiting non-zero when it failed."""
    if outcome.status is OutcomeStatus.FAILED:
        typer.echo(f"Error: market {outcome.market_id}: {outcome.reason}", err=True)
        raise typer.Exit(code=1)
    if outcome.status is OutcomeStatus.SKIPPED:
        typer.echo(f"Market {outcome.market_id} skipped: {outcome.reason}")
        return
    typer.echo(f"Market {outcome.market_id} {outcome.status.value} (tx: {outcome.tx_hash})")
