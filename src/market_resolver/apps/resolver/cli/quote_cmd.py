"""CLI command for previewing what a participant can claim."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from market_resolver.apps.resolver.claims import ClaimService
from market_resolver.apps.resolver.cli._helpers import (
    build_ledger,
    format_eth,
    load_resolver_config,
)
from market_resolver.apps.resolver.config import ResolverConfig
from market_resolver.apps.resolver.exceptions import ClaimRejectedError
from market_resolver.apps.resolver.models import SettlementResult
from market_resolver.clients.ledger.exceptions import LedgerError


def quote(
    market_id: Annotated[int, typer.Option(help="Ledger market id")],
    participant: Annotated[str, typer.Option(help="Participant address")],
    config_dir: Annotated[
        Path | None, typer.Option(help="Directory containing settings.yaml")
    ] = None,
) -> None:
    """Show the payout or refund a participant would receive."""
    config = load_resolver_config(config_dir)
    try:
        result = asyncio.run(_quote(config, market_id, participant))
    except ClaimRejectedError as exc:
        typer.echo(f"Nothing to claim: {exc.reason.value}", err=True)
        raise typer.Exit(code=1) from exc
    except LedgerError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(f"Market {market_id} {result.kind.value} for {participant}")
    typer.echo(f"  Gross: {format_eth(result.gross)} ETH ({result.gross} wei)")
    typer.echo(f"  Fee:   {format_eth(result.fee)} ETH ({result.fee} wei)")
    typer.echo(f"  Net:   {format_eth(result.net)} ETH ({result.net} wei)")


async def _quote(config: ResolverConfig, market_id: int, participant: str) -> SettlementResult:
    """Price the claim from fresh ledger reads."""
    service = ClaimService(build_ledger(config), config.fee_bps)
    return await service.quote(market_id, participant)
