"""CLI command for claiming winnings or a refund with the resolver account."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from market_resolver.apps.resolver.claims import ClaimService
from market_resolver.apps.resolver.cli._helpers import (
    build_ledger,
    configure_logging,
    format_eth,
    load_resolver_config,
)
from market_resolver.apps.resolver.config import ResolverConfig
from market_resolver.apps.resolver.exceptions import ClaimRejectedError
from market_resolver.apps.resolver.models import ClaimReceipt
from market_resolver.clients.ledger.exceptions import LedgerError


def claim(
    market_id: Annotated[int, typer.Option(help="Ledger market id")],
    no_confirm: Annotated[  # noqa: FBT002
        bool, typer.Option("--no-confirm", help="Skip confirmation prompt")
    ] = False,
    config_dir: Annotated[
        Path | None, typer.Option(help="Directory containing settings.yaml")
    ] = None,
) -> None:
    """Claim the signing account's payout or refund from a settled market."""
    configure_logging()
    config = load_resolver_config(config_dir)
    try:
        receipt = asyncio.run(_claim(config, market_id, confirm=not no_confirm))
    except ClaimRejectedError as exc:
        typer.echo(f"Claim rejected: {exc.reason.value}", err=True)
        raise typer.Exit(code=1) from exc
    except LedgerError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if receipt is None:
        typer.echo("Cancelled.")
        return
    typer.echo(
        f"Claimed {format_eth(receipt.settlement.net)} ETH "
        f"({receipt.settlement.kind.value}) tx: {receipt.tx_hash}"
    )


async def _claim(config: ResolverConfig, market_id: int, *, confirm: bool) -> ClaimReceipt | None:
    """Quote, optionally confirm, and submit the claim."""
    ledger = build_ledger(config, require_key=True)
    participant = str(ledger.address)
    service = ClaimService(ledger, config.fee_bps)

    quoted = await service.quote(market_id, participant)
    typer.echo(
        f"Market {market_id}: {quoted.kind.value} of {format_eth(quoted.net)} ETH "
        f"(fee {format_eth(quoted.fee)} ETH) to {participant}"
    )
    if confirm and not typer.confirm("Submit claim?"):
        return None
    return await service.claim(market_id, participant)
