"""CLI command for listing open markets and how they would be resolved.

Show every market that is neither resolved nor cancelled, its lifecycle
status, pool sizes, expiry, and the rule the interpreter derives from its
question. Read-only: no signing key is needed.
"""

import asyncio
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated

import typer

from market_resolver.apps.resolver.cli._helpers import (
    build_ledger,
    format_eth,
    load_resolver_config,
)
from market_resolver.apps.resolver.config import ResolverConfig
from market_resolver.apps.resolver.interpreter import interpret
from market_resolver.clients.ledger.exceptions import LedgerError
from market_resolver.core.models import Market

_MAX_QUESTION_LEN = 48


def markets(
    config_dir: Annotated[
        Path | None, typer.Option(help="Directory containing settings.yaml")
    ] = None,
) -> None:
    """List open markets with their status and resolution rule."""
    config = load_resolver_config(config_dir)
    try:
        rows = asyncio.run(_markets(config))
    except LedgerError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if not rows:
        typer.echo("No open markets")
        return

    typer.echo(
        f"\n{'ID':>4} {'Question':<50} {'Status':<8} {'YES':>10} {'NO':>10} "
        f"{'Ends (UTC)':<16} Rule"
    )
    typer.echo("-" * 130)
    for market in rows:
        question = (
            market.question[:_MAX_QUESTION_LEN] + ".."
            if len(market.question) > _MAX_QUESTION_LEN
            else market.question
        )
        ends = datetime.fromtimestamp(market.end_time, tz=UTC).strftime("%Y-%m-%d %H:%M")
        typer.echo(
            f"{market.market_id:>4} {question:<50} {market.status.value:<8} "
            f"{format_eth(market.yes_pool):>10} {format_eth(market.no_pool):>10} "
            f"{ends:<16} {interpret(market.question).describe()}"
        )


async def _markets(config: ResolverConfig) -> list[Market]:
    """Read every open market."""
    ledger = build_ledger(config)
    return [await ledger.read_market(market_id) for market_id in await ledger.list_open_markets()]
