"""CLI commands for administrative resolution and cancellation.

Provide ``resolve`` and ``cancel`` for markets the automatic pass cannot
settle. Both go through the coordinator's guarded commit: the market is
re-read first and nothing is sent unless it is still ``ended``. Resolving
to a side nobody staked cancels the market instead. Both commands ask for
confirmation by default.
"""

from pathlib import Path
from typing import Annotated

import typer

from market_resolver.apps.resolver.cli._helpers import (
    commit_decision,
    configure_logging,
    load_resolver_config,
    parse_side,
    report_outcome,
)


def resolve(
    market_id: Annotated[int, typer.Option(help="Ledger market id")],
    side: Annotated[str, typer.Option(help="Winning side: yes or no")],
    reason: Annotated[str, typer.Option(help="Why this side won")] = "operator decision",
    no_confirm: Annotated[  # noqa: FBT002
        bool, typer.Option("--no-confirm", help="Skip confirmation prompt")
    ] = False,
    config_dir: Annotated[
        Path | None, typer.Option(help="Directory containing settings.yaml")
    ] = None,
) -> None:
    """Resolve an ended market to the given side."""
    winning = parse_side(side)
    configure_logging()
    config = load_resolver_config(config_dir)
    if not no_confirm and not typer.confirm(f"Resolve market {market_id} as {winning.value}?"):
        typer.echo("Cancelled.")
        raise typer.Exit(code=0)
    report_outcome(commit_decision(config, market_id, winning, reason))


def cancel(
    market_id: Annotated[int, typer.Option(help="Ledger market id")],
    reason: Annotated[str, typer.Option(help="Why the market is cancelled")],
    no_confirm: Annotated[  # noqa: FBT002
        bool, typer.Option("--no-confirm", help="Skip confirmation prompt")
    ] = False,
    config_dir: Annotated[
        Path | None, typer.Option(help="Directory containing settings.yaml")
    ] = None,
) -> None:
    """Cancel an ended market so every participant can claim a refund."""
    configure_logging()
    config = load_resolver_config(config_dir)
    if not no_confirm and not typer.confirm(f"Cancel market {market_id} and refund everyone?"):
        typer.echo("Cancelled.")
        raise typer.Exit(code=0)
    report_outcome(commit_decision(config, market_id, None, reason))

