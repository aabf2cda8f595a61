"""CLI command for running a single resolution pass.

Process every open market once and print the pass report as JSON, so the
command can be driven by an external cron or a serverless trigger.
"""

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any

import typer

from market_resolver.apps.resolver.cli._helpers import (
    configure_logging,
    load_resolver_config,
    resolver_runtime,
)
from market_resolver.apps.resolver.config import ResolverConfig
from market_resolver.clients.ledger.exceptions import LedgerError


def run(
    config_dir: Annotated[
        Path | None, typer.Option(help="Directory containing settings.yaml")
    ] = None,
    verbose: Annotated[  # noqa: FBT002
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    """Run one resolution pass and print the JSON report."""
    configure_logging(verbose=verbose)
    config = load_resolver_config(config_dir)
    try:
        report = asyncio.run(_run(config))
    except LedgerError as exc:
        typer.echo(f"Error: could not enumerate markets: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps(report, indent=2))


async def _run(config: ResolverConfig) -> dict[str, Any]:
    """Run the pass inside a wired runtime and return the serialised report."""
    async with resolver_runtime(config) as coordinator:
        report = await coordinator.run_pass()
    return report.to_dict()
