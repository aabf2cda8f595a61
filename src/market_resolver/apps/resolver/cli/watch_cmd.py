"""CLI command for running resolution passes on a schedule.

Run a pass, wait for the configured interval, and repeat until SIGINT or
SIGTERM. Passes never overlap.
"""

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from market_resolver.apps.resolver.cli._helpers import (
    configure_logging,
    load_resolver_config,
    resolver_runtime,
)
from market_resolver.apps.resolver.config import ResolverConfig
from market_resolver.apps.resolver.scheduler import ResolutionScheduler


def watch(
    interval: Annotated[
        float | None,
        typer.Option(help="Seconds between passes (defaults to resolver.pass_interval_seconds)"),
    ] = None,
    max_passes: Annotated[
        int | None, typer.Option(help="Stop after this many passes")
    ] = None,
    config_dir: Annotated[
        Path | None, typer.Option(help="Directory containing settings.yaml")
    ] = None,
    verbose: Annotated[  # noqa: FBT002
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    """Resolve ended markets periodically until interrupted."""
    configure_logging(verbose=verbose)
    config = load_resolver_config(config_dir)
    if interval is not None and interval <= 0:
        typer.echo("Error: --interval must be positive.", err=True)
        raise typer.Exit(code=1)

    seconds = interval if interval is not None else config.pass_interval_seconds
    typer.echo(f"Starting resolver (interval: {seconds:.0f}s)")
    asyncio.run(_watch(config, interval_seconds=seconds, max_passes=max_passes))


async def _watch(
    config: ResolverConfig, *, interval_seconds: float, max_passes: int | None
) -> None:
    """Run the scheduler inside a wired runtime."""
    async with resolver_runtime(config) as coordinator:
        scheduler = ResolutionScheduler(
            coordinator,
            interval_seconds=interval_seconds,
            max_passes=max_passes,
        )
        await scheduler.run()
