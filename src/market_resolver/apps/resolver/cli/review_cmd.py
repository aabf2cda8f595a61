"""CLI command for the manual review of markets without an oracle.

Ask the search-backed advisor about an ended market, show its answer,
sources, and suggested side, and optionally let the operator commit a
final decision through the guarded commit. The operator always decides;
the suggestion is never applied on its own.
"""

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from market_resolver.apps.resolver.advisor import ReviewAdvisor
from market_resolver.apps.resolver.cli._helpers import (
    build_ledger,
    commit_decision,
    configure_logging,
    format_eth,
    load_resolver_config,
    report_outcome,
)
from market_resolver.apps.resolver.config import ResolverConfig
from market_resolver.apps.resolver.models import Recommendation
from market_resolver.clients.ledger.exceptions import LedgerError
from market_resolver.clients.tavily import TavilyClient, TavilyError
from market_resolver.core.models import MarketStatus, Side

_CHOICES = ("yes", "no", "cancel", "skip")


def review(
    market_id: Annotated[int, typer.Option(help="Ledger market id")],
    decide: Annotated[  # noqa: FBT002
        bool, typer.Option("--decide", help="Prompt for a final decision and commit it")
    ] = False,
    config_dir: Annotated[
        Path | None, typer.Option(help="Directory containing settings.yaml")
    ] = None,
    verbose: Annotated[  # noqa: FBT002
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    """Research an ended market and suggest an outcome for a human to confirm."""
    configure_logging(verbose=verbose)
    config = load_resolver_config(config_dir)
    if not config.review.tavily_api_key:
        typer.echo("Error: TAVILY_API_KEY environment variable is required.", err=True)
        raise typer.Exit(code=1)

    try:
        recommendation = asyncio.run(_recommend(config, market_id))
    except (LedgerError, TavilyError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    _print_recommendation(recommendation)
    if not decide:
        return

    default = recommendation.suggestion.value.lower() if recommendation.suggestion else "skip"
    choice = typer.prompt(f"Final decision ({'/'.join(_CHOICES)})", default=default)
    choice = choice.strip().lower()
    if choice not in _CHOICES:
        typer.echo(f"Error: choose one of {', '.join(_CHOICES)}, got '{choice}'.", err=True)
        raise typer.Exit(code=1)
    if choice == "skip":
        typer.echo("No decision committed.")
        return

    side = None if choice == "cancel" else Side(choice.upper())
    reason = f"manual review ({recommendation.confidence.value} confidence advisor)"
    report_outcome(commit_decision(config, market_id, side, reason))


async def _recommend(config: ResolverConfig, market_id: int) -> Recommendation:
    """Read the market and ask the advisor about it."""
    market = await build_ledger(config).read_market(market_id)
    if market.status is not MarketStatus.ENDED:
        typer.echo(
            f"Error: market {market_id} is {market.status.value}; only ended markets "
            "can be reviewed.",
            err=True,
        )
        raise typer.Exit(code=1)

    typer.echo(f"\nMarket #{market_id}: {market.question}")
    typer.echo(f"  YES pool: {format_eth(market.yes_pool)} ETH")
    typer.echo(f"  NO pool:  {format_eth(market.no_pool)} ETH")

    review = config.review
    async with TavilyClient(review.tavily_api_key, base_url=review.tavily_url) as client:
        advisor = ReviewAdvisor(client, max_results=review.max_results)
        return await advisor.recommend(market)


def _print_recommendation(recommendation: Recommendation) -> None:
    """Display the advisor's answer, sources, and suggestion."""
    typer.echo(f"\nAnswer:\n  {recommendation.answer or '(no answer returned)'}")
    if recommendation.sources:
        typer.echo("\nSources:")
        for index, source in enumerate(recommendation.sources, start=1):
            typer.echo(f"  {index}. {source.title}")
            typer.echo(f"     {source.url}")
    suggestion = recommendation.suggestion.value if recommendation.suggestion else "UNCLEAR"
    typer.echo(
        f"\nSuggestion: {suggestion} ({recommendation.confidence.value} confidence, "
        f"yes={recommendation.yes_score} no={recommendation.no_score})"
    )
