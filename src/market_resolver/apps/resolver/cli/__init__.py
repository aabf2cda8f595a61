"""CLI subpackage for the market resolver.

Create the Typer application and register all command modules.
"""

import typer

from market_resolver.apps.resolver.cli.admin_cmd import cancel, resolve
from market_resolver.apps.resolver.cli.claim_cmd import claim
from market_resolver.apps.resolver.cli.markets_cmd import markets
from market_resolver.apps.resolver.cli.quote_cmd import quote
from market_resolver.apps.resolver.cli.review_cmd import review
from market_resolver.apps.resolver.cli.run_cmd import run
from market_resolver.apps.resolver.cli.watch_cmd import watch

app = typer.Typer(help="Prediction market resolution and settlement tools")

app.command()(run)
app.command()(watch)
app.command()(markets)
app.command()(quote)
app.command()(claim)
app.command()(review)
app.command()(resolve)
app.command()(cancel)

__all__ = ["app"]
