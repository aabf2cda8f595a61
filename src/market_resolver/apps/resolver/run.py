"""CLI entry point for the market resolver.

All command logic lives in the cli subpackage.
"""

from market_resolver.apps.resolver.cli import app

__all__ = ["app", "main"]


def main() -> None:
    """Run the market resolver CLI application."""
    app()


if __name__ == "__main__":
    main()
