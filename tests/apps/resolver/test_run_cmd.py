"""Tests for the run, watch and markets CLI commands."""

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

from typer.testing import CliRunner

from market_resolver.apps.resolver.config import ResolverConfig
from market_resolver.apps.resolver.coordinator import ResolutionCoordinator
from market_resolver.apps.resolver.models import (
    MarketOutcome,
    OutcomeStatus,
    PassReport,
    Verdict,
)
from market_resolver.apps.resolver.run import app
from market_resolver.clients.ledger import LedgerUnavailableError
from market_resolver.core.models import Market, MarketStatus

runner = CliRunner()

_TX_HASH = "0x" + "ab" * 32


def _fake_runtime(coordinator: MagicMock) -> Any:
    @asynccontextmanager
    async def _runtime(config: ResolverConfig) -> AsyncIterator[MagicMock]:  # noqa: ARG001
        yield coordinator

    return _runtime


def _make_coordinator(report: PassReport | Exception) -> MagicMock:
    coordinator = MagicMock(spec=ResolutionCoordinator)
    if isinstance(report, Exception):
        coordinator.run_pass = AsyncMock(side_effect=report)
    else:
        coordinator.run_pass = AsyncMock(return_value=report)
    return coordinator


class TestRunCommand:
    """Tests for the single-pass run command."""

    def test_prints_json_report(self) -> None:
        """Print the pass report as JSON."""
        report = PassReport(
            outcomes=[
                MarketOutcome(
                    market_id=7,
                    question="Will BTC price be above $100,000?",
                    status=OutcomeStatus.RESOLVED,
                    reason="bitcoin-usd 101000 > 100000",
                    verdict=Verdict.YES,
                    tx_hash=_TX_HASH,
                ),
            ],
            deferred=2,
            budget_exhausted=True,
        )
        coordinator = _make_coordinator(report)

        with patch(
            "market_resolver.apps.resolver.cli.run_cmd.resolver_runtime",
            new=_fake_runtime(coordinator),
        ):
            result = runner.invoke(app, ["run"])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.output[result.output.index("{") :])
        assert payload["resolved"] == 1
        assert payload["deferred"] == 2  # noqa: PLR2004
        assert payload["budget_exhausted"] is True
        assert payload["markets"][0]["tx_hash"] == _TX_HASH

    def test_listing_failure_exits_non_zero(self) -> None:
        """Exit with an error when the open markets cannot be listed."""
        coordinator = _make_coordinator(LedgerUnavailableError("all endpoints failed"))

        with patch(
            "market_resolver.apps.resolver.cli.run_cmd.resolver_runtime",
            new=_fake_runtime(coordinator),
        ):
            result = runner.invoke(app, ["run"])

        assert result.exit_code == 1
        assert "could not enumerate markets" in result.output


class TestWatchCommand:
    """Tests for the scheduled watch command."""

    def test_rejects_non_positive_interval(self) -> None:
        """Refuse an interval of zero or less."""
        result = runner.invoke(app, ["watch", "--interval", "0"])

        assert result.exit_code == 1
        assert "--interval must be positive" in result.output

    @patch("market_resolver.apps.resolver.cli.watch_cmd.ResolutionScheduler")
    def test_runs_scheduler(self, mock_scheduler_cls: MagicMock) -> None:
        """Start the scheduler with the requested interval and pass limit."""
        coordinator = _make_coordinator(PassReport())
        mock_scheduler_cls.return_value.run = AsyncMock()

        with patch(
            "market_resolver.apps.resolver.cli.watch_cmd.resolver_runtime",
            new=_fake_runtime(coordinator),
        ):
            result = runner.invoke(app, ["watch", "--interval", "30", "--max-passes", "1"])

        assert result.exit_code == 0, result.output
        assert "interval: 30s" in result.output
        mock_scheduler_cls.assert_called_once_with(
            coordinator, interval_seconds=30.0, max_passes=1
        )
        mock_scheduler_cls.return_value.run.assert_awaited_once()


class TestMarketsCommand:
    """Tests for the markets listing command."""

    @patch("market_resolver.apps.resolver.cli.markets_cmd.build_ledger")
    def test_lists_open_markets(self, mock_build_ledger: MagicMock) -> None:
        """Show each open market with its derived rule."""
        market = Market(
            market_id=4,
            question="Will BTC price be above $100,000?",
            end_time=1_760_000_000,
            yes_pool=2 * 10**18,
            no_pool=10**18,
            status=MarketStatus.ENDED,
        )
        ledger = mock_build_ledger.return_value
        ledger.list_open_markets = AsyncMock(return_value=[4])
        ledger.read_market = AsyncMock(return_value=market)

        result = runner.invoke(app, ["markets"])

        assert result.exit_code == 0, result.output
        assert "Will BTC price be above $100,000?" in result.output
        assert "ended" in result.output
        assert "2.000000" in result.output
        assert "bitcoin-usd" in result.output

    @patch("market_resolver.apps.resolver.cli.markets_cmd.build_ledger")
    def test_no_open_markets(self, mock_build_ledger: MagicMock) -> None:
        """Say so when nothing is open."""
        mock_build_ledger.return_value.list_open_markets = AsyncMock(return_value=[])

        result = runner.invoke(app, ["markets"])

        assert result.exit_code == 0, result.output
        assert "No open markets" in result.output
