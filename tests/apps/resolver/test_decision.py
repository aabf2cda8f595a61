"""Tests for verdict decisions."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from market_resolver.apps.resolver.decision import (
    DecisionEngine,
    judge,
    last_digit,
    verdict_for,
)
from market_resolver.apps.resolver.exceptions import InvalidTransitionError
from market_resolver.apps.resolver.interpreter import UNRESOLVABLE, interpret
from market_resolver.apps.resolver.models import (
    Comparator,
    ResolutionRule,
    RuleKind,
    Verdict,
)
from market_resolver.apps.resolver.oracle import FactOracle
from market_resolver.core.models import Fact, FactKind, Market, MarketStatus, Side

_ONE_ETH = 10**18
_NOW = 1_760_000_000.0
_RETRIES = 3


def _fact(value: str, kind: FactKind = FactKind.BITCOIN_USD) -> Fact:
    return Fact(kind=kind, value=Decimal(value), source="coingecko", observed_at=_NOW)


def _market(
    question: str = "Will BTC price be above $95,000?",
    yes_pool: int = 6 * _ONE_ETH,
    no_pool: int = 4 * _ONE_ETH,
    status: MarketStatus = MarketStatus.ENDED,
) -> Market:
    return Market(
        market_id=1,
        question=question,
        end_time=int(_NOW) - 60,
        yes_pool=yes_pool,
        no_pool=no_pool,
        status=status,
    )


def _make_engine(*facts: Fact | None) -> tuple[DecisionEngine, AsyncMock]:
    oracle = MagicMock(spec=FactOracle)
    oracle.fetch_fact = AsyncMock(side_effect=list(facts))
    return DecisionEngine(oracle, retries=_RETRIES, retry_backoff=0), oracle.fetch_fact


class TestLastDigit:
    """Tests for the last-digit rule."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("95123.99", 3),
            ("95120", 0),
            ("7", 7),
            ("0.99", 0),
        ],
    )
    def test_units_digit_of_whole_part(self, value: str, expected: int) -> None:
        """Use the units digit of the price rounded down."""
        assert last_digit(Decimal(value)) == expected


class TestJudge:
    """Tests for applying a rule to a fact."""

    def test_above_is_strict(self) -> None:
        """Resolve NO when the price equals the threshold."""
        rule = interpret("Will BTC price be above $95,000?")

        assert judge(rule, _fact("95000")) is Side.NO
        assert judge(rule, _fact("95000.01")) is Side.YES

    def test_touch_is_inclusive(self) -> None:
        """Resolve YES when the price equals the touch level."""
        rule = interpret("Will BTC price touch $95,000?")

        assert judge(rule, _fact("95000")) is Side.YES
        assert judge(rule, _fact("94999.99")) is Side.NO

    def test_parity(self) -> None:
        """Judge parity on the whole-dollar units digit."""
        even = interpret("Will BTC price last digit be even?")
        odd = interpret("Will BTC price last digit be odd?")

        assert judge(even, _fact("95122.97")) is Side.YES
        assert judge(odd, _fact("95122.97")) is Side.NO
        assert judge(odd, _fact("95123.01")) is Side.YES

    def test_end_digit(self) -> None:
        """Resolve YES only when the units digit matches."""
        rule = interpret("Will BTC price end with digit 7?")

        assert judge(rule, _fact("95127.80")) is Side.YES
        assert judge(rule, _fact("95128.10")) is Side.NO

    def test_gas_threshold(self) -> None:
        """Judge gas questions against a gwei fact."""
        rule = interpret("Will ETH gas be above 30 gwei?")

        assert judge(rule, _fact("30.5", FactKind.ETHEREUM_GAS_GWEI)) is Side.YES

    def test_rejects_rule_without_fact(self) -> None:
        """Refuse to judge unresolvable rules."""
        with pytest.raises(ValueError, match="cannot be judged"):
            judge(UNRESOLVABLE, _fact("1"))

    def test_rejects_fact_of_other_kind(self) -> None:
        """Refuse a fact that does not match the rule's kind."""
        rule = interpret("Will BTC price be above $95,000?")

        with pytest.raises(ValueError, match="rule needs"):
            judge(rule, _fact("3000", FactKind.ETHEREUM_USD))


class TestVerdictFor:
    """Tests for turning a winning side into a verdict."""

    def test_winning_pool_present(self) -> None:
        """Resolve to the winning side when someone backed it."""
        assert verdict_for(Side.YES, _market()) is Verdict.YES
        assert verdict_for(Side.NO, _market()) is Verdict.NO

    def test_empty_winning_pool_cancels(self) -> None:
        """Cancel when nobody staked the winning side."""
        market = _market(yes_pool=0, no_pool=5 * _ONE_ETH)

        assert verdict_for(Side.YES, market) is Verdict.CANCEL_NO_WINNERS

    def test_empty_losing_pool_still_resolves(self) -> None:
        """Resolve normally when only the losing side is empty."""
        market = _market(yes_pool=5 * _ONE_ETH, no_pool=0)

        assert verdict_for(Side.YES, market) is Verdict.YES


class TestResolutionRule:
    """Tests for rule validation."""

    def test_digit_rule_requires_single_digit(self) -> None:
        """Reject digit rules outside 0-9."""
        with pytest.raises(ValueError, match="digit rule"):
            ResolutionRule(
                kind=RuleKind.DIGIT,
                fact_kind=FactKind.BITCOIN_USD,
                comparator=Comparator.EQUALS,
                threshold=Decimal(12),
            )

    def test_threshold_rule_requires_threshold(self) -> None:
        """Reject threshold rules without a threshold."""
        with pytest.raises(ValueError, match="threshold rule"):
            ResolutionRule(
                kind=RuleKind.THRESHOLD,
                fact_kind=FactKind.BITCOIN_USD,
                comparator=Comparator.ABOVE,
            )

    def test_describe(self) -> None:
        """Describe rules for operator-facing reasons."""
        assert interpret("Will BTC price be above $95,000?").describe() == (
            "bitcoin-usd above 95000"
        )
        assert interpret("Will SOL price last digit be odd?").describe() == (
            "solana-usd last digit odd"
        )
        assert UNRESOLVABLE.describe() == "unresolvable"


class TestDecisionEngine:
    """Tests for DecisionEngine.decide."""

    @pytest.mark.asyncio
    async def test_resolves_yes(self) -> None:
        """Decide YES from a fresh fact above the threshold."""
        engine, fetch = _make_engine(_fact("96000"))
        market = _market()

        decision = await engine.decide(market, interpret(market.question))

        assert decision.verdict is Verdict.YES
        assert decision.fact is not None
        assert "coingecko" in decision.reason
        fetch.assert_awaited_once_with(FactKind.BITCOIN_USD)

    @pytest.mark.asyncio
    async def test_empty_winning_pool_cancels(self) -> None:
        """Decide CANCEL_NO_WINNERS when nobody staked the winning side."""
        engine, _ = _make_engine(_fact("96000"))
        market = _market(yes_pool=0, no_pool=3 * _ONE_ETH)

        decision = await engine.decide(market, interpret(market.question))

        assert decision.verdict is Verdict.CANCEL_NO_WINNERS
        assert "nobody staked YES" in decision.reason

    @pytest.mark.asyncio
    async def test_retries_until_fact_arrives(self) -> None:
        """Retry the oracle with a fixed backoff between attempts."""
        engine, fetch = _make_engine(None, None, _fact("90000"))
        market = _market()

        with patch(
            "market_resolver.apps.resolver.decision.asyncio.sleep", new=AsyncMock()
        ) as mock_sleep:
            decision = await engine.decide(market, interpret(market.question))

        assert decision.verdict is Verdict.NO
        assert fetch.await_count == 3  # noqa: PLR2004
        assert mock_sleep.await_count == 2  # noqa: PLR2004

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self) -> None:
        """Return UNRESOLVABLE after one attempt plus the configured retries."""
        engine, fetch = _make_engine(*([None] * (_RETRIES + 1)))
        market = _market()

        decision = await engine.decide(market, interpret(market.question))

        assert decision.verdict is Verdict.UNRESOLVABLE
        assert decision.reason == f"no fresh bitcoin-usd after {_RETRIES + 1} attempts"
        assert fetch.await_count == _RETRIES + 1

    @pytest.mark.asyncio
    async def test_unmatched_question(self) -> None:
        """Return UNRESOLVABLE without touching the oracle."""
        engine, fetch = _make_engine()
        market = _market(question="Will it rain in Lisbon?")

        decision = await engine.decide(market, interpret(market.question))

        assert decision.verdict is Verdict.UNRESOLVABLE
        assert decision.reason == "question matches no template"
        fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unverifiable_question(self) -> None:
        """Explain which template has no oracle."""
        engine, fetch = _make_engine()
        market = _market(question="Will a whale move > 500 ETH?")

        decision = await engine.decide(market, interpret(market.question))

        assert decision.verdict is Verdict.UNRESOLVABLE
        assert "whale-move" in decision.reason
        fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejects_market_that_is_not_ended(self) -> None:
        """Raise InvalidTransitionError for markets that are not ENDED."""
        engine, _ = _make_engine()
        market = _market(status=MarketStatus.ACTIVE)

        with pytest.raises(InvalidTransitionError, match="cannot move from active"):
            await engine.decide(market, interpret(market.question))
