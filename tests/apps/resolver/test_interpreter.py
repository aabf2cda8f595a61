"""Tests for mapping market questions to resolution rules."""

from decimal import Decimal

import pytest

from market_resolver.apps.resolver.interpreter import TEMPLATES, UNRESOLVABLE, interpret
from market_resolver.apps.resolver.models import Comparator, RuleKind
from market_resolver.core.models import FactKind


class TestPriceThresholds:
    """Tests for "price be above" and "price touch" questions."""

    def test_price_above_with_thousands_separator(self) -> None:
        """Parse an above-threshold question with a comma-grouped amount."""
        rule = interpret("Will BTC price be above $95,000 on Friday?")

        assert rule.kind is RuleKind.THRESHOLD
        assert rule.fact_kind is FactKind.BITCOIN_USD
        assert rule.comparator is Comparator.ABOVE
        assert rule.threshold == Decimal(95000)
        assert rule.template == "price-above"

    def test_price_above_with_decimals(self) -> None:
        """Keep the fractional part of the threshold."""
        rule = interpret("Will ETH price be above $3,300.50?")

        assert rule.fact_kind is FactKind.ETHEREUM_USD
        assert rule.threshold == Decimal("3300.50")

    def test_case_insensitive(self) -> None:
        """Match regardless of case."""
        rule = interpret("will sol PRICE be ABOVE $200?")

        assert rule.fact_kind is FactKind.SOLANA_USD
        assert rule.threshold == Decimal(200)

    def test_touch_uses_at_least(self) -> None:
        """Judge touch questions on the spot price with an inclusive bound."""
        rule = interpret("Will ETH price touch $4000 this week?")

        assert rule.kind is RuleKind.THRESHOLD
        assert rule.comparator is Comparator.AT_LEAST
        assert rule.threshold == Decimal(4000)
        assert rule.template == "price-touch"


class TestDigitQuestions:
    """Tests for last-digit questions."""

    @pytest.mark.parametrize(
        ("question", "comparator"),
        [
            ("Will BTC price last digit be even?", Comparator.EVEN),
            ("Will SOL price last digit be odd at close?", Comparator.ODD),
        ],
    )
    def test_parity(self, question: str, comparator: Comparator) -> None:
        """Parse parity questions."""
        rule = interpret(question)

        assert rule.kind is RuleKind.PARITY
        assert rule.comparator is comparator
        assert rule.threshold is None

    def test_end_digit(self) -> None:
        """Parse a specific-digit question."""
        rule = interpret("Will ETH price end with digit 7?")

        assert rule.kind is RuleKind.DIGIT
        assert rule.fact_kind is FactKind.ETHEREUM_USD
        assert rule.comparator is Comparator.EQUALS
        assert rule.threshold == Decimal(7)


class TestGas:
    """Tests for gas price questions."""

    def test_gas_above(self) -> None:
        """Parse a gas threshold in gwei."""
        rule = interpret("Will ETH gas be above 30 gwei tomorrow?")

        assert rule.kind is RuleKind.THRESHOLD
        assert rule.fact_kind is FactKind.ETHEREUM_GAS_GWEI
        assert rule.comparator is Comparator.ABOVE
        assert rule.threshold == Decimal(30)

    def test_gas_question_is_not_a_price_question(self) -> None:
        """Do not read a gas question as an ETH price question."""
        rule = interpret("Will ETH gas be above 12.5gwei?")

        assert rule.fact_kind is FactKind.ETHEREUM_GAS_GWEI
        assert rule.threshold == Decimal("12.5")


class TestUnmatched:
    """Tests for questions no oracle can settle."""

    @pytest.mark.parametrize(
        ("question", "template"),
        [
            ("Will a whale move > 1000 BTC today?", "whale-move"),
            ("Will BTC/ETH ratio increase this week?", "btc-eth-ratio"),
            ("Will Base have > 5M transactions today?", "base-tx-count"),
        ],
    )
    def test_recognised_but_unverifiable(self, question: str, template: str) -> None:
        """Classify recognised placeholder questions as unverifiable."""
        rule = interpret(question)

        assert rule.kind is RuleKind.UNVERIFIABLE
        assert rule.template == template
        assert not rule.needs_fact

    @pytest.mark.parametrize(
        "question",
        [
            "Will the election be called by Friday?",
            "Will DOGE price be above $1?",
            "Will BTC price be above ninety thousand?",
            "",
        ],
    )
    def test_no_match_is_unresolvable(self, question: str) -> None:
        """Return the unresolvable rule for anything outside the templates."""
        assert interpret(question) == UNRESOLVABLE

    def test_first_matching_template_wins(self) -> None:
        """Resolve overlaps by template order."""
        rule = interpret("Will BTC price be above $100,000 or will BTC price touch $90,000?")

        assert rule.template == "price-above"

    def test_template_names_unique(self) -> None:
        """Give every template a distinct name."""
        names = [t.name for t in TEMPLATES]
        assert len(names) == len(set(names))
