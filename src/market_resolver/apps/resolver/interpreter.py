"""Map market question text to a machine-checkable resolution rule.

Questions are matched against an ordered, closed set of case-insensitive
templates; the first match wins and anything unmatched is
``UNRESOLVABLE``. New templates are appended at the end of ``TEMPLATES`` so
an earlier template's classification never changes.

Prices are judged on the spot quote at resolution time. A "touch $X"
question is therefore decided by whether the current price is at least
``X``, not by the highest price seen while the market was open.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

from market_resolver.apps.resolver.models import Comparator, ResolutionRule, RuleKind
from market_resolver.core.models import FactKind

_ASSET = r"\b(?P<asset>btc|eth|sol)"
_AMOUNT = r"(?P<amount>\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"

_PRICE_FACTS: dict[str, FactKind] = {
    "btc": FactKind.BITCOIN_USD,
    "eth": FactKind.ETHEREUM_USD,
    "sol": FactKind.SOLANA_USD,
}

UNRESOLVABLE = ResolutionRule(kind=RuleKind.UNRESOLVABLE)


@dataclass(frozen=True)
class Template:
    """One recognised question shape.

    Args:
        name: Stable identifier reported on the rule.
        pattern: Compiled case-insensitive pattern.
        build: Turn a match into a rule.

    """

    name: str
    pattern: re.Pattern[str]
    build: Callable[[re.Match[str], str], ResolutionRule]


def _price_fact(match: re.Match[str]) -> FactKind:
    return _PRICE_FACTS[match.group("asset").lower()]


def _amount(match: re.Match[str]) -> Decimal:
    return Decimal(match.group("amount").replace(",", ""))


def _price_above(match: re.Match[str], name: str) -> ResolutionRule:
    return ResolutionRule(
        kind=RuleKind.THRESHOLD,
        fact_kind=_price_fact(match),
        comparator=Comparator.ABOVE,
        threshold=_amount(match),
        template=name,
    )


def _price_touch(match: re.Match[str], name: str) -> ResolutionRule:
    return ResolutionRule(
        kind=RuleKind.THRESHOLD,
        fact_kind=_price_fact(match),
        comparator=Comparator.AT_LEAST,
        threshold=_amount(match),
        template=name,
    )


def _parity(match: re.Match[str], name: str) -> ResolutionRule:
    comparator = Comparator.EVEN if match.group("parity").lower() == "even" else Comparator.ODD
    return ResolutionRule(
        kind=RuleKind.PARITY,
        fact_kind=_price_fact(match),
        comparator=comparator,
        template=name,
    )


def _end_digit(match: re.Match[str], name: str) -> ResolutionRule:
    return ResolutionRule(
        kind=RuleKind.DIGIT,
        fact_kind=_price_fact(match),
        comparator=Comparator.EQUALS,
        threshold=Decimal(match.group("digit")),
        template=name,
    )


def _gas_above(match: re.Match[str], name: str) -> ResolutionRule:
    return ResolutionRule(
        kind=RuleKind.THRESHOLD,
        fact_kind=FactKind.ETHEREUM_GAS_GWEI,
        comparator=Comparator.ABOVE,
        threshold=_amount(match),
        template=name,
    )


def _unverifiable(_match: re.Match[str], name: str) -> ResolutionRule:
    return ResolutionRule(kind=RuleKind.UNVERIFIABLE, template=name)


def _template(
    name: str,
    pattern: str,
    build: Callable[[re.Match[str], str], ResolutionRule],
) -> Template:
    return Template(name=name, pattern=re.compile(pattern, re.IGNORECASE), build=build)


TEMPLATES: tuple[Template, ...] = (
    _template("price-above", rf"{_ASSET}\s+price\s+be\s+above\s+\$\s*{_AMOUNT}", _price_above),
    _template("price-touch", rf"{_ASSET}\s+price\s+touch\s+\$\s*{_AMOUNT}", _price_touch),
    _template(
        "price-last-digit-parity",
        rf"{_ASSET}\s+price\s+last\s+digit\s+be\s+(?P<parity>even|odd)\b",
        _parity,
    ),
    _template(
        "price-end-digit",
        rf"{_ASSET}\s+price\s+end\s+with\s+digit\s+(?P<digit>\d)\b",
        _end_digit,
    ),
    _template("gas-above", rf"\beth\s+gas\s+be\s+above\s+{_AMOUNT}\s*gwei\b", _gas_above),
    # Recognised shapes that no oracle can verify yet.
    _template("whale-move", r"\bwhale\s+move\s*>", _unverifiable),
    _template("btc-eth-ratio", r"\bbtc\s*/\s*eth\s+ratio\s+increase\b", _unverifiable),
    _template("base-tx-count", r"\bbase\s+have\s*>", _unverifiable),
)


def interpret(question: str) -> ResolutionRule:
    """Return the resolution rule for a question.

    Args:
        question: Market question text.

    Returns:
        The rule built by the first matching template, or an
        ``UNRESOLVABLE`` rule when no template matches.

    """
    for template in TEMPLATES:
        match = template.pattern.search(question)
        if match is not None:
            return template.build(match, template.name)
    return UNRESOLVABLE
