"""Decide the verdict for an ended market.

``judge`` and ``verdict_for`` are pure: the same fact and pool snapshot
always give the same verdict. ``DecisionEngine`` adds the impure part,
fetching the fact with a bounded number of retries.

The last digit of a price is ``floor(price) mod 10``, i.e. the units digit
of the whole-dollar price, for both parity and digit questions.
"""

import asyncio
import logging
from decimal import ROUND_FLOOR, Decimal

from market_resolver.apps.resolver.exceptions import InvalidTransitionError
from market_resolver.apps.resolver.models import (
    Comparator,
    Decision,
    ResolutionRule,
    RuleKind,
    Verdict,
)
from market_resolver.apps.resolver.oracle import FactOracle
from market_resolver.core.models import Fact, FactKind, Market, MarketStatus, Side

logger = logging.getLogger(__name__)


def last_digit(value: Decimal) -> int:
    """Return the units digit of the whole part of ``value``."""
    return int(value.to_integral_value(rounding=ROUND_FLOOR)) % 10


def judge(rule: ResolutionRule, fact: Fact) -> Side:
    """Apply a rule to an observed fact.

    Args:
        rule: A rule that needs a fact.
        fact: Observation of the rule's fact kind.

    Returns:
        The side the fact says has won.

    Raises:
        ValueError: When the rule needs no fact or the fact is of another kind.

    """
    if not rule.needs_fact:
        msg = f"{rule.kind.value} rules cannot be judged against a fact"
        raise ValueError(msg)
    if fact.kind is not rule.fact_kind:
        msg = f"rule needs {rule.fact_kind}, got a {fact.kind.value} fact"
        raise ValueError(msg)

    if rule.kind is RuleKind.THRESHOLD:
        threshold = rule.threshold if rule.threshold is not None else Decimal(0)
        if rule.comparator is Comparator.ABOVE:
            won = fact.value > threshold
        else:
            won = fact.value >= threshold
    elif rule.kind is RuleKind.PARITY:
        is_even = last_digit(fact.value) % 2 == 0
        won = is_even if rule.comparator is Comparator.EVEN else not is_even
    else:
        won = rule.threshold is not None and last_digit(fact.value) == int(rule.threshold)
    return Side.YES if won else Side.NO


def verdict_for(side: Side, market: Market) -> Verdict:
    """Turn a winning side into a verdict, cancelling when nobody backed it.

    A winning pool of exactly zero means there is nobody to pay, so the
    market is cancelled and everyone is refunded instead.
    """
    if market.pool_for(side) == 0:
        return Verdict.CANCEL_NO_WINNERS
    return Verdict.for_side(side)


class DecisionEngine:
    """Produce a ``Decision`` for each ended market.

    Args:
        oracle: Fact oracle with primary/fallback sources.
        retries: Extra fetch attempts after the first one fails.
        retry_backoff: Fixed pause between attempts, in seconds.

    """

    def __init__(
        self,
        oracle: FactOracle,
        *,
        retries: int = 3,
        retry_backoff: float = 3.0,
    ) -> None:
        """Initialize the engine."""
        self._oracle = oracle
        self._retries = retries
        self._retry_backoff = retry_backoff

    async def decide(self, market: Market, rule: ResolutionRule) -> Decision:
        """Decide what should happen to an ended market.

        Args:
            market: Fresh snapshot of the market.
            rule: Rule interpreted from the market's question.

        Returns:
            The decision. ``UNRESOLVABLE`` when the question has no
            automatic rule or no fresh fact could be obtained this pass.

        Raises:
            InvalidTransitionError: When the market is not ``ENDED``.

        """
        if market.status is not MarketStatus.ENDED:
            raise InvalidTransitionError(market.market_id, market.status, MarketStatus.RESOLVING)

        if rule.kind is RuleKind.UNVERIFIABLE:
            return Decision(
                verdict=Verdict.UNRESOLVABLE,
                reason=f"no oracle can verify '{rule.template}' questions",
            )
        if not rule.needs_fact or rule.fact_kind is None:
            return Decision(verdict=Verdict.UNRESOLVABLE, reason="question matches no template")

        fact = await self._fetch_with_retries(market, rule.fact_kind)
        if fact is None:
            return Decision(
                verdict=Verdict.UNRESOLVABLE,
                reason=f"no fresh {rule.fact_kind.value} after {self._retries + 1} attempts",
            )

        side = judge(rule, fact)
        verdict = verdict_for(side, market)
        reason = (
            f"{fact.kind.value}={fact.value} from {fact.source}; "
            f"{rule.describe()} -> {side.value}"
        )
        if verdict is Verdict.CANCEL_NO_WINNERS:
            reason = f"{reason}; nobody staked {side.value}"
        return Decision(verdict=verdict, reason=reason, fact=fact)

    async def _fetch_with_retries(self, market: Market, kind: FactKind) -> Fact | None:
        """Fetch a fact, retrying with a fixed backoff."""
        for attempt in range(self._retries + 1):
            if attempt:
                logger.info(
                    "Retrying %s for market %d in %.1fs (attempt %d/%d)",
                    kind.value,
                    market.market_id,
                    self._retry_backoff,
                    attempt + 1,
                    self._retries + 1,
                )
                await asyncio.sleep(self._retry_backoff)
            fact = await self._oracle.fetch_fact(kind)
            if fact is not None:
                return fact
        return None
