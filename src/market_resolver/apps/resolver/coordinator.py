"""Drive markets from ``ENDED`` to ``RESOLVED`` or ``CANCELLED`` against the ledger.

One pass enumerates open markets and processes them sequentially:

1. Read the market. Active and already-settled markets are skipped.
2. Interpret the question and decide a verdict.
3. Re-read the market and, if it is still ``ENDED``, send exactly one
   resolve or cancel transaction.

Every market is isolated: an exception while processing one is logged,
counted as a failed attempt, and the pass moves on. A write rejected
because the market was already settled is a benign conflict and is not
retried. The pass stops before the next market once its wall-clock budget
is spent and reports the rest as deferred; a decision still waiting on the
oracle when the budget runs out is abandoned and its market deferred too.

Manual resolutions and cancellations go through the same guarded commit.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from types import MappingProxyType

from market_resolver.apps.resolver.decision import DecisionEngine, verdict_for
from market_resolver.apps.resolver.exceptions import InvalidTransitionError
from market_resolver.apps.resolver.interpreter import interpret
from market_resolver.apps.resolver.models import (
    MarketOutcome,
    OutcomeStatus,
    PassReport,
    ResolutionRule,
    Verdict,
)
from market_resolver.apps.resolver.throttle import RateLimitCooldown
from market_resolver.clients.ledger.exceptions import LedgerConflictError, LedgerError
from market_resolver.core.models import Market, MarketStatus, Side, can_transition
from market_resolver.core.protocols import Ledger

logger = logging.getLogger(__name__)


class _PassBudgetSpentError(Exception):
    """The pass budget ran out while a market was being decided."""


class ResolutionCoordinator:
    """Run resolution passes and guarded commits against a ledger.

    Args:
        ledger: Authoritative market store.
        engine: Decision engine used for automatic verdicts.
        cooldown: Shared rate-limit cooldown honoured before each network step.
        pass_budget: Wall-clock budget of one pass, in seconds.
        read_delay: Pause between consecutive markets, in seconds.
        interpreter: Maps question text to a resolution rule.
        clock: Monotonic time source for the pass budget.

    """

    def __init__(
        self,
        ledger: Ledger,
        engine: DecisionEngine,
        *,
        cooldown: RateLimitCooldown | None = None,
        pass_budget: float = 300.0,
        read_delay: float = 0.4,
        interpreter: Callable[[str], ResolutionRule] = interpret,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the coordinator."""
        self._ledger = ledger
        self._engine = engine
        self._cooldown = cooldown
        self._pass_budget = pass_budget
        self._read_delay = read_delay
        self._interpret = interpreter
        self._clock = clock
        self._failed_attempts: dict[int, int] = {}
        self._written_this_pass: set[int] = set()

    @property
    def failed_attempts(self) -> Mapping[int, int]:
        """Return failed attempts per market since the last success."""
        return MappingProxyType(self._failed_attempts)

    async def run_pass(self) -> PassReport:
        """Process every open market once.

        Returns:
            Summary of what happened to each market.

        Raises:
            LedgerError: When the open markets cannot be enumerated.

        """
        started = self._clock()
        report = PassReport()
        self._written_this_pass.clear()

        await self._pause_for_cooldown()
        market_ids = list(dict.fromkeys(await self._ledger.list_open_markets()))
        logger.info("[RESOLVER] Pass started: %d open market(s)", len(market_ids))

        for index, market_id in enumerate(market_ids):
            remaining = self._pass_budget - (self._clock() - started)
            if remaining <= 0:
                self._defer(report, len(market_ids) - index)
                break
            if index and self._read_delay > 0:
                await asyncio.sleep(self._read_delay)
            try:
                outcome = await self._process(market_id, remaining)
            except _PassBudgetSpentError:
                self._defer(report, len(market_ids) - index)
                break
            except Exception as exc:
                logger.exception("[RESOLVER] Market %d failed", market_id)
                outcome = MarketOutcome(
                    market_id=market_id,
                    question="",
                    status=OutcomeStatus.FAILED,
                    reason=f"{type(exc).__name__}: {exc}",
                    attempts=self._record_failure(market_id),
                )
            report.outcomes.append(outcome)

        report.duration_seconds = self._clock() - started
        logger.info(
            "[RESOLVER] Pass complete in %.1fs: checked=%d resolved=%d cancelled=%d "
            "skipped=%d unresolvable=%d failed=%d deferred=%d",
            report.duration_seconds,
            report.checked,
            report.resolved,
            report.cancelled,
            report.skipped,
            report.unresolvable,
            report.failed,
            report.deferred,
        )
        return report

    async def commit(self, market_id: int, verdict: Verdict, *, reason: str) -> MarketOutcome:
        """Commit a verdict after re-reading the market.

        Args:
            market_id: Market to settle.
            verdict: ``YES``, ``NO`` or ``CANCEL_NO_WINNERS``.
            reason: Explanation recorded on the outcome.

        Returns:
            The outcome of the commit. Markets that are no longer ``ENDED``
            are reported as skipped without any write.

        Raises:
            ValueError: When ``verdict`` is ``UNRESOLVABLE``.

        """
        if verdict is Verdict.UNRESOLVABLE:
            msg = "an unresolvable verdict cannot be committed"
            raise ValueError(msg)
        market = await self._read(market_id)
        return await self._write(market, verdict, reason)

    async def resolve_manually(
        self,
        market_id: int,
        side: Side,
        *,
        reason: str = "operator decision",
    ) -> MarketOutcome:
        """Resolve a market to an operator-chosen side.

        The fresh pool snapshot still applies: if nobody staked ``side``
        the market is cancelled instead so everyone can be refunded.
        """
        market = await self._read(market_id)
        return await self._write(market, verdict_for(side, market), reason)

    async def cancel_manually(self, market_id: int, *, reason: str) -> MarketOutcome:
        """Cancel a market on an operator's instruction so every stake is refunded."""
        market = await self._read(market_id)
        return await self._write(market, None, reason)

    def _defer(self, report: PassReport, count: int) -> None:
        report.budget_exhausted = True
        report.deferred = count
        logger.warning(
            "[RESOLVER] Pass budget of %.0fs spent, deferring %d market(s)",
            self._pass_budget,
            count,
        )

    async def _process(self, market_id: int, budget: float) -> MarketOutcome:
        """Read, decide, and commit one market.

        Deciding is bounded by what is left of the pass budget; the commit
        that follows a decision is never interrupted.
        """
        market = await self._read(market_id)
        if market.status is MarketStatus.ACTIVE:
            return self._outcome(market, OutcomeStatus.SKIPPED, "market has not ended")
        if market.status.is_terminal:
            self._failed_attempts.pop(market_id, None)
            return self._outcome(market, OutcomeStatus.SKIPPED, f"already {market.status.value}")

        rule = self._interpret(market.question)
        deadline = asyncio.timeout(budget)
        try:
            async with deadline:
                decision = await self._engine.decide(market, rule)
        except TimeoutError:
            if not deadline.expired():
                raise
            raise _PassBudgetSpentError from None
        if decision.verdict is Verdict.UNRESOLVABLE:
            logger.info("[RESOLVER] Market %d unresolvable: %s", market_id, decision.reason)
            return self._outcome(
                market,
                OutcomeStatus.UNRESOLVABLE,
                decision.reason,
                verdict=Verdict.UNRESOLVABLE,
            )

        logger.info(
            "[RESOLVER] Market %d decided %s: %s",
            market_id,
            decision.verdict.value,
            decision.reason,
        )
        return await self.commit(market_id, decision.verdict, reason=decision.reason)

    async def _write(
        self,
        market: Market,
        verdict: Verdict | None,
        reason: str,
    ) -> MarketOutcome:
        """Send one resolve or cancel transaction for a freshly read market.

        ``verdict`` is ``None`` for an administrative cancellation.
        """
        market_id = market.market_id
        if market.status is not MarketStatus.ENDED:
            if market.status.is_terminal:
                self._failed_attempts.pop(market_id, None)
            return self._outcome(
                market,
                OutcomeStatus.SKIPPED,
                f"market is {market.status.value}, nothing to commit",
                verdict=verdict,
            )
        if market_id in self._written_this_pass:
            return self._outcome(
                market,
                OutcomeStatus.SKIPPED,
                "already written this pass",
                verdict=verdict,
            )

        side = verdict.side if verdict is not None else None
        pending = MarketStatus.RESOLVING if side is not None else MarketStatus.CANCELLING
        final = MarketStatus.RESOLVED if side is not None else MarketStatus.CANCELLED
        if not can_transition(market.status, pending):
            raise InvalidTransitionError(market_id, market.status, pending)

        await self._pause_for_cooldown()
        self._written_this_pass.add(market_id)
        try:
            if side is not None:
                tx_hash = await self._ledger.submit_resolve(market_id, side)
            else:
                tx_hash = await self._ledger.submit_cancel(market_id)
        except LedgerConflictError as exc:
            logger.warning("[RESOLVER] Market %d already settled elsewhere: %s", market_id, exc)
            self._failed_attempts.pop(market_id, None)
            return self._outcome(
                market,
                OutcomeStatus.SKIPPED,
                "already settled by a concurrent run",
                verdict=verdict,
            )
        except LedgerError as exc:
            attempts = self._record_failure(market_id)
            logger.warning(
                "[RESOLVER] Market %d commit failed (attempt %d), back to %s: %s",
                market_id,
                attempts,
                MarketStatus.ENDED.value,
                exc,
            )
            return self._outcome(
                market,
                OutcomeStatus.FAILED,
                f"commit failed: {exc}",
                verdict=verdict,
                attempts=attempts,
            )

        self._failed_attempts.pop(market_id, None)
        logger.info(
            "[RESOLVER] Market %d %s -> %s -> %s (tx: %s)",
            market_id,
            market.status.value,
            pending.value,
            final.value,
            tx_hash,
        )
        status = OutcomeStatus.RESOLVED if side is not None else OutcomeStatus.CANCELLED
        return self._outcome(market, status, reason, verdict=verdict, tx_hash=tx_hash)

    async def _read(self, market_id: int) -> Market:
        await self._pause_for_cooldown()
        return await self._ledger.read_market(market_id)

    async def _pause_for_cooldown(self) -> None:
        if self._cooldown is not None:
            await self._cooldown.pause()

    def _record_failure(self, market_id: int) -> int:
        self._failed_attempts[market_id] = self._failed_attempts.get(market_id, 0) + 1
        return self._failed_attempts[market_id]

    def _outcome(
        self,
        market: Market,
        status: OutcomeStatus,
        reason: str,
        *,
        verdict: Verdict | None = None,
        tx_hash: str | None = None,
        attempts: int | None = None,
    ) -> MarketOutcome:
        return MarketOutcome(
            market_id=market.market_id,
            question=market.question,
            status=status,
            reason=reason,
            verdict=verdict,
            tx_hash=tx_hash,
            attempts=self._failed_attempts.get(market.market_id, 0)
            if attempts is None
            else attempts,
        )
