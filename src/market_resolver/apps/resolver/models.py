"""Data models for resolution rules, decisions, settlements, and pass reports.

Resolution rules are produced by the question interpreter, decisions by the
decision engine, settlement results by the payout calculator, and pass
reports by the coordinator. None of them are persisted.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from market_resolver.clients.tavily.models import SearchResult
from market_resolver.core.models import Fact, FactKind, Side

_MAX_DIGIT = 9


class RuleKind(Enum):
    """How a question is resolved."""

    THRESHOLD = "threshold"
    PARITY = "parity"
    DIGIT = "digit"
    UNVERIFIABLE = "unverifiable"
    UNRESOLVABLE = "unresolvable"


class Comparator(Enum):
    """Comparison applied to a fact by a resolution rule."""

    ABOVE = "above"
    AT_LEAST = "at_least"
    EVEN = "even"
    ODD = "odd"
    EQUALS = "equals"


_THRESHOLD_COMPARATORS = frozenset({Comparator.ABOVE, Comparator.AT_LEAST})
_PARITY_COMPARATORS = frozenset({Comparator.EVEN, Comparator.ODD})


@dataclass(frozen=True)
class ResolutionRule:
    """Machine-checkable rule derived from a market question.

    Args:
        kind: Rule category.
        fact_kind: Fact needed to judge the rule, if any.
        comparator: Comparison to apply to the fact.
        threshold: Price or gas threshold, or the target digit.
        template: Name of the interpreter template that matched.

    """

    kind: RuleKind
    fact_kind: FactKind | None = None
    comparator: Comparator | None = None
    threshold: Decimal | None = None
    template: str | None = None

    def __post_init__(self) -> None:
        """Reject rules whose fields do not fit their kind."""
        if not self.needs_fact:
            return
        if self.fact_kind is None or self.comparator is None:
            msg = f"{self.kind.value} rule requires a fact kind and a comparator"
            raise ValueError(msg)
        if self.kind is RuleKind.THRESHOLD:
            if self.comparator not in _THRESHOLD_COMPARATORS or self.threshold is None:
                msg = f"threshold rule needs ABOVE/AT_LEAST and a threshold, got {self}"
                raise ValueError(msg)
        elif self.kind is RuleKind.PARITY:
            if self.comparator not in _PARITY_COMPARATORS:
                msg = f"parity rule needs EVEN/ODD, got {self.comparator.value}"
                raise ValueError(msg)
        elif (
            self.comparator is not Comparator.EQUALS
            or self.threshold is None
            or self.threshold != self.threshold.to_integral_value()
            or not 0 <= self.threshold <= _MAX_DIGIT
        ):
            msg = f"digit rule needs EQUALS and a digit 0-9, got {self}"
            raise ValueError(msg)

    @property
    def needs_fact(self) -> bool:
        """Return whether judging this rule requires an oracle fact."""
        return self.kind in (RuleKind.THRESHOLD, RuleKind.PARITY, RuleKind.DIGIT)

    def describe(self) -> str:
        """Return a short human-readable description of the rule."""
        if not self.needs_fact:
            return self.kind.value
        fact = self.fact_kind.value if self.fact_kind else "?"
        comparator = self.comparator.value if self.comparator else "?"
        if self.kind is RuleKind.PARITY:
            return f"{fact} last digit {comparator}"
        return f"{fact} {comparator} {self.threshold}"


class Verdict(Enum):
    """Engine decision for one market before it is committed."""

    YES = "YES"
    NO = "NO"
    CANCEL_NO_WINNERS = "CANCEL_NO_WINNERS"
    UNRESOLVABLE = "UNRESOLVABLE"

    @classmethod
    def for_side(cls, side: Side) -> "Verdict":
        """Return the resolve verdict for a winning side."""
        return cls.YES if side is Side.YES else cls.NO

    @property
    def side(self) -> Side | None:
        """Return the winning side for resolve verdicts, else ``None``."""
        if self is Verdict.YES:
            return Side.YES
        if self is Verdict.NO:
            return Side.NO
        return None


@dataclass(frozen=True)
class Decision:
    """A verdict together with its justification.

    Args:
        verdict: What should happen to the market.
        reason: Human-readable explanation for operators.
        fact: The observation the verdict was based on, if any.

    """

    verdict: Verdict
    reason: str
    fact: Fact | None = None


class SettlementKind(Enum):
    """Whether a settlement pays winnings or returns a stake."""

    PAYOUT = "payout"
    REFUND = "refund"


@dataclass(frozen=True)
class SettlementResult:
    """Amounts owed to one participant, in the ledger's smallest unit.

    Refunds always have ``fee == 0`` and ``gross == net``.
    """

    kind: SettlementKind
    gross: int
    fee: int
    net: int


class OutcomeStatus(Enum):
    """What happened to one market during a pass."""

    RESOLVED = "resolved"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"
    UNRESOLVABLE = "unresolvable"
    FAILED = "failed"


@dataclass(frozen=True)
class MarketOutcome:
    """Per-market line of a pass report.

    Args:
        market_id: Ledger identifier of the market.
        question: Question text, empty when the market could not be read.
        status: What happened to the market.
        reason: Operator-facing explanation.
        verdict: Engine verdict, when one was reached.
        tx_hash: Hash of the committed transaction, if any.
        attempts: Failed commit attempts recorded for this market so far.

    """

    market_id: int
    question: str
    status: OutcomeStatus
    reason: str
    verdict: Verdict | None = None
    tx_hash: str | None = None
    attempts: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible representation."""
        return {
            "market_id": self.market_id,
            "question": self.question,
            "status": self.status.value,
            "verdict": self.verdict.value if self.verdict else None,
            "reason": self.reason,
            "tx_hash": self.tx_hash,
            "attempts": self.attempts,
        }


@dataclass
class PassReport:
    """Summary of one resolution pass.

    Attributes:
        outcomes: One entry per market that was processed.
        deferred: Markets left untouched because the budget ran out.
        budget_exhausted: Whether the pass stopped early on its budget.
        duration_seconds: Wall-clock duration of the pass.

    """

    outcomes: list[MarketOutcome] = field(default_factory=list)
    deferred: int = 0
    budget_exhausted: bool = False
    duration_seconds: float = 0.0

    @property
    def checked(self) -> int:
        """Return how many markets were processed."""
        return len(self.outcomes)

    def count(self, status: OutcomeStatus) -> int:
        """Return how many processed markets ended with ``status``."""
        return sum(1 for o in self.outcomes if o.status is status)

    @property
    def resolved(self) -> int:
        """Return how many markets were resolved."""
        return self.count(OutcomeStatus.RESOLVED)

    @property
    def cancelled(self) -> int:
        """Return how many markets were cancelled."""
        return self.count(OutcomeStatus.CANCELLED)

    @property
    def skipped(self) -> int:
        """Return how many markets needed no action."""
        return self.count(OutcomeStatus.SKIPPED)

    @property
    def unresolvable(self) -> int:
        """Return how many markets could not be decided."""
        return self.count(OutcomeStatus.UNRESOLVABLE)

    @property
    def failed(self) -> int:
        """Return how many markets failed with an error."""
        return self.count(OutcomeStatus.FAILED)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-compatible representation."""
        return {
            "checked": self.checked,
            "resolved": self.resolved,
            "cancelled": self.cancelled,
            "skipped": self.skipped,
            "unresolvable": self.unresolvable,
            "failed": self.failed,
            "deferred": self.deferred,
            "budget_exhausted": self.budget_exhausted,
            "duration_seconds": round(self.duration_seconds, 3),
            "markets": [o.to_dict() for o in self.outcomes],
        }


class Confidence(Enum):
    """How strongly the review advisor leans one way."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Recommendation:
    """Advisory outcome for a market that needs a human decision.

    Args:
        market_id: Market under review.
        question: Question text that was searched.
        suggestion: Suggested winning side, or ``None`` when unclear.
        confidence: Strength of the suggestion.
        answer: Search engine's generated answer.
        sources: Documents the answer was drawn from.
        yes_score: Weighted count of YES indicators in the answer.
        no_score: Weighted count of NO indicators in the answer.

    """

    market_id: int
    question: str
    suggestion: Side | None
    confidence: Confidence
    answer: str
    sources: tuple[SearchResult, ...] = ()
    yes_score: int = 0
    no_score: int = 0


@dataclass(frozen=True)
class ClaimReceipt:
    """Result of a submitted claim.

    Args:
        market_id: Market the claim was made against.
        participant: Address that was paid.
        settlement: Amounts computed before the claim was sent.
        tx_hash: Hash of the claim transaction.

    """

    market_id: int
    participant: str
    settlement: SettlementResult
    tx_hash: str
