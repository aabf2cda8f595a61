"""Core ledger data models shared across the market resolver.

Define the immutable views of ledger state (``Market``, ``UserStake``) that
flow from the ledger client into the interpreter, decision engine, and
settlement calculator, together with the market lifecycle state machine
and the ``Fact`` values produced by the oracle layer.
All pool and stake amounts are integers in the ledger's smallest unit (wei).
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class Side(Enum):
    """Outcome side of a binary market."""

    YES = "YES"
    NO = "NO"

    @classmethod
    def from_bool(cls, value: bool) -> "Side":  # noqa: FBT001
        """Map the ledger's boolean winning side onto a ``Side``."""
        return cls.YES if value else cls.NO

    def to_bool(self) -> bool:
        """Return the boolean the ledger contract expects for this side."""
        return self is Side.YES

    @property
    def opposite(self) -> "Side":
        """Return the other side."""
        return Side.NO if self is Side.YES else Side.YES


class MarketStatus(Enum):
    """Lifecycle status of a market.

    ``ACTIVE`` and ``ENDED`` are derived from the expiry time.
    ``RESOLVING`` and ``CANCELLING`` mark a commit in flight.
    ``RESOLVED`` and ``CANCELLED`` are terminal.
    """

    ACTIVE = "active"
    ENDED = "ended"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Return whether no further transition is possible."""
        return self in (MarketStatus.RESOLVED, MarketStatus.CANCELLED)


_TRANSITIONS: dict[MarketStatus, frozenset[MarketStatus]] = {
    MarketStatus.ACTIVE: frozenset({MarketStatus.ENDED}),
    MarketStatus.ENDED: frozenset({MarketStatus.RESOLVING, MarketStatus.CANCELLING}),
    MarketStatus.RESOLVING: frozenset({MarketStatus.RESOLVED, MarketStatus.ENDED}),
    MarketStatus.CANCELLING: frozenset({MarketStatus.CANCELLED, MarketStatus.ENDED}),
    MarketStatus.RESOLVED: frozenset(),
    MarketStatus.CANCELLED: frozenset(),
}


def can_transition(current: MarketStatus, target: MarketStatus) -> bool:
    """Return whether the lifecycle allows moving from ``current`` to ``target``.

    A failed commit falls back from ``RESOLVING``/``CANCELLING`` to
    ``ENDED`` so the market is retried on the next pass.
    """
    return target in _TRANSITIONS[current]


def derive_status(
    *,
    end_time: int,
    now: float,
    resolved: bool,
    cancelled: bool,
) -> MarketStatus:
    """Derive a market's status from the ledger's flags and the clock.

    Args:
        end_time: Market expiry as a Unix timestamp in seconds.
        now: Current Unix time in seconds.
        resolved: Ledger ``resolved`` flag.
        cancelled: Ledger ``cancelled`` flag.

    Returns:
        The lifecycle status. Cancellation wins over resolution because
        the contract sets both flags when it auto-cancels.

    """
    if cancelled:
        return MarketStatus.CANCELLED
    if resolved:
        return MarketStatus.RESOLVED
    if now >= end_time:
        return MarketStatus.ENDED
    return MarketStatus.ACTIVE


@dataclass(frozen=True)
class Market:
    """Snapshot of one market as read from the ledger.

    Args:
        market_id: Ledger identifier of the market.
        question: Natural-language question text.
        end_time: Expiry as a Unix timestamp in seconds.
        yes_pool: Total staked on YES.
        no_pool: Total staked on NO.
        status: Lifecycle status at read time.
        winning_side: Winning side, set only when ``status`` is ``RESOLVED``.

    """

    market_id: int
    question: str
    end_time: int
    yes_pool: int
    no_pool: int
    status: MarketStatus
    winning_side: Side | None = None

    def __post_init__(self) -> None:
        """Validate pools and the winning side."""
        if self.yes_pool < 0 or self.no_pool < 0:
            msg = f"pools must be non-negative, got yes={self.yes_pool} no={self.no_pool}"
            raise ValueError(msg)
        if self.winning_side is not None and self.status is not MarketStatus.RESOLVED:
            msg = f"winning_side is only valid for resolved markets, status={self.status.value}"
            raise ValueError(msg)

    @property
    def total_pool(self) -> int:
        """Return the sum of both pools."""
        return self.yes_pool + self.no_pool

    def pool_for(self, side: Side) -> int:
        """Return the pool staked on ``side``."""
        return self.yes_pool if side is Side.YES else self.no_pool


@dataclass(frozen=True)
class UserStake:
    """A participant's stake in one market.

    Args:
        market_id: Ledger identifier of the market.
        participant: Participant address.
        yes_amount: Amount staked on YES.
        no_amount: Amount staked on NO.
        claimed: Whether the stake has already been paid out or refunded.

    """

    market_id: int
    participant: str
    yes_amount: int
    no_amount: int
    claimed: bool

    @property
    def total(self) -> int:
        """Return the participant's total stake across both sides."""
        return self.yes_amount + self.no_amount

    def amount_on(self, side: Side) -> int:
        """Return the amount staked on ``side``."""
        return self.yes_amount if side is Side.YES else self.no_amount


class FactKind(Enum):
    """External facts the oracle layer knows how to fetch."""

    BITCOIN_USD = "bitcoin-usd"
    ETHEREUM_USD = "ethereum-usd"
    SOLANA_USD = "solana-usd"
    ETHEREUM_GAS_GWEI = "ethereum-gas-gwei"


@dataclass(frozen=True)
class Fact:
    """A single observed external value.

    Facts are scoped to one resolution attempt and never persisted.

    Args:
        kind: Which asset or metric was observed.
        value: Observed value (USD price or gas price in gwei).
        source: Name of the source that produced the value.
        observed_at: Unix time in seconds at which the source observed it.

    """

    kind: FactKind
    value: Decimal
    source: str
    observed_at: float

    def age(self, now: float) -> float:
        """Return how many seconds old the observation is at ``now``."""
        return now - self.observed_at
