"""Exception hierarchy for the resolver application.

Oracle errors are raised by fact sources and caught by the oracle's
fallback logic; settlement and claim errors surface to the caller.
"""

from enum import Enum

from market_resolver.core.models import MarketStatus


class ResolverError(Exception):
    """Base exception for resolver application errors."""


class OracleError(ResolverError):
    """A fact source failed to produce a usable observation.

    Args:
        source: Name of the failing source.
        msg: Human-readable description of the failure.

    """

    def __init__(self, source: str, msg: str) -> None:
        """Initialize the error.

        Args:
            source: Name of the failing source.
            msg: Human-readable description of the failure.

        """
        super().__init__(f"{source}: {msg}")
        self.source = source
        self.msg = msg


class OracleRateLimitError(OracleError):
    """A fact source reported throttling."""


class SettlementError(ResolverError):
    """Payout arithmetic was called with inputs that violate its contract."""


class ClaimRejection(Enum):
    """Reason a claim cannot be paid."""

    NOT_SETTLED = "market is not resolved or cancelled"
    ALREADY_CLAIMED = "stake was already claimed"
    NO_STAKE = "participant has no stake in this market"
    LOSING_SIDE = "participant has no stake on the winning side"


class ClaimRejectedError(ResolverError):
    """A claim was refused before any transaction was sent."""

    def __init__(self, market_id: int, reason: ClaimRejection) -> None:
        """Initialize the error.

        Args:
            market_id: Market the claim was made against.
            reason: Why the claim was refused.

        """
        super().__init__(f"Claim on market {market_id} rejected: {reason.value}")
        self.market_id = market_id
        self.reason = reason


class InvalidTransitionError(ResolverError):
    """A lifecycle transition outside the allowed table was requested."""

    def __init__(self, market_id: int, current: MarketStatus, target: MarketStatus) -> None:
        """Initialize the error.

        Args:
            market_id: Market whose transition was refused.
            current: Status the market is in.
            target: Status that was requested.

        """
        super().__init__(
            f"Market {market_id} cannot move from {current.value} to {target.value}",
        )
        self.market_id = market_id
        self.current = current
        self.target = target
