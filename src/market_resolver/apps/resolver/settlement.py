"""Pari-mutuel payout and refund arithmetic.

All amounts are integers in the ledger's smallest unit. Division truncates
so rounding always favours the pool: the sum of every winner's net payout
plus the collected fees never exceeds the total pool, and each claimant is
short by less than one unit at most.
"""

from market_resolver.apps.resolver.exceptions import (
    ClaimRejectedError,
    ClaimRejection,
    SettlementError,
)
from market_resolver.apps.resolver.models import SettlementKind, SettlementResult
from market_resolver.core.models import Market, MarketStatus, UserStake

BPS_DENOMINATOR = 10_000


def payout(stake: int, winning_pool: int, losing_pool: int, fee_bps: int) -> SettlementResult:
    """Compute a winner's share of the whole pool, less the protocol fee.

    ``gross = stake * (winning_pool + losing_pool) // winning_pool``,
    ``fee = gross * fee_bps // 10000`` and ``net = gross - fee``.

    Args:
        stake: The winner's stake on the winning side.
        winning_pool: Total staked on the winning side.
        losing_pool: Total staked on the losing side.
        fee_bps: Fee in basis points.

    Returns:
        The payout; all zero when ``stake`` is zero.

    Raises:
        SettlementError: When the winning pool is empty, an amount is
            negative, the stake exceeds the winning pool, or the fee is
            outside ``[0, 10000]``.

    """
    if winning_pool <= 0:
        msg = f"winning pool must be positive, got {winning_pool}; cancel the market instead"
        raise SettlementError(msg)
    if stake < 0 or losing_pool < 0:
        msg = f"amounts must be non-negative, got stake={stake} losing_pool={losing_pool}"
        raise SettlementError(msg)
    if stake > winning_pool:
        msg = f"stake {stake} exceeds winning pool {winning_pool}"
        raise SettlementError(msg)
    if not 0 <= fee_bps <= BPS_DENOMINATOR:
        msg = f"fee_bps must be within [0, {BPS_DENOMINATOR}], got {fee_bps}"
        raise SettlementError(msg)

    if stake == 0:
        return SettlementResult(kind=SettlementKind.PAYOUT, gross=0, fee=0, net=0)

    gross = stake * (winning_pool + losing_pool) // winning_pool
    fee = gross * fee_bps // BPS_DENOMINATOR
    return SettlementResult(kind=SettlementKind.PAYOUT, gross=gross, fee=fee, net=gross - fee)


def refund(stake: int) -> SettlementResult:
    """Return a stake unchanged, with no fee.

    Raises:
        SettlementError: When ``stake`` is negative.

    """
    if stake < 0:
        msg = f"stake must be non-negative, got {stake}"
        raise SettlementError(msg)
    return SettlementResult(kind=SettlementKind.REFUND, gross=stake, fee=0, net=stake)


def settle_claim(market: Market, stake: UserStake, fee_bps: int) -> SettlementResult:
    """Work out what a participant is owed from a settled market.

    Cancelled markets refund both sides of the stake. Resolved markets pay
    the winning side's stake pro rata; a resolved market whose winning pool
    is empty refunds instead, since there is nobody to pay.

    Args:
        market: Fresh market snapshot.
        stake: The participant's stake in that market.
        fee_bps: Fee in basis points.

    Returns:
        The payout or refund.

    Raises:
        ClaimRejectedError: When the market is not settled, the stake was
            already claimed, the participant staked nothing, or staked only
            on the losing side.
        SettlementError: When the stake belongs to another market.

    """
    if stake.market_id != market.market_id:
        msg = f"stake for market {stake.market_id} used to settle market {market.market_id}"
        raise SettlementError(msg)
    if market.status not in (MarketStatus.RESOLVED, MarketStatus.CANCELLED):
        raise ClaimRejectedError(market.market_id, ClaimRejection.NOT_SETTLED)
    if stake.claimed:
        raise ClaimRejectedError(market.market_id, ClaimRejection.ALREADY_CLAIMED)
    if stake.total == 0:
        raise ClaimRejectedError(market.market_id, ClaimRejection.NO_STAKE)

    if market.status is MarketStatus.CANCELLED or market.winning_side is None:
        return refund(stake.total)

    winning_side = market.winning_side
    winning_pool = market.pool_for(winning_side)
    if winning_pool == 0:
        return refund(stake.total)

    amount = stake.amount_on(winning_side)
    if amount == 0:
        raise ClaimRejectedError(market.market_id, ClaimRejection.LOSING_SIDE)
    return payout(amount, winning_pool, market.pool_for(winning_side.opposite), fee_bps)
