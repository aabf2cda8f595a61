"""Tests for pari-mutuel payout and refund arithmetic."""

import pytest

from market_resolver.apps.resolver.exceptions import (
    ClaimRejectedError,
    ClaimRejection,
    SettlementError,
)
from market_resolver.apps.resolver.models import SettlementKind, SettlementResult
from market_resolver.apps.resolver.settlement import payout, refund, settle_claim
from market_resolver.core.models import Market, MarketStatus, Side, UserStake

_ONE_ETH = 10**18
_FEE_BPS = 250


def _market(
    status: MarketStatus = MarketStatus.RESOLVED,
    winning_side: Side | None = Side.YES,
    yes_pool: int = 6 * _ONE_ETH,
    no_pool: int = 4 * _ONE_ETH,
) -> Market:
    return Market(
        market_id=1,
        question="Will BTC price be above $95,000?",
        end_time=1_000,
        yes_pool=yes_pool,
        no_pool=no_pool,
        status=status,
        winning_side=winning_side if status is MarketStatus.RESOLVED else None,
    )


def _stake(
    yes_amount: int = _ONE_ETH,
    no_amount: int = 0,
    *,
    claimed: bool = False,
    market_id: int = 1,
) -> UserStake:
    return UserStake(
        market_id=market_id,
        participant="0xabc",
        yes_amount=yes_amount,
        no_amount=no_amount,
        claimed=claimed,
    )


class TestPayout:
    """Tests for the winner's payout formula."""

    def test_worked_example(self) -> None:
        """Pay 1 ETH of a 6/4 ETH pool at 2.5%: gross 1.666..., fee 2.5%."""
        result = payout(_ONE_ETH, 6 * _ONE_ETH, 4 * _ONE_ETH, _FEE_BPS)

        assert result.kind is SettlementKind.PAYOUT
        assert result.gross == 1_666_666_666_666_666_666
        assert result.fee == 41_666_666_666_666_666
        assert result.net == 1_625_000_000_000_000_000

    def test_zero_fee(self) -> None:
        """Pay the whole pool share without a fee."""
        result = payout(3, 3, 7, 0)

        assert result == SettlementResult(kind=SettlementKind.PAYOUT, gross=10, fee=0, net=10)

    def test_zero_stake(self) -> None:
        """Pay nothing for a zero stake."""
        assert payout(0, 10, 5, _FEE_BPS).net == 0

    def test_empty_losing_pool_returns_stake_less_fee(self) -> None:
        """Return the stake minus the fee when nobody bet against it."""
        result = payout(_ONE_ETH, 2 * _ONE_ETH, 0, _FEE_BPS)

        assert result.gross == _ONE_ETH
        assert result.net == _ONE_ETH - _ONE_ETH * _FEE_BPS // 10_000

    def test_truncation_never_exceeds_pool(self) -> None:
        """Keep the sum of payouts and fees within the total pool."""
        stakes = [1, 1, 1]
        winning_pool, losing_pool = sum(stakes), 2
        results = [payout(s, winning_pool, losing_pool, 33) for s in stakes]

        paid = sum(r.net + r.fee for r in results)
        assert paid <= winning_pool + losing_pool
        assert all(r.net + r.fee == r.gross for r in results)

    @pytest.mark.parametrize("fee_bps", [0, 1, 250, 333, 9_999])
    def test_many_winners_lose_at_most_one_unit_each(self, fee_bps: int) -> None:
        """Pay out the whole pool less under one unit per claimant."""
        stakes = [7, 13, 1, 29, 3, 101, 17, 2 * _ONE_ETH + 1, 999_999_999_999]
        winning_pool = sum(stakes)
        losing_pool = 3 * _ONE_ETH + 997
        total_pool = winning_pool + losing_pool

        results = [payout(s, winning_pool, losing_pool, fee_bps) for s in stakes]
        paid = sum(r.net + r.fee for r in results)

        assert total_pool - len(stakes) <= paid <= total_pool

    @pytest.mark.parametrize(
        ("stake", "winning_pool", "losing_pool", "fee_bps", "match"),
        [
            (1, 0, 5, _FEE_BPS, "winning pool must be positive"),
            (-1, 5, 5, _FEE_BPS, "must be non-negative"),
            (1, 5, -5, _FEE_BPS, "must be non-negative"),
            (6, 5, 5, _FEE_BPS, "exceeds winning pool"),
            (1, 5, 5, -1, "fee_bps must be within"),
            (1, 5, 5, 10_001, "fee_bps must be within"),
        ],
    )
    def test_rejects_invalid_inputs(
        self,
        stake: int,
        winning_pool: int,
        losing_pool: int,
        fee_bps: int,
        match: str,
    ) -> None:
        """Raise SettlementError for inputs outside the formula's domain."""
        with pytest.raises(SettlementError, match=match):
            payout(stake, winning_pool, losing_pool, fee_bps)


class TestRefund:
    """Tests for refunds."""

    def test_refund_is_exact(self) -> None:
        """Return the stake with no fee."""
        assert refund(7) == SettlementResult(kind=SettlementKind.REFUND, gross=7, fee=0, net=7)

    def test_rejects_negative(self) -> None:
        """Raise SettlementError for a negative stake."""
        with pytest.raises(SettlementError):
            refund(-1)


class TestSettleClaim:
    """Tests for working out what a participant is owed."""

    def test_winner_is_paid(self) -> None:
        """Pay the winning side's stake pro rata."""
        result = settle_claim(_market(), _stake(), _FEE_BPS)

        assert result.kind is SettlementKind.PAYOUT
        assert result.net == 1_625_000_000_000_000_000

    def test_hedged_stake_pays_winning_side_only(self) -> None:
        """Ignore the losing side of a hedged stake."""
        result = settle_claim(_market(winning_side=Side.NO), _stake(_ONE_ETH, _ONE_ETH), 0)

        assert result.kind is SettlementKind.PAYOUT
        assert result.gross == _ONE_ETH * 10 // 4

    def test_cancelled_market_refunds_both_sides(self) -> None:
        """Refund the whole stake on a cancelled market."""
        market = _market(status=MarketStatus.CANCELLED)

        result = settle_claim(market, _stake(_ONE_ETH, 2 * _ONE_ETH), _FEE_BPS)

        assert result.kind is SettlementKind.REFUND
        assert result.net == 3 * _ONE_ETH
        assert result.fee == 0

    def test_cancelled_market_refunds_whole_pool(self) -> None:
        """Refund exactly both pools across every participant."""
        stakes = [
            _stake(3 * _ONE_ETH, 0),
            _stake(0, 5 * _ONE_ETH + 1),
            _stake(2, 7 * _ONE_ETH),
            _stake(_ONE_ETH + 11, 1),
        ]
        market = _market(
            status=MarketStatus.CANCELLED,
            yes_pool=sum(s.yes_amount for s in stakes),
            no_pool=sum(s.no_amount for s in stakes),
        )

        refunds = [settle_claim(market, s, _FEE_BPS) for s in stakes]

        assert all(r.kind is SettlementKind.REFUND for r in refunds)
        assert sum(r.net for r in refunds) == market.yes_pool + market.no_pool
        assert sum(r.fee for r in refunds) == 0

    def test_empty_winning_pool_refunds(self) -> None:
        """Refund everyone if a resolved market's winning pool is empty."""
        market = _market(winning_side=Side.YES, yes_pool=0, no_pool=4 * _ONE_ETH)

        result = settle_claim(market, _stake(0, _ONE_ETH), _FEE_BPS)

        assert result.kind is SettlementKind.REFUND
        assert result.net == _ONE_ETH

    @pytest.mark.parametrize(
        ("market", "stake", "reason"),
        [
            (
                _market(status=MarketStatus.ENDED),
                _stake(),
                ClaimRejection.NOT_SETTLED,
            ),
            (_market(), _stake(claimed=True), ClaimRejection.ALREADY_CLAIMED),
            (_market(), _stake(0, 0), ClaimRejection.NO_STAKE),
            (_market(), _stake(0, _ONE_ETH), ClaimRejection.LOSING_SIDE),
        ],
    )
    def test_rejections(self, market: Market, stake: UserStake, reason: ClaimRejection) -> None:
        """Reject claims that have nothing to pay."""
        with pytest.raises(ClaimRejectedError) as exc_info:
            settle_claim(market, stake, _FEE_BPS)

        assert exc_info.value.reason is reason

    def test_stake_for_other_market(self) -> None:
        """Refuse a stake that belongs to a different market."""
        with pytest.raises(SettlementError, match="stake for market 2"):
            settle_claim(_market(), _stake(market_id=2), _FEE_BPS)
