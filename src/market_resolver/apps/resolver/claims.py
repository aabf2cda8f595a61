"""Quote and submit participant claims against settled markets."""

import logging

from market_resolver.apps.resolver.exceptions import ClaimRejectedError, ClaimRejection
from market_resolver.apps.resolver.models import (
    ClaimReceipt,
    SettlementKind,
    SettlementResult,
)
from market_resolver.apps.resolver.settlement import settle_claim
from market_resolver.clients.ledger.exceptions import LedgerConflictError
from market_resolver.core.protocols import Ledger

logger = logging.getLogger(__name__)


class ClaimService:
    """Validate, price, and submit claims.

    Amounts are always computed from a fresh read of the market and the
    participant's stake. The ledger's ``claimed`` flag is the only guard
    against paying twice.

    Args:
        ledger: Ledger to read from and submit claims to.
        fee_bps: Fee in basis points applied to winning payouts.

    """

    def __init__(self, ledger: Ledger, fee_bps: int) -> None:
        """Initialize the service."""
        self._ledger = ledger
        self._fee_bps = fee_bps

    async def quote(self, market_id: int, participant: str) -> SettlementResult:
        """Return what ``participant`` would receive from ``market_id`` right now.

        Raises:
            ClaimRejectedError: When the participant has nothing to claim.

        """
        market = await self._ledger.read_market(market_id)
        stake = await self._ledger.read_user_stake(market_id, participant)
        return settle_claim(market, stake, self._fee_bps)

    async def claim(self, market_id: int, participant: str) -> ClaimReceipt:
        """Submit a claim for ``participant``.

        Claims are signed by the ledger's own account, so ``participant``
        must be that account's address.

        Raises:
            ClaimRejectedError: When the participant has nothing to claim,
                including when the ledger reports the stake as already
                claimed at submission time.

        """
        settlement = await self.quote(market_id, participant)
        refund = settlement.kind is SettlementKind.REFUND
        try:
            tx_hash = await self._ledger.submit_claim(market_id, refund=refund)
        except LedgerConflictError as exc:
            raise ClaimRejectedError(market_id, ClaimRejection.ALREADY_CLAIMED) from exc

        logger.info(
            "Claimed %s of %d on market %d for %s (tx: %s)",
            settlement.kind.value,
            settlement.net,
            market_id,
            participant,
            tx_hash,
        )
        return ClaimReceipt(
            market_id=market_id,
            participant=participant,
            settlement=settlement,
            tx_hash=tx_hash,
        )
