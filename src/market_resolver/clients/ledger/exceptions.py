"""Exception hierarchy for ledger client errors.

Callers distinguish three outcomes of a failed ledger call: every endpoint
was unreachable (retry next pass), the market was already settled by
someone else (benign, do not retry), or a transaction was sent but did not
succeed.
"""


class LedgerError(Exception):
    """Base exception for all ledger client errors."""


class LedgerUnavailableError(LedgerError):
    """Every configured endpoint failed or timed out for one call."""


class LedgerConflictError(LedgerError):
    """A write was rejected because the market or stake was already settled."""


class MarketNotFoundError(LedgerError):
    """The requested market id does not exist on the ledger."""

    def __init__(self, market_id: int) -> None:
        """Initialize the error.

        Args:
            market_id: The id that was looked up.

        """
        super().__init__(f"Market {market_id} does not exist")
        self.market_id = market_id


class LedgerTransactionError(LedgerError):
    """A transaction reverted, was mined with a failure status, or never confirmed.

    Args:
        msg: Human-readable description of the failure.
        tx_hash: Hash of the submitted transaction, if one was sent.

    """

    def __init__(self, msg: str, tx_hash: str | None = None) -> None:
        """Initialize the error.

        Args:
            msg: Human-readable description of the failure.
            tx_hash: Hash of the submitted transaction, if one was sent.

        """
        super().__init__(msg if tx_hash is None else f"{msg} (tx: {tx_hash})")
        self.msg = msg
        self.tx_hash = tx_hash
