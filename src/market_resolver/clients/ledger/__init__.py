"""JSON-RPC client for the prediction market ledger contract."""

from market_resolver.clients.ledger.client import LedgerClient
from market_resolver.clients.ledger.exceptions import (
    LedgerConflictError,
    LedgerError,
    LedgerTransactionError,
    LedgerUnavailableError,
    MarketNotFoundError,
)

__all__ = [
    "LedgerClient",
    "LedgerConflictError",
    "LedgerError",
    "LedgerTransactionError",
    "LedgerUnavailableError",
    "MarketNotFoundError",
]
