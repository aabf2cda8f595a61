"""Structural protocols for pluggable fact sources and ledgers.

Define the ``FactSource`` and ``Ledger`` interfaces that decouple the
resolution engine from concrete HTTP and JSON-RPC clients. Any class whose
shape matches these protocols can be used without explicit inheritance
(structural subtyping), which is how the tests substitute in-memory fakes.
"""

from typing import Protocol, runtime_checkable

from market_resolver.core.models import Fact, FactKind, Market, Side, UserStake


@runtime_checkable
class FactSource(Protocol):
    """Async provider of one observed external value.

    Implementors raise on any failure (transport, status, payload, or a
    non-positive value) instead of returning a placeholder.
    """

    @property
    def name(self) -> str:
        """Return the source name used in logs and on ``Fact.source``."""
        ...

    def supports(self, kind: FactKind) -> bool:
        """Return whether this source can observe ``kind``."""
        ...

    async def fetch(self, kind: FactKind) -> Fact:
        """Return a fresh observation of ``kind``."""
        ...


@runtime_checkable
class Ledger(Protocol):
    """Authoritative store of markets and stakes.

    Write methods return a transaction reference (hash) and raise
    ``LedgerConflictError`` when the market was already settled.
    """

    async def list_open_markets(self) -> list[int]:
        """Return ids of markets that are neither resolved nor cancelled."""
        ...

    async def read_market(self, market_id: int) -> Market:
        """Return a fresh snapshot of one market."""
        ...

    async def read_user_stake(self, market_id: int, participant: str) -> UserStake:
        """Return a participant's stake in one market."""
        ...

    async def submit_resolve(self, market_id: int, side: Side) -> str:
        """Resolve a market in favour of ``side``."""
        ...

    async def submit_cancel(self, market_id: int) -> str:
        """Cancel a market so every participant can be refunded."""
        ...

    async def submit_claim(self, market_id: int, *, refund: bool) -> str:
        """Claim the signer's winnings, or refund when ``refund`` is set."""
        ...
