"""Async client for the prediction market ledger contract.

Read market and stake state and submit resolve, cancel, and claim
transactions over JSON-RPC. ``web3`` is synchronous, so every call runs in
a worker thread via ``asyncio.to_thread`` and is bounded by
``asyncio.wait_for``. Endpoints are tried in configured order; the first
one to answer wins. A throttled endpoint triggers the ``on_rate_limit``
callback so the caller can back off before its next request.

Writes follow the build, sign, send, and wait-for-receipt flow with a 25%
gas price buffer. A revert during gas estimation that says the market is
already settled is raised as ``LedgerConflictError``. A write fails over to
the next endpoint only while nothing has been broadcast; a failure after the
broadcast began is raised as ``LedgerTransactionError`` instead.
"""

import asyncio
import logging
import threading
import time
from collections.abc import Callable, Sequence
from typing import Any

from web3 import Web3
from web3.contract import Contract
from web3.exceptions import ContractLogicError
from web3.types import Nonce, TxParams, Wei

from market_resolver.clients.ledger.exceptions import (
    LedgerConflictError,
    LedgerError,
    LedgerTransactionError,
    LedgerUnavailableError,
    MarketNotFoundError,
)
from market_resolver.core.models import Market, MarketStatus, Side, UserStake, derive_status

logger = logging.getLogger(__name__)

_GAS_PRICE_MULTIPLIER = 1.25
_HTTP_TOO_MANY_REQUESTS = 429
_RATE_LIMIT_MARKERS = ("429", "rate limit", "too many requests")
_CONFLICT_MARKERS = (
    "alreadyresolved",
    "alreadycancelled",
    "alreadyclaimed",
    "marketresolved",
    "marketcancelled",
)

_LEDGER_ABI: list[dict[str, Any]] = [
    {
        "name": "marketCount",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "markets",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "marketId", "type": "uint256"}],
        "outputs": [
            {"name": "question", "type": "string"},
            {"name": "endTime", "type": "uint256"},
            {"name": "yesPool", "type": "uint256"},
            {"name": "noPool", "type": "uint256"},
            {"name": "resolved", "type": "bool"},
            {"name": "winningSide", "type": "bool"},
            {"name": "exists", "type": "bool"},
            {"name": "cancelled", "type": "bool"},
        ],
    },
    {
        "name": "getUserBet",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "marketId", "type": "uint256"},
            {"name": "user", "type": "address"},
        ],
        "outputs": [
            {"name": "yesAmount", "type": "uint256"},
            {"name": "noAmount", "type": "uint256"},
            {"name": "claimed", "type": "bool"},
        ],
    },
    {
        "name": "resolveMarket",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "marketId", "type": "uint256"},
            {"name": "outcome", "type": "bool"},
        ],
        "outputs": [],
    },
    {
        "name": "cancelMarket",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "marketId", "type": "uint256"}],
        "outputs": [],
    },
    {
        "name": "claimWinnings",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "marketId", "type": "uint256"}],
        "outputs": [],
    },
    {
        "name": "claimRefund",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "marketId", "type": "uint256"}],
        "outputs": [],
    },
]


def _is_rate_limited(exc: BaseException) -> bool:
    """Return whether an RPC failure looks like endpoint throttling."""
    response = getattr(exc, "response", None)
    if getattr(response, "status_code", None) == _HTTP_TOO_MANY_REQUESTS:
        return True
    text = str(exc).lower()
    return any(marker in text for marker in _RATE_LIMIT_MARKERS)


def _is_conflict(exc: ContractLogicError) -> bool:
    """Return whether a revert reason says the target was already settled."""
    text = str(exc).lower().replace(" ", "").replace("_", "")
    return any(marker in text for marker in _CONFLICT_MARKERS)


class _SendAttempt:
    """Hand-off between a worker thread sending a transaction and its caller.

    The caller may stop waiting while the worker is still running. Once the
    caller abandons the attempt the worker must not broadcast, and once the
    worker has started broadcasting the caller must not retry elsewhere.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._abandoned = False
        self._broadcasting = False

    def begin_broadcast(self) -> bool:
        """Claim the right to broadcast; False if the caller already gave up."""
        with self._lock:
            if self._abandoned:
                return False
            self._broadcasting = True
            return True

    def abandon(self) -> bool:
        """Give up on the attempt and return whether a broadcast had started."""
        with self._lock:
            self._abandoned = True
            return self._broadcasting


class _Endpoint:
    """One JSON-RPC endpoint with its bound contract instance."""

    def __init__(self, url: str, contract_address: str, timeout: float) -> None:
        self.url = url
        self.w3 = Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": timeout}))
        self.contract: Contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=_LEDGER_ABI,
        )


class LedgerClient:
    """Async client for the market ledger contract with endpoint fallback.

    Args:
        endpoints: JSON-RPC URLs, tried in order on every call.
        contract_address: Address of the ledger contract.
        private_key: Hex-encoded key of the resolver account. Required for
            writes only.
        timeout: Per-call timeout in seconds for reads and sends.
        receipt_timeout: Seconds to wait for a transaction receipt.
        read_delay: Seconds to pause between consecutive market reads when
            enumerating open markets.
        on_rate_limit: Called whenever an endpoint reports throttling.

    """

    def __init__(
        self,
        endpoints: Sequence[str],
        contract_address: str,
        *,
        private_key: str | None = None,
        timeout: float = 30.0,
        receipt_timeout: float = 60.0,
        read_delay: float = 0.0,
        on_rate_limit: Callable[[], None] | None = None,
    ) -> None:
        """Initialize the ledger client.

        Raises:
            ValueError: When no endpoint is configured.

        """
        if not endpoints:
            msg = "at least one ledger endpoint is required"
            raise ValueError(msg)
        self._endpoints = [_Endpoint(url, contract_address, timeout) for url in endpoints]
        self._timeout = timeout
        self._receipt_timeout = receipt_timeout
        self._read_delay = read_delay
        self._on_rate_limit = on_rate_limit
        self._private_key = private_key or None
        self._address: str | None = None
        if self._private_key is not None:
            account = self._endpoints[0].w3.eth.account.from_key(self._private_key)
            self._address = account.address

    @property
    def address(self) -> str | None:
        """Return the signing account's address, or ``None`` for a read-only client."""
        return self._address

    async def market_count(self) -> int:
        """Return the number of markets ever created."""
        return int(await self._read("marketCount"))

    async def list_open_markets(self) -> list[int]:
        """Return ids of markets that are neither resolved nor cancelled.

        A market whose read fails is kept in the result so that the caller
        retries it and records the failure against that market.
        """
        count = await self.market_count()
        open_ids: list[int] = []
        for market_id in range(count):
            if market_id and self._read_delay > 0:
                await asyncio.sleep(self._read_delay)
            try:
                raw = await self._read("markets", market_id)
            except LedgerUnavailableError:
                logger.warning("Could not read market %d while listing", market_id)
                open_ids.append(market_id)
                continue
            _question, _end, _yes, _no, resolved, _side, exists, cancelled = raw
            if exists and not resolved and not cancelled:
                open_ids.append(market_id)
        return open_ids

    async def read_market(self, market_id: int) -> Market:
        """Return a fresh snapshot of one market.

        Raises:
            MarketNotFoundError: When the contract reports no such market.
            LedgerUnavailableError: When every endpoint fails.

        """
        raw = await self._read("markets", market_id)
        return self._parse_market(market_id, raw, time.time())

    async def read_user_stake(self, market_id: int, participant: str) -> UserStake:
        """Return a participant's stake in one market."""
        yes_amount, no_amount, claimed = await self._read(
            "getUserBet",
            market_id,
            Web3.to_checksum_address(participant),
        )
        return UserStake(
            market_id=market_id,
            participant=participant,
            yes_amount=int(yes_amount),
            no_amount=int(no_amount),
            claimed=bool(claimed),
        )

    async def submit_resolve(self, market_id: int, side: Side) -> str:
        """Resolve a market in favour of ``side`` and return the transaction hash."""
        return await self._write("resolveMarket", market_id, side.to_bool())

    async def submit_cancel(self, market_id: int) -> str:
        """Cancel a market and return the transaction hash."""
        return await self._write("cancelMarket", market_id)

    async def submit_claim(self, market_id: int, *, refund: bool) -> str:
        """Claim winnings, or a refund when ``refund`` is set, for the signer."""
        return await self._write("claimRefund" if refund else "claimWinnings", market_id)

    @staticmethod
    def _parse_market(market_id: int, raw: Sequence[Any], now: float) -> Market:
        """Build a ``Market`` from the raw ``markets(uint256)`` tuple."""
        question, end_time, yes_pool, no_pool, resolved, winning_side, exists, cancelled = raw
        if not exists:
            raise MarketNotFoundError(market_id)
        status = derive_status(
            end_time=int(end_time),
            now=now,
            resolved=bool(resolved),
            cancelled=bool(cancelled),
        )
        return Market(
            market_id=market_id,
            question=str(question),
            end_time=int(end_time),
            yes_pool=int(yes_pool),
            no_pool=int(no_pool),
            status=status,
            winning_side=Side.from_bool(bool(winning_side))
            if status is MarketStatus.RESOLVED
            else None,
        )

    def _note_failure(self, endpoint: _Endpoint, action: str, exc: BaseException) -> None:
        """Log an endpoint failure and report throttling to the callback."""
        if _is_rate_limited(exc):
            logger.warning("Rate limited by %s during %s", endpoint.url, action)
            if self._on_rate_limit is not None:
                self._on_rate_limit()
        else:
            logger.warning("Endpoint %s failed during %s: %s", endpoint.url, action, exc)

    async def _read(self, fn_name: str, *args: Any) -> Any:
        """Call a view function, falling back across endpoints.

        Raises:
            LedgerError: When the call reverts.
            LedgerUnavailableError: When every endpoint fails or times out.

        """
        for endpoint in self._endpoints:
            call = getattr(endpoint.contract.functions, fn_name)(*args).call
            try:
                return await asyncio.wait_for(asyncio.to_thread(call), timeout=self._timeout)
            except ContractLogicError as exc:
                msg = f"{fn_name}{args} reverted: {exc}"
                raise LedgerError(msg) from exc
            except Exception as exc:
                self._note_failure(endpoint, fn_name, exc)
        msg = f"{fn_name}{args} failed on all {len(self._endpoints)} endpoints"
        raise LedgerUnavailableError(msg)

    def _send(
        self,
        endpoint: _Endpoint,
        fn_name: str,
        args: tuple[Any, ...],
        attempt: _SendAttempt,
    ) -> str:
        """Build, sign, and broadcast one transaction (blocking).

        Gas estimation inside ``build_transaction`` surfaces reverts as
        ``ContractLogicError`` before anything is broadcast.
        """
        w3 = endpoint.w3
        address = Web3.to_checksum_address(str(self._address))
        tx_params: TxParams = {
            "from": address,
            "nonce": Nonce(w3.eth.get_transaction_count(address, "pending")),
            "gasPrice": Wei(int(w3.eth.gas_price * _GAS_PRICE_MULTIPLIER)),
        }
        tx = getattr(endpoint.contract.functions, fn_name)(*args).build_transaction(tx_params)
        signed = w3.eth.account.sign_transaction(tx, private_key=self._private_key)
        if not attempt.begin_broadcast():
            msg = f"{fn_name}{args} abandoned before broadcast"
            raise TimeoutError(msg)
        tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)

    async def _write(self, fn_name: str, *args: Any) -> str:
        """Submit a transaction and wait for a successful receipt.

        Returns:
            The transaction hash as a ``0x``-prefixed hex string.

        Raises:
            LedgerError: When no signing key is configured.
            LedgerConflictError: When the contract reports the target as
                already settled.
            LedgerTransactionError: When the call reverts for another
                reason, the receipt status is failed, or no receipt arrives.
                Also raised when an endpoint fails after the broadcast began,
                since the transaction may already be in flight.
            LedgerUnavailableError: When every endpoint fails before sending.

        """
        if self._private_key is None:
            msg = f"cannot {fn_name}: no signing key configured"
            raise LedgerError(msg)

        for endpoint in self._endpoints:
            attempt = _SendAttempt()
            try:
                tx_hash = await asyncio.wait_for(
                    asyncio.to_thread(self._send, endpoint, fn_name, args, attempt),
                    timeout=self._timeout,
                )
            except ContractLogicError as exc:
                if _is_conflict(exc):
                    msg = f"{fn_name}{args} conflicts with ledger state: {exc}"
                    raise LedgerConflictError(msg) from exc
                msg = f"{fn_name}{args} reverted: {exc}"
                raise LedgerTransactionError(msg) from exc
            except Exception as exc:
                if attempt.abandon():
                    msg = (
                        f"{fn_name}{args} broadcast via {endpoint.url} has unknown state: "
                        f"{exc!r}"
                    )
                    raise LedgerTransactionError(msg) from exc
                self._note_failure(endpoint, fn_name, exc)
                continue
            return await self._await_receipt(endpoint, fn_name, tx_hash)

        msg = f"{fn_name}{args} failed on all {len(self._endpoints)} endpoints"
        raise LedgerUnavailableError(msg)

    async def _await_receipt(self, endpoint: _Endpoint, fn_name: str, tx_hash: str) -> str:
        """Wait for a receipt on the endpoint that accepted the transaction."""
        try:
            receipt = await asyncio.wait_for(
                asyncio.to_thread(
                    endpoint.w3.eth.wait_for_transaction_receipt,
                    tx_hash,
                    timeout=self._receipt_timeout,
                ),
                timeout=self._receipt_timeout + self._timeout,
            )
        except Exception as exc:
            msg = f"{fn_name} not confirmed: {exc}"
            raise LedgerTransactionError(msg, tx_hash=tx_hash) from exc

        if receipt["status"] != 1:
            msg = f"{fn_name} reverted on-chain"
            raise LedgerTransactionError(msg, tx_hash=tx_hash)
        logger.info("%s confirmed (gas used: %d, tx: %s)", fn_name, receipt["gasUsed"], tx_hash)
        return tx_hash
