"""Etherscan gas tracker client."""

from market_resolver.clients.etherscan.client import EtherscanClient
from market_resolver.clients.etherscan.exceptions import EtherscanAPIError, EtherscanError

__all__ = [
    "EtherscanAPIError",
    "EtherscanClient",
    "EtherscanError",
]
