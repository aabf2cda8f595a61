"""Binance public API client."""

from market_resolver.clients.binance.client import BinanceClient
from market_resolver.clients.binance.exceptions import BinanceAPIError, BinanceError

__all__ = [
    "BinanceAPIError",
    "BinanceClient",
    "BinanceError",
]
