"""CoinGecko public price API client."""

from market_resolver.clients.coingecko.client import CoinGeckoClient
from market_resolver.clients.coingecko.exceptions import CoinGeckoAPIError, CoinGeckoError
from market_resolver.clients.coingecko.models import SimplePrice

__all__ = [
    "CoinGeckoAPIError",
    "CoinGeckoClient",
    "CoinGeckoError",
    "SimplePrice",
]
