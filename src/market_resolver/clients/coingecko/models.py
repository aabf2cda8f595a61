"""Typed data models for CoinGecko responses."""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class SimplePrice:
    """Spot price of one coin from the ``/simple/price`` endpoint.

    Args:
        coin_id: CoinGecko coin identifier (e.g. ``bitcoin``).
        usd: Price in US dollars.
        last_updated_at: Unix time in seconds of CoinGecko's last update,
            or ``None`` when the field was absent.

    """

    coin_id: str
    usd: Decimal
    last_updated_at: int | None
