"""Shared rate-limit cooldown for one resolution pass.

Any component that sees a rate-limit signal (an oracle source or a ledger
endpoint) trips the cooldown; the next network step of the pass waits
until it has elapsed. This is separate from the oracle's per-market retry
backoff.
"""

import asyncio
import logging
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class RateLimitCooldown:
    """Pause the pass for a fixed period after a rate-limit signal.

    Args:
        cooldown_seconds: How long to back off after each trip.
        clock: Monotonic time source.

    """

    def __init__(
        self,
        cooldown_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an idle cooldown."""
        self._cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._until = 0.0
        self._trips = 0

    @property
    def trips(self) -> int:
        """Return how many times the cooldown has been tripped."""
        return self._trips

    @property
    def remaining(self) -> float:
        """Return the seconds left before the next request may be sent."""
        return max(self._until - self._clock(), 0.0)

    def trip(self) -> None:
        """Start (or extend) the cooldown from now."""
        self._trips += 1
        self._until = max(self._until, self._clock() + self._cooldown_seconds)
        logger.warning("Rate limit detected, backing off for %.1fs", self._cooldown_seconds)

    async def pause(self) -> None:
        """Wait out any active cooldown."""
        remaining = self.remaining
        if remaining > 0:
            logger.info("Waiting %.1fs for rate-limit cooldown", remaining)
            await asyncio.sleep(remaining)
