"""Fetch one fresh fact with primary/fallback source selection.

Each fact kind has an ordered chain of at most two sources. The primary is
tried first under its own timeout; on any failure (timeout, error status,
malformed payload, rate-limit signal, non-positive value, or a stale
observation) the fallback is tried. When every source fails the oracle
returns ``None`` and the caller decides what to do; it never substitutes a
default value. Nothing is cached between calls.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Mapping, Sequence

from market_resolver.apps.resolver.config import OracleConfig
from market_resolver.apps.resolver.exceptions import OracleError, OracleRateLimitError
from market_resolver.apps.resolver.throttle import RateLimitCooldown
from market_resolver.core.config import ConfigError
from market_resolver.core.models import Fact, FactKind
from market_resolver.core.protocols import FactSource

logger = logging.getLogger(__name__)


class FactOracle:
    """Resolve a ``FactKind`` into a single fresh ``Fact``.

    Args:
        chains: Ordered sources per fact kind, primary first.
        timeout: Per-source timeout in seconds.
        max_fact_age: Oldest acceptable observation, in seconds.
        cooldown: Shared rate-limit cooldown, tripped on throttling and
            honoured before each source call.
        clock: Wall-clock time source used for staleness checks.

    """

    def __init__(
        self,
        chains: Mapping[FactKind, Sequence[FactSource]],
        *,
        timeout: float = 10.0,
        max_fact_age: float = 300.0,
        cooldown: RateLimitCooldown | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the oracle."""
        self._chains = {kind: tuple(chain) for kind, chain in chains.items()}
        self._timeout = timeout
        self._max_fact_age = max_fact_age
        self._cooldown = cooldown
        self._clock = clock

    @classmethod
    def from_config(
        cls,
        config: OracleConfig,
        sources: Mapping[str, FactSource],
        cooldown: RateLimitCooldown | None = None,
        clock: Callable[[], float] = time.time,
    ) -> "FactOracle":
        """Wire named sources into per-kind chains as configured.

        Raises:
            ConfigError: When a configured source is missing or cannot
                observe the fact kind it is configured for.

        """
        chains: dict[FactKind, list[FactSource]] = {}
        for kind, names in config.sources.items():
            for name in names:
                source = sources.get(name)
                if source is None or not source.supports(kind):
                    msg = f"Source {name!r} cannot provide {kind.value}"
                    raise ConfigError(msg)
                chains.setdefault(kind, []).append(source)
        return cls(
            chains,
            timeout=config.timeout_seconds,
            max_fact_age=config.max_fact_age_seconds,
            cooldown=cooldown,
            clock=clock,
        )

    async def fetch_fact(self, kind: FactKind) -> Fact | None:
        """Return a fresh observation of ``kind``, or ``None`` if every source failed."""
        chain = self._chains.get(kind, ())
        if not chain:
            logger.warning("No source configured for %s", kind.value)
            return None

        for position, source in enumerate(chain):
            if position:
                logger.info("Falling back to %s for %s", source.name, kind.value)
            if self._cooldown is not None:
                await self._cooldown.pause()
            fact = await self._try_source(source, kind)
            if fact is not None:
                return fact

        logger.warning("All %d source(s) failed for %s", len(chain), kind.value)
        return None

    async def _try_source(self, source: FactSource, kind: FactKind) -> Fact | None:
        """Fetch from one source and apply the freshness check."""
        try:
            fact = await asyncio.wait_for(source.fetch(kind), timeout=self._timeout)
        except TimeoutError:
            logger.warning(
                "%s timed out after %.1fs for %s", source.name, self._timeout, kind.value
            )
            return None
        except OracleRateLimitError as exc:
            logger.warning("%s rate limited for %s: %s", source.name, kind.value, exc.msg)
            if self._cooldown is not None:
                self._cooldown.trip()
            return None
        except OracleError as exc:
            logger.warning("%s failed for %s: %s", source.name, kind.value, exc.msg)
            return None

        age = fact.age(self._clock())
        if age > self._max_fact_age:
            logger.warning(
                "%s returned a stale %s (%.0fs old, limit %.0fs)",
                source.name,
                kind.value,
                age,
                self._max_fact_age,
            )
            return None
        logger.debug("%s %s = %s", source.name, kind.value, fact.value)
        return fact
