"""Run resolution passes periodically until a shutdown signal arrives.

Passes never overlap: the next one starts only after the previous pass has
finished and the interval has elapsed. SIGINT and SIGTERM stop the loop
after the current pass.
"""

import asyncio
import contextlib
import logging
import signal

from market_resolver.apps.resolver.coordinator import ResolutionCoordinator
from market_resolver.apps.resolver.models import PassReport

logger = logging.getLogger(__name__)


class ResolutionScheduler:
    """Periodic driver for ``ResolutionCoordinator.run_pass``.

    Args:
        coordinator: Coordinator whose passes are scheduled.
        interval_seconds: Pause between the end of one pass and the start
            of the next.
        max_passes: Stop after this many passes; run forever when ``None``.

    """

    def __init__(
        self,
        coordinator: ResolutionCoordinator,
        *,
        interval_seconds: float = 600.0,
        max_passes: int | None = None,
    ) -> None:
        """Initialize the scheduler."""
        self._coordinator = coordinator
        self._interval_seconds = interval_seconds
        self._max_passes = max_passes
        self._lock = asyncio.Lock()
        self._stop: asyncio.Event | None = None
        self._passes = 0

    @property
    def passes(self) -> int:
        """Return how many passes have been attempted."""
        return self._passes

    async def run(self) -> None:
        """Run passes until shutdown or ``max_passes`` is reached."""
        loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        loop.add_signal_handler(signal.SIGINT, self._handle_shutdown)
        loop.add_signal_handler(signal.SIGTERM, self._handle_shutdown)
        logger.info("[RESOLVER] Scheduler started, interval %.0fs", self._interval_seconds)
        try:
            while not self._stop.is_set():
                await self.run_once()
                if self._max_passes is not None and self._passes >= self._max_passes:
                    break
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(self._stop.wait(), timeout=self._interval_seconds)
        finally:
            loop.remove_signal_handler(signal.SIGINT)
            loop.remove_signal_handler(signal.SIGTERM)
            logger.info("[RESOLVER] Scheduler stopped after %d pass(es)", self._passes)

    async def run_once(self) -> PassReport | None:
        """Run a single pass unless one is already in progress.

        Returns:
            The pass report, or ``None`` when the pass was skipped or failed.

        """
        if self._lock.locked():
            logger.warning("[RESOLVER] Previous pass still running, skipping this trigger")
            return None
        async with self._lock:
            self._passes += 1
            try:
                return await self._coordinator.run_pass()
            except Exception:
                logger.exception("[RESOLVER] Pass %d failed", self._passes)
                return None

    def _handle_shutdown(self) -> None:
        """Stop the loop after the current pass on SIGINT/SIGTERM."""
        logger.info("Shutdown signal received")
        if self._stop is not None:
            self._stop.set()
