"""Tests for the shared rate-limit cooldown."""

from unittest.mock import AsyncMock, patch

import pytest

from market_resolver.apps.resolver.throttle import RateLimitCooldown

_COOLDOWN = 5.0


class _Clock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        """Start at 100 seconds."""
        self.now = 100.0

    def __call__(self) -> float:
        """Return the current time."""
        return self.now


class TestRateLimitCooldown:
    """Tests for RateLimitCooldown."""

    def test_idle_by_default(self) -> None:
        """Report no remaining wait before any trip."""
        cooldown = RateLimitCooldown(_COOLDOWN, clock=_Clock())

        assert cooldown.remaining == 0
        assert cooldown.trips == 0

    def test_trip_starts_cooldown(self) -> None:
        """Count down from the trip time."""
        clock = _Clock()
        cooldown = RateLimitCooldown(_COOLDOWN, clock=clock)

        cooldown.trip()
        clock.now += 2

        assert cooldown.trips == 1
        assert cooldown.remaining == pytest.approx(3.0)

    def test_repeated_trip_extends(self) -> None:
        """Restart the window on a later trip."""
        clock = _Clock()
        cooldown = RateLimitCooldown(_COOLDOWN, clock=clock)

        cooldown.trip()
        clock.now += 4
        cooldown.trip()

        assert cooldown.remaining == pytest.approx(_COOLDOWN)

    @pytest.mark.asyncio
    async def test_pause_sleeps_for_remaining(self) -> None:
        """Sleep for whatever is left of the cooldown."""
        clock = _Clock()
        cooldown = RateLimitCooldown(_COOLDOWN, clock=clock)
        cooldown.trip()
        clock.now += 1

        with patch(
            "market_resolver.apps.resolver.throttle.asyncio.sleep", new=AsyncMock()
        ) as mock_sleep:
            await cooldown.pause()

        mock_sleep.assert_awaited_once_with(pytest.approx(4.0))

    @pytest.mark.asyncio
    async def test_pause_is_free_when_idle(self) -> None:
        """Return at once when no cooldown is active."""
        cooldown = RateLimitCooldown(_COOLDOWN, clock=_Clock())

        with patch(
            "market_resolver.apps.resolver.throttle.asyncio.sleep", new=AsyncMock()
        ) as mock_sleep:
            await cooldown.pause()

        mock_sleep.assert_not_awaited()
