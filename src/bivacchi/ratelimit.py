"""Request spacing with exponential backoff for one external dependency."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

_BACKOFF_FLOOR = 0.5  # seconds
_BACKOFF_CEILING = 5.0  # seconds


class RateLimiter:
    """Gate calls to a rate-limited provider.

    ``gate()`` waits until at least ``backoff`` seconds have passed since
    the previous permitted call. Throttling doubles the backoff up to a
    ceiling; a success resets it to the floor.

    The slot is reserved before suspending, so several callers started
    together on the same event loop leave one backoff apart without a
    lock.

    Args:
        clock: Monotonic clock in seconds.
        sleep: Coroutine function suspending for a number of seconds.
        floor: Minimum backoff in seconds.
        ceiling: Maximum backoff in seconds.

    Example:
        >>> limiter = RateLimiter(clock=time.monotonic, sleep=asyncio.sleep)
        >>> limiter.backoff
        0.5
    """

    def __init__(
        self,
        clock: Callable[[], float],
        sleep: Callable[[float], Awaitable[None]],
        floor: float = _BACKOFF_FLOOR,
        ceiling: float = _BACKOFF_CEILING,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._floor = floor
        self._ceiling = ceiling
        self._backoff = floor
        self._last_call: float | None = None

    @property
    def backoff(self) -> float:
        """Current minimum spacing between calls, in seconds."""
        return self._backoff

    async def gate(self) -> None:
        """Wait until the next call is permitted."""
        now = self._clock()
        if self._last_call is None:
            wait = 0.0
        else:
            wait = max(0.0, self._last_call + self._backoff - now)
        self._last_call = now + wait
        if wait > 0:
            await self._sleep(wait)

    def report_throttled(self) -> None:
        """Record an HTTP 429: double the backoff, up to the ceiling."""
        self._backoff = min(self._backoff * 2, self._ceiling)
        logger.warning("Provider throttled requests, backoff now %.1fs", self._backoff)

    def report_success(self) -> None:
        """Record a successful call: reset the backoff to the floor."""
        self._backoff = self._floor
