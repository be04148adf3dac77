"""Single-point elevation lookups.

The primary provider (Open-Meteo elevation API) is rate limited and
cached on a ~100 m grid. A secondary provider (Open-Elevation) is only
consulted by the bulk population pass after the primary has failed
repeatedly.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from bivacchi._types import FailureReason, Outcome
from bivacchi.cache import ElevationCache
from bivacchi.config import Config
from bivacchi.providers.base import JsonProvider
from bivacchi.ratelimit import RateLimiter
from bivacchi.runtime import Runtime

logger = logging.getLogger(__name__)


def _as_elevation(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        elevation = float(value)
    except (TypeError, ValueError):
        return None
    return elevation if math.isfinite(elevation) else None


class ElevationResolver(JsonProvider):
    """Resolve ground elevation in metres for a coordinate.

    ``resolve`` checks the grid cache first; on a miss it waits for the
    rate limiter and performs exactly one request. There is no retry
    loop here: callers that need retries own that policy.

    Expired cache entries are purged once, on construction.

    Args:
        runtime: Session runtime performing requests and providing clocks.
        config: Configuration snapshot with provider endpoints.
        cache: Grid cache shared by every lookup in the session.
        limiter: Rate limiter for the primary provider. Built from the
            runtime's clock when omitted.

    Example:
        >>> resolver = ElevationResolver(runtime, config, ElevationCache(config))
        >>> outcome = await resolver.resolve(46.43, 12.05)  # doctest: +SKIP
        >>> outcome.value
        2210.0
    """

    _name = "open-meteo-elevation"

    def __init__(
        self,
        runtime: Runtime,
        config: Config,
        cache: ElevationCache,
        limiter: RateLimiter | None = None,
    ) -> None:
        super().__init__(runtime, config)
        self._cache = cache
        self._limiter = limiter or RateLimiter(clock=runtime.monotonic, sleep=runtime.delay)
        self._cache.purge_expired(now_ms=runtime.now_ms())

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    async def resolve(self, lat: float, lon: float) -> Outcome[float]:
        """Return the elevation at *lat*/*lon* from cache or the primary provider."""
        cached = self._cache.get(lat, lon, now_ms=self._runtime.now_ms())
        if cached is not None:
            return Outcome.success(cached)

        await self._limiter.gate()
        outcome = await self._get_json(
            self._config.elevation_url,
            {"latitude": lat, "longitude": lon},
        )
        if not outcome.ok:
            if outcome.failure is FailureReason.RATE_LIMITED:
                self._limiter.report_throttled()
            return outcome  # type: ignore[return-value]

        body = outcome.value
        values = body.get("elevation") if isinstance(body, dict) else None
        elevation = _as_elevation(values[0]) if isinstance(values, list) and values else None
        if elevation is None:
            return Outcome.fail(
                FailureReason.MALFORMED_RESPONSE, "no numeric elevation in response"
            )

        self._cache.store(lat, lon, elevation, now_ms=self._runtime.now_ms())
        self._limiter.report_success()
        return Outcome.success(elevation)

    async def resolve_fallback(self, lat: float, lon: float) -> Outcome[float]:
        """Look up *lat*/*lon* on the secondary provider, bypassing cache and limiter."""
        outcome = await self._get_json(
            self._config.fallback_elevation_url,
            {"locations": f"{lat},{lon}"},
        )
        if not outcome.ok:
            return outcome  # type: ignore[return-value]

        body = outcome.value
        results = body.get("results") if isinstance(body, dict) else None
        first = results[0] if isinstance(results, list) and results else None
        elevation = _as_elevation(first.get("elevation")) if isinstance(first, dict) else None
        if elevation is None:
            return Outcome.fail(
                FailureReason.MALFORMED_RESPONSE, "no elevation in fallback response"
            )
        return Outcome.success(elevation)
