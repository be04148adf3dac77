"""Hourly and daily forecast access (Open-Meteo forecast API)."""

from __future__ import annotations

import logging
from typing import Any

from bivacchi._types import FailureReason, Outcome
from bivacchi.providers.base import JsonProvider

logger = logging.getLogger(__name__)

HOURLY_VARIABLES = ("temperature_2m", "snowfall", "snow_depth")
DAILY_VARIABLES = ("temperature_2m_max", "temperature_2m_min")

_PAST_DAYS = 2
_FORECAST_DAYS = 1


class ForecastProvider(JsonProvider):
    """Fetch the recent-past-plus-today forecast for a point.

    The request covers two past days and the current day with hourly
    temperature, snowfall and snow depth, and daily min/max temperature,
    in the location's own timezone.
    """

    _name = "open-meteo-forecast"

    async def fetch(self, lat: float, lon: float) -> Outcome[dict[str, Any]]:
        """Return the decoded forecast body for *lat*/*lon*."""
        outcome = await self._get_json(
            self._config.forecast_url,
            {
                "latitude": lat,
                "longitude": lon,
                "hourly": ",".join(HOURLY_VARIABLES),
                "daily": ",".join(DAILY_VARIABLES),
                "past_days": _PAST_DAYS,
                "forecast_days": _FORECAST_DAYS,
                "timezone": "auto",
            },
        )
        if outcome.ok and not isinstance(outcome.value, dict):
            return Outcome.fail(FailureReason.MALFORMED_RESPONSE, "forecast body is not an object")
        return outcome
