"""Temperature and snow-presence inference from forecast data.

Snow presence is inferred with a small decision table over the last
observed snow depth, the snowfall and minimum temperature of the trailing
48 hours, and the shelter's elevation. Each verdict carries a
qualitative confidence label.

Example:
    >>> classify_snow(snow_depth_cm=2, snowfall_48h_mm=0, temp_min_48h=5, elevation_m=900)
    SnowVerdict(snow=True, confidence=<SnowConfidence.HIGH: 'high'>)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta, timezone
from enum import Enum
from typing import Any

import pandas as pd

from bivacchi._types import FailureReason, Outcome, TagPatch
from bivacchi.dataset import parse_elevation, record_position, record_tags
from bivacchi.geomath import round_half_up
from bivacchi.providers.forecast import ForecastProvider
from bivacchi.runtime import Runtime

logger = logging.getLogger(__name__)

# ── Snow heuristic thresholds ──────────────────────────────────────
SNOW_DEPTH_THRESHOLD_CM: float = 1.0  # snow on the ground from 1 cm
SNOWFALL_RECENT_THRESHOLD_MM: float = 5.0  # recent snowfall sum
SNOW_RECENT_HOURS: int = 48  # trailing window for snowfall and temperature
TEMP_FREEZE_THRESHOLD_C: float = 0.0
TEMP_NEAR_FREEZE_C: float = 2.0
ALTITUDE_SNOW_SUPPORT_M: float = 1700.0  # above this, lingering snow is likely

# Conversion factors from reported units
_SNOWFALL_TO_MM = {"mm": 1.0, "cm": 10.0, "inch": 25.4}
_SNOW_DEPTH_TO_CM = {"cm": 1.0, "m": 100.0, "ft": 30.48}


class SnowConfidence(str, Enum):
    """Reliability of a snow-presence verdict."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class SnowVerdict:
    snow: bool
    confidence: SnowConfidence


@dataclass(frozen=True)
class WeatherSummary:
    """Values derived from one forecast response.

    Args:
        temperature: Latest hourly temperature (°C), rounded.
        temperature_min: Today's minimum temperature (°C), rounded.
        temperature_max: Today's maximum temperature (°C), rounded.
        snowfall_48h_mm: Snowfall over the trailing 48 hours (mm), unrounded.
        snow_depth_cm: Latest snow depth (cm), rounded.
        temp_min_48h: Minimum temperature over the trailing 48 hours (°C), rounded.
    """

    temperature: int | None
    temperature_min: int | None
    temperature_max: int | None
    snowfall_48h_mm: float
    snow_depth_cm: int | None
    temp_min_48h: int | None


def classify_snow(
    snow_depth_cm: float | None,
    snowfall_48h_mm: float,
    temp_min_48h: float | None,
    elevation_m: float,
) -> SnowVerdict:
    """Apply the snow decision table; the first matching rule wins.

    1. Snow depth of at least 1 cm: snow, high confidence.
    2. At least 5 mm of snowfall in 48 h and a 48 h minimum at or below
       freezing: snow, medium confidence.
    3. Elevation of at least 1700 m and a 48 h minimum at or below 2 °C:
       snow, low confidence.
    4. Otherwise no snow, low confidence.
    """
    if snow_depth_cm is not None and snow_depth_cm >= SNOW_DEPTH_THRESHOLD_CM:
        return SnowVerdict(snow=True, confidence=SnowConfidence.HIGH)
    if (
        snowfall_48h_mm >= SNOWFALL_RECENT_THRESHOLD_MM
        and temp_min_48h is not None
        and temp_min_48h <= TEMP_FREEZE_THRESHOLD_C
    ):
        return SnowVerdict(snow=True, confidence=SnowConfidence.MEDIUM)
    if (
        elevation_m >= ALTITUDE_SNOW_SUPPORT_M
        and temp_min_48h is not None
        and temp_min_48h <= TEMP_NEAR_FREEZE_C
    ):
        return SnowVerdict(snow=True, confidence=SnowConfidence.LOW)
    return SnowVerdict(snow=False, confidence=SnowConfidence.LOW)


def _numeric_series(values: Any) -> pd.Series:
    """Coerce a JSON array to a float Series; non-numeric entries become NaN."""
    if not isinstance(values, list):
        values = []
    return pd.to_numeric(pd.Series(values, dtype="object"), errors="coerce").astype("float64")


def _rounded(value: float) -> int | None:
    return None if pd.isna(value) else round_half_up(float(value))


def _last(series: pd.Series) -> float:
    return float(series.iloc[-1]) if len(series) else float("nan")


def summarize_forecast(payload: Mapping[str, Any], today: str) -> WeatherSummary:
    """Derive temperatures and snow indicators from a forecast body.

    Args:
        payload: Decoded forecast response.
        today: Local ISO date used to pick the daily min/max entry; the
            last daily entry is used when no entry matches.
    """
    hourly = payload.get("hourly") or {}
    daily = payload.get("daily") or {}
    units = payload.get("hourly_units") or {}

    temps = _numeric_series(hourly.get("temperature_2m"))
    snowfall = _numeric_series(hourly.get("snowfall"))
    snow_depth = _numeric_series(hourly.get("snow_depth"))

    snowfall_factor = _SNOWFALL_TO_MM.get(str(units.get("snowfall", "mm")), 1.0)
    depth_factor = _SNOW_DEPTH_TO_CM.get(str(units.get("snow_depth", "cm")), 1.0)

    days = daily.get("time") if isinstance(daily.get("time"), list) else []
    today_index = days.index(today) if today in days else -1

    def pick_daily(key: str) -> int | None:
        series = _numeric_series(daily.get(key))
        if series.empty:
            return None
        if 0 <= today_index < len(series):
            return _rounded(series.iloc[today_index])
        return _rounded(series.iloc[-1])

    recent_snowfall = snowfall.tail(SNOW_RECENT_HOURS)
    recent_temps = temps.tail(SNOW_RECENT_HOURS)

    return WeatherSummary(
        temperature=_rounded(_last(temps)),
        temperature_min=pick_daily("temperature_2m_min"),
        temperature_max=pick_daily("temperature_2m_max"),
        snowfall_48h_mm=float(recent_snowfall.sum()) * snowfall_factor,
        snow_depth_cm=_rounded(_last(snow_depth) * depth_factor),
        temp_min_48h=_rounded(recent_temps.min()),
    )


class WeatherSnowEstimator:
    """Fetch a forecast for a record and derive weather and snow tags.

    Args:
        forecast: Forecast provider client.
        runtime: Session runtime, for the local date and timestamps.
    """

    def __init__(self, forecast: ForecastProvider, runtime: Runtime) -> None:
        self._forecast = forecast
        self._runtime = runtime

    def _local_date(self, payload: Mapping[str, Any]) -> str:
        """Current date at the forecast location, host-local as a fallback."""
        now = self._runtime.now()
        offset = payload.get("utc_offset_seconds")
        if isinstance(offset, (int, float)) and not isinstance(offset, bool):
            local = now.astimezone(timezone.utc) + timedelta(seconds=offset)
            return local.date().isoformat()
        return now.date().isoformat()

    async def estimate_record(self, record: Mapping[str, Any]) -> Outcome[TagPatch]:
        """Return the weather/snow tag patch for *record*."""
        position = record_position(record)
        if position is None:
            return Outcome.fail(FailureReason.NO_COORDINATES, f"record {record.get('id')}")

        outcome = await self._forecast.fetch(*position)
        if not outcome.ok:
            return outcome  # type: ignore[return-value]
        payload: dict[str, Any] = outcome.value  # type: ignore[assignment]

        try:
            summary = summarize_forecast(payload, today=self._local_date(payload))
        except (AttributeError, TypeError, ValueError) as exc:
            logger.warning("Unreadable forecast for %s,%s: %s", *position, exc)
            return Outcome.fail(FailureReason.MALFORMED_RESPONSE, str(exc))

        elevation = parse_elevation(record_tags(record).get("ele"))
        verdict = classify_snow(
            summary.snow_depth_cm,
            summary.snowfall_48h_mm,
            summary.temp_min_48h,
            elevation,
        )

        now_ms = self._runtime.now_ms()
        patch: TagPatch = {}
        if summary.temperature is not None:
            patch["temperature"] = summary.temperature
            patch["temperature_updated_at"] = now_ms
        if summary.temperature_min is not None:
            patch["temperature_min"] = summary.temperature_min
        if summary.temperature_max is not None:
            patch["temperature_max"] = summary.temperature_max
        patch["snow"] = verdict.snow
        patch["snow_confidence"] = verdict.confidence.value
        if summary.snow_depth_cm is not None:
            patch["snow_depth_cm"] = summary.snow_depth_cm
        patch["snowfall_48h_mm"] = round_half_up(summary.snowfall_48h_mm)
        if summary.temp_min_48h is not None:
            patch["temp_min_48h"] = summary.temp_min_48h
        patch["snow_updated_at"] = now_ms
        return Outcome.success(patch)
