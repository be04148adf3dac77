"""Daylight window tags for a shelter record."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from bivacchi._types import FailureReason, Outcome, TagPatch
from bivacchi.dataset import parse_elevation, record_position, record_tags
from bivacchi.geomath import daylight
from bivacchi.runtime import Runtime

logger = logging.getLogger(__name__)


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class DaylightEstimator:
    """Compute sunrise, sunset and daylight hours for records.

    Uses the record's elevation, slope and aspect when present, zero
    otherwise. The computation is local; no network access.

    Args:
        runtime: Session runtime providing the current time.
    """

    def __init__(self, runtime: Runtime) -> None:
        self._runtime = runtime

    def estimate_record(self, record: Mapping[str, Any]) -> Outcome[TagPatch]:
        position = record_position(record)
        if position is None:
            return Outcome.fail(FailureReason.NO_COORDINATES, f"record {record.get('id')}")

        tags = record_tags(record)
        lat, lon = position
        try:
            window = daylight(
                lat,
                lon,
                elevation_m=parse_elevation(tags.get("ele")),
                slope_deg=_as_float(tags.get("slope_deg")),
                aspect_deg=_as_float(tags.get("aspect_deg")),
                when=self._runtime.now(),
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Daylight computation raised for %s,%s: %s", lat, lon, exc)
            return Outcome.fail(FailureReason.COMPUTATION_ERROR, str(exc))

        if window is None:
            return Outcome.fail(FailureReason.COMPUTATION_ERROR, "no sunrise/sunset on this date")
        if window.daylight_hours <= 0:
            # a zero-length window fails is_daylight_invalid
            return Outcome.fail(FailureReason.COMPUTATION_ERROR, "no direct sun on this date")

        return Outcome.success(
            {
                "sunrise": window.sunrise,
                "sunset": window.sunset,
                "daylight_hours": window.daylight_hours,
                "daylight_updated_at": self._runtime.now_ms(),
            }
        )
