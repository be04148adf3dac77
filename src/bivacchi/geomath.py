"""Geographic and solar helper functions.

Pure, deterministic functions with no I/O: great-circle distance,
metres-per-degree conversion, compass bucketing, a low-precision solar
position model and the daylight window derived from it.

The solar model is accurate to roughly 0.01 degrees, which is plenty for
sunrise and sunset times but not for astronomical use.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

logger = logging.getLogger(__name__)

_EARTH_RADIUS_KM = 6371.0
_EARTH_RADIUS_M = 6_371_000.0
_METERS_PER_DEGREE_LAT = 111_320.0

_J2000 = 2451545.0
_UNIX_EPOCH_JD = 2440587.5

# Solar noon reference: standard meridian of UTC+1 (Central European Time)
_STANDARD_MERIDIAN_DEG = 15.0
_STANDARD_MERIDIAN_UTC_OFFSET_H = 1.0

# Empirical self-shading correction for steep slopes
_SHADING_MIN_SLOPE_DEG = 10.0
_SHADING_FACTOR = 0.1

_CARDINALS = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")
_CLOCK_RE = re.compile(r"\d{2}:\d{2}")


@dataclass(frozen=True)
class SolarPosition:
    """Solar geometry for one day at one latitude.

    Args:
        declination: Solar declination in degrees.
        h0: Half-day hour angle in degrees (sunrise to solar noon).
        ecliptic_longitude: Apparent ecliptic longitude in degrees.
        obliquity: Obliquity of the ecliptic in degrees.
    """

    declination: float
    h0: float
    ecliptic_longitude: float
    obliquity: float


@dataclass(frozen=True)
class DaylightWindow:
    """Sunrise, sunset and daylight duration at a location.

    Args:
        sunrise: Local clock time ``HH:MM``.
        sunset: Local clock time ``HH:MM``.
        daylight_hours: Hours between sunrise and sunset, 2 decimals.
        date_computed: ISO date the window was computed for.
    """

    sunrise: str
    sunset: str
    daylight_hours: float
    date_computed: str


def round_half_up(value: float) -> int:
    """Round to the nearest integer, rounding halves up.

    Python's built-in ``round`` rounds halves to even, which would make
    e.g. 22.5 degrees bucket differently from 67.5 degrees.

    Example:
        >>> round_half_up(2.5), round_half_up(-2.5)
        (3, -2)
    """
    return math.floor(value + 0.5)


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points (haversine), 1 decimal.

    Example:
        >>> distance_km(46.0, 12.0, 46.0, 12.0)
        0.0
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round_half_up(_EARTH_RADIUS_KM * c * 10) / 10


def meters_per_degree(lat: float) -> tuple[float, float]:
    """Return ``(metres per degree latitude, metres per degree longitude)`` at *lat*."""
    return _METERS_PER_DEGREE_LAT, _METERS_PER_DEGREE_LAT * math.cos(math.radians(lat))


def cardinal(deg: float) -> str:
    """Map a bearing to one of eight compass labels.

    Bearings are rounded to the nearest 45 degrees (halves round up) and
    wrap with period 360.

    Example:
        >>> cardinal(0), cardinal(45), cardinal(359), cardinal(-90)
        ('N', 'NE', 'N', 'W')
    """
    index = round_half_up((deg % 360) / 45) % 8
    return _CARDINALS[index]


def solar_position(lat: float, lon: float, when: datetime) -> SolarPosition:
    """Compute solar declination and the half-day hour angle for *when*.

    *lon* is accepted for symmetry with ``daylight``; the half-day angle
    depends on latitude only.

    Raises:
        ValueError: If the sun does not cross the horizon on that day
            (polar day or polar night).
    """
    jd = when.timestamp() / 86400 + _UNIX_EPOCH_JD
    t = (jd - _J2000) / 36525

    mean_longitude = (280.46646 + 36000.76983 * t + 0.0003032 * t * t) % 360
    mean_anomaly = (357.52911 + 35999.05029 * t - 0.0001536 * t * t) % 360
    m_rad = math.radians(mean_anomaly)
    centre = (
        (1.914602 - 0.004817 * t - 0.000014 * t * t) * math.sin(m_rad)
        + (0.019993 - 0.000101 * t) * math.sin(2 * m_rad)
        + 0.000289 * math.sin(3 * m_rad)
    )
    ecliptic_longitude = (mean_longitude + centre) % 360
    obliquity = 23.4393 - 0.0130 * t + (0.00000016 * t - 0.000000504) * t

    declination = math.degrees(
        math.asin(
            math.sin(math.radians(obliquity)) * math.sin(math.radians(ecliptic_longitude))
        )
    )
    h0 = math.degrees(
        math.acos(-math.tan(math.radians(lat)) * math.tan(math.radians(declination)))
    )
    return SolarPosition(
        declination=declination,
        h0=h0,
        ecliptic_longitude=ecliptic_longitude,
        obliquity=obliquity,
    )


def _format_clock(hours: float) -> str:
    total_minutes = round_half_up(hours * 60) % (24 * 60)
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def daylight(
    lat: float,
    lon: float,
    elevation_m: float = 0.0,
    slope_deg: float = 0.0,
    aspect_deg: float = 0.0,
    when: datetime | None = None,
) -> DaylightWindow | None:
    """Estimate the local sunrise/sunset window at a point.

    The half-day angle is reduced by the horizon dip seen from
    *elevation_m* and, on slopes steeper than 10 degrees whose aspect is
    within 90 degrees of north, by an empirical self-shading term of
    ``slope_deg * 0.1`` degrees. The result is clamped to [0, 90].

    Clock times use solar noon at the 15 degrees east standard meridian
    shifted by the UTC offset of *when*. Naive datetimes are taken to be
    in the host's local zone.

    Args:
        lat: Latitude in degrees.
        lon: Longitude in degrees.
        elevation_m: Observer elevation in metres (negative treated as 0).
        slope_deg: Terrain slope in degrees.
        aspect_deg: Terrain aspect (downslope bearing) in degrees.
        when: Date and time to compute for, defaults to now.

    Returns:
        The daylight window, or ``None`` when it cannot be computed.
        Callers keep any previously stored window in that case.

    Example:
        >>> window = daylight(46.4, 12.1, 2200, 25, 180)
        >>> 0 < window.daylight_hours <= 24
        True
    """
    if when is None:
        when = datetime.now()
    if when.tzinfo is None:
        when = when.astimezone()

    try:
        position = solar_position(lat, lon, when)
        h0 = position.h0

        horizon_dip = math.degrees(math.sqrt(2 * max(0.0, elevation_m) / _EARTH_RADIUS_M))
        h0 -= horizon_dip
        if slope_deg > _SHADING_MIN_SLOPE_DEG and abs((aspect_deg + 180) % 360 - 180) < 90:
            h0 -= slope_deg * _SHADING_FACTOR
        h0 = min(90.0, max(0.0, h0))
        if not math.isfinite(h0):
            return None

        daylight_hours = max(0.0, 2 * h0 / 15)

        # solar noon comes 4 minutes earlier per degree east of the standard meridian
        # differs from the web client, which adds the offset; its stored times will not match these
        solar_noon_utc = (
            12 - 4 * (lon - _STANDARD_MERIDIAN_DEG) / 60 - _STANDARD_MERIDIAN_UTC_OFFSET_H
        )
        offset = when.utcoffset()
        tz_hours = offset.total_seconds() / 3600 if offset is not None else 0.0

        sunrise_local = solar_noon_utc - h0 / 15 + tz_hours
        sunset_local = solar_noon_utc + h0 / 15 + tz_hours
    except (ValueError, TypeError, OverflowError) as exc:
        logger.debug("Daylight computation failed at (%s, %s): %s", lat, lon, exc)
        return None

    return DaylightWindow(
        sunrise=_format_clock(sunrise_local),
        sunset=_format_clock(sunset_local),
        daylight_hours=round_half_up(daylight_hours * 100) / 100,
        date_computed=when.date().isoformat(),
    )


def is_daylight_invalid(tags: Mapping[str, Any] | None) -> bool:
    """Return ``True`` when stored daylight tags are missing or implausible.

    Invalid tags force recomputation regardless of their timestamp.

    Example:
        >>> is_daylight_invalid({"sunrise": "06:10", "sunset": "06:10", "daylight_hours": 8})
        True
    """
    if not tags:
        return True
    sunrise = tags.get("sunrise")
    sunset = tags.get("sunset")
    hours = tags.get("daylight_hours")
    if not sunrise or not sunset or hours is None:
        return True
    if not isinstance(sunrise, str) or not isinstance(sunset, str):
        return True
    if not _CLOCK_RE.fullmatch(sunrise) or not _CLOCK_RE.fullmatch(sunset):
        return True
    try:
        value = float(hours)
    except (TypeError, ValueError):
        return True
    if not math.isfinite(value) or value <= 0 or value > 24:
        return True
    return sunrise == sunset
