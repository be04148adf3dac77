"""Terrain slope and aspect from four neighbouring elevation samples."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np

from bivacchi._types import FailureReason, Outcome, TagPatch
from bivacchi.dataset import record_position
from bivacchi.geomath import cardinal, meters_per_degree, round_half_up
from bivacchi.providers.elevation import ElevationResolver
from bivacchi.runtime import Runtime

logger = logging.getLogger(__name__)

SAMPLE_OFFSET_DEG = 0.001


@dataclass(frozen=True)
class SlopeAspect:
    """Terrain gradient summary at a point.

    Args:
        slope_deg: Inclination in whole degrees.
        aspect_deg: Downslope compass bearing in whole degrees, [0, 360).
        aspect_card: Eight-point compass label of ``aspect_deg``.
    """

    slope_deg: int
    aspect_deg: int
    aspect_card: str


def gradient_to_slope_aspect(dz_dx: float, dz_dy: float) -> SlopeAspect:
    """Convert an east/north elevation gradient (m/m) to slope and aspect.

    Aspect is the bearing of the downslope direction, the negated
    gradient, measured clockwise from north.

    Example:
        >>> gradient_to_slope_aspect(-1.0, 0.0)
        SlopeAspect(slope_deg=45, aspect_deg=90, aspect_card='E')
    """
    gradient = np.array([dz_dx, dz_dy], dtype=np.float64)
    slope = float(np.degrees(np.arctan(np.hypot(gradient[0], gradient[1]))))
    aspect = float(np.degrees(np.arctan2(-gradient[0], -gradient[1]))) % 360
    aspect_deg = round_half_up(aspect) % 360
    return SlopeAspect(
        slope_deg=round_half_up(slope),
        aspect_deg=aspect_deg,
        aspect_card=cardinal(aspect_deg),
    )


class SlopeAspectEstimator:
    """Estimate slope and aspect by central differences.

    Elevations are sampled ``SAMPLE_OFFSET_DEG`` north, south, east and
    west of the target, concurrently. A single missing sample makes the
    estimate fail: a central difference needs both sides.

    Args:
        resolver: Elevation resolver shared with the rest of the session.
        runtime: Session runtime, for update timestamps.
    """

    def __init__(self, resolver: ElevationResolver, runtime: Runtime) -> None:
        self._resolver = resolver
        self._runtime = runtime

    async def estimate(self, lat: float, lon: float) -> Outcome[SlopeAspect]:
        """Estimate slope and aspect at *lat*/*lon*."""
        d = SAMPLE_OFFSET_DEG
        samples = await asyncio.gather(
            self._resolver.resolve(lat + d, lon),
            self._resolver.resolve(lat - d, lon),
            self._resolver.resolve(lat, lon + d),
            self._resolver.resolve(lat, lon - d),
        )
        failed = [s for s in samples if not s.ok]
        if failed:
            # A shared cause (e.g. throttling) is reported as such
            reasons = {s.failure for s in failed}
            reason = reasons.pop() if len(reasons) == 1 else FailureReason.INCOMPLETE_SAMPLES
            return Outcome.fail(
                reason,  # type: ignore[arg-type]
                f"{len(failed)}/4 elevation samples missing",
            )

        z_north, z_south, z_east, z_west = (float(s.value) for s in samples)  # type: ignore[arg-type]
        m_per_deg_lat, m_per_deg_lon = meters_per_degree(lat)
        dz_dy = (z_north - z_south) / (2 * d * m_per_deg_lat)
        dz_dx = (z_east - z_west) / (2 * d * m_per_deg_lon)
        return Outcome.success(gradient_to_slope_aspect(dz_dx, dz_dy))

    async def estimate_record(self, record: Mapping[str, Any]) -> Outcome[TagPatch]:
        """Return the slope/aspect tag patch for *record*."""
        position = record_position(record)
        if position is None:
            return Outcome.fail(FailureReason.NO_COORDINATES, f"record {record.get('id')}")

        outcome = await self.estimate(*position)
        if not outcome.ok:
            return outcome  # type: ignore[return-value]

        result: SlopeAspect = outcome.value  # type: ignore[assignment]
        return Outcome.success(
            {
                "slope_deg": result.slope_deg,
                "aspect_deg": result.aspect_deg,
                "aspect_card": result.aspect_card,
                "aspect_updated_at": self._runtime.now_ms(),
            }
        )
