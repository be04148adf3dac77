"""Tests for slope/aspect estimation."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest
from fakes import START_MS, FakeRuntime, FetchCall, make_response

from bivacchi._types import FailureReason
from bivacchi.analysis.slope import (
    SAMPLE_OFFSET_DEG,
    SlopeAspect,
    SlopeAspectEstimator,
    gradient_to_slope_aspect,
)
from bivacchi.cache import ElevationCache
from bivacchi.config import Config
from bivacchi.providers.elevation import ElevationResolver

LAT, LON = 46.4, 12.1


def plane(dz_dlat: float, dz_dlon: float) -> Callable[[FetchCall], object]:
    """Elevation handler for a tilted plane through (LAT, LON) at 2000 m."""

    def handler(call: FetchCall) -> object:
        assert call.params is not None
        lat = call.params["latitude"]
        lon = call.params["longitude"]
        z = 2000 + dz_dlat * (lat - LAT) + dz_dlon * (lon - LON)
        return make_response(200, {"elevation": [z]})

    return handler


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime(plane(100_000, 0))


@pytest.fixture
def estimator(
    runtime: FakeRuntime, test_config: Config, elevation_cache: ElevationCache
) -> SlopeAspectEstimator:
    return SlopeAspectEstimator(ElevationResolver(runtime, test_config, elevation_cache), runtime)


# ---------------------------------------------------------------------------
# Gradient conversion
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestGradientToSlopeAspect:
    """Tests for gradient_to_slope_aspect."""

    def test_falling_to_the_east(self) -> None:
        assert gradient_to_slope_aspect(-1.0, 0.0) == SlopeAspect(45, 90, "E")

    def test_rising_to_the_north_faces_south(self) -> None:
        result = gradient_to_slope_aspect(0.0, 1.0)
        assert result.aspect_deg == 180
        assert result.aspect_card == "S"

    def test_falling_to_the_north(self) -> None:
        result = gradient_to_slope_aspect(0.0, -0.5)
        assert result.aspect_deg == 0
        assert result.aspect_card == "N"
        assert result.slope_deg == 27

    def test_falling_to_the_south_west(self) -> None:
        result = gradient_to_slope_aspect(0.2, 0.2)
        assert result.aspect_deg == 225
        assert result.aspect_card == "SW"

    def test_flat_ground(self) -> None:
        assert gradient_to_slope_aspect(0.0, 0.0).slope_deg == 0

    def test_aspect_wraps_below_360(self) -> None:
        # bearing of about 359.7 degrees rounds to 360, reported as 0
        result = gradient_to_slope_aspect(0.005, -1.0)
        assert result.aspect_deg == 0
        assert result.aspect_card == "N"


# ---------------------------------------------------------------------------
# Estimator
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestSlopeAspectEstimator:
    """Tests for SlopeAspectEstimator."""

    def test_samples_four_neighbours(
        self, estimator: SlopeAspectEstimator, runtime: FakeRuntime
    ) -> None:
        asyncio.run(estimator.estimate(LAT, LON))
        points = {(c.params["latitude"], c.params["longitude"]) for c in runtime.calls}  # type: ignore[index]
        d = SAMPLE_OFFSET_DEG
        assert points == {(LAT + d, LON), (LAT - d, LON), (LAT, LON + d), (LAT, LON - d)}

    def test_north_rising_plane(self, estimator: SlopeAspectEstimator) -> None:
        # 100 m per 0.001 degree of latitude: dz/dy = 200 / 222.64 m
        outcome = asyncio.run(estimator.estimate(LAT, LON))
        assert outcome.value == SlopeAspect(slope_deg=42, aspect_deg=180, aspect_card="S")

    def test_east_falling_plane(
        self, estimator: SlopeAspectEstimator, runtime: FakeRuntime
    ) -> None:
        runtime.handler = plane(0, -50_000)
        outcome = asyncio.run(estimator.estimate(LAT, LON))
        assert outcome.ok
        assert outcome.value.aspect_card == "E"  # type: ignore[union-attr]

    def test_single_missing_sample_fails(
        self, estimator: SlopeAspectEstimator, runtime: FakeRuntime
    ) -> None:
        surface = plane(100_000, 0)

        def east_fails(call: FetchCall) -> object:
            if call.params["longitude"] > LON:  # type: ignore[index]
                return make_response(500)
            return surface(call)

        runtime.handler = east_fails
        outcome = asyncio.run(estimator.estimate(LAT, LON))
        assert not outcome.ok
        assert outcome.failure is FailureReason.HTTP_ERROR
        assert "1/4" in outcome.detail

    def test_mixed_failures_reported_as_incomplete(
        self, estimator: SlopeAspectEstimator, runtime: FakeRuntime
    ) -> None:
        surface = plane(100_000, 0)

        def two_fail(call: FetchCall) -> object:
            lon = call.params["longitude"]  # type: ignore[index]
            if lon > LON:
                return make_response(500)
            if lon < LON:
                return make_response(200, {"elevation": []})
            return surface(call)

        runtime.handler = two_fail
        outcome = asyncio.run(estimator.estimate(LAT, LON))
        assert outcome.failure is FailureReason.INCOMPLETE_SAMPLES

    def test_rate_limited_reported(
        self, estimator: SlopeAspectEstimator, runtime: FakeRuntime
    ) -> None:
        runtime.handler = lambda call: make_response(429)
        outcome = asyncio.run(estimator.estimate(LAT, LON))
        assert outcome.failure is FailureReason.RATE_LIMITED

    def test_estimate_record_patch(self, estimator: SlopeAspectEstimator) -> None:
        record = {"id": 7, "lat": LAT, "lon": LON, "tags": {}}
        outcome = asyncio.run(estimator.estimate_record(record))
        assert outcome.value == {
            "slope_deg": 42,
            "aspect_deg": 180,
            "aspect_card": "S",
            "aspect_updated_at": START_MS + 1500,
        }

    def test_estimate_record_uses_center(
        self, estimator: SlopeAspectEstimator, runtime: FakeRuntime
    ) -> None:
        record = {"id": 8, "center": {"lat": LAT, "lon": LON}, "tags": {}}
        assert asyncio.run(estimator.estimate_record(record)).ok
        assert len(runtime.calls) == 4

    def test_record_without_coordinates(
        self, estimator: SlopeAspectEstimator, runtime: FakeRuntime
    ) -> None:
        outcome = asyncio.run(estimator.estimate_record({"id": 9, "tags": {}}))
        assert outcome.failure is FailureReason.NO_COORDINATES
        assert runtime.calls == []
