"""Enrichment orchestration over the shelter dataset.

``EnrichmentOrchestrator`` is the only component that mutates the
dataset. It drives each estimator over the records in list order, one
request at a time, persists the whole dataset locally after every
successful update and pushes it upstream once per pass.

Pass policies:

* weather and daylight are best effort: a failing record is logged and
  skipped, the pass continues;
* slope/aspect is fail fast: the first failure (usually throttling or an
  outage) stops the pass, remaining records are retried on the next run;
* bulk elevation population retries the primary provider, falls back to
  the secondary provider, and finally writes ``ele = 0``.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from bivacchi._types import FailureReason, Outcome, TagPatch
from bivacchi.analysis.daylight import DaylightEstimator
from bivacchi.analysis.slope import SlopeAspectEstimator
from bivacchi.analysis.snow import WeatherSnowEstimator
from bivacchi.cache import ElevationCache
from bivacchi.config import Config
from bivacchi.dataset import (
    Dataset,
    LocalSnapshot,
    parse_elevation,
    record_position,
    record_tags,
)
from bivacchi.geomath import is_daylight_invalid, round_half_up
from bivacchi.providers.elevation import ElevationResolver
from bivacchi.providers.forecast import ForecastProvider
from bivacchi.providers.overpass import ShelterSource
from bivacchi.providers.remote import RemoteDatasetStore
from bivacchi.runtime import Runtime

logger = logging.getLogger(__name__)

# ── Staleness windows ──────────────────────────────────────────────
WEATHER_STALE_MS = 60 * 60 * 1000  # 1 hour
DAYLIGHT_STALE_MS = 24 * 60 * 60 * 1000  # 24 hours

# ── Pacing ─────────────────────────────────────────────────────────
_WEATHER_REQUEST_DELAY_S = 0.5
_ASPECT_MIN_DELAY_S = 0.5
_BULK_MAX_ATTEMPTS = 5
_BULK_RETRY_DELAY_S = 2.0
_BULK_RECORD_DELAY_S = 0.5

ELEVATION_SENTINEL = 0


class PassKind(str, Enum):
    ELEVATION = "elevation"
    SLOPE_ASPECT = "slope_aspect"
    DAYLIGHT = "daylight"
    WEATHER = "weather"


class DatasetSource(str, Enum):
    """Where the session's dataset came from."""

    LOCAL = "local"
    REMOTE = "remote"
    OVERPASS = "overpass"


@dataclass
class PassReport:
    """Summary of one enrichment pass.

    Args:
        kind: Which enrichment ran.
        candidates: Records the pass attempted.
        updated: Records whose tags were updated.
        failures: Count of failure reasons encountered.
        stopped_early: Whether a fail-fast pass stopped before the end.
        synced: Whether the dataset was pushed upstream after the pass.
    """

    kind: PassKind
    candidates: int = 0
    updated: int = 0
    failures: Counter[FailureReason] = field(default_factory=Counter)
    stopped_early: bool = False
    synced: bool = False


@dataclass
class LoadResult:
    source: DatasetSource
    records: int
    elevation_pass: PassReport | None = None


@dataclass
class SessionReport:
    load: LoadResult
    passes: list[PassReport] = field(default_factory=list)


def _timestamp(tags: Mapping[str, Any], key: str) -> float:
    try:
        return float(tags.get(key) or 0)
    except (TypeError, ValueError):
        return 0.0


def is_weather_stale(tags: Mapping[str, Any], now_ms: int) -> bool:
    """Whether the newest weather timestamp is older than the 1 hour window."""
    last = max(
        _timestamp(tags, "temperature_updated_at"),
        _timestamp(tags, "snow_updated_at"),
    )
    return now_ms - last >= WEATHER_STALE_MS


def is_daylight_stale(tags: Mapping[str, Any], now_ms: int) -> bool:
    """Whether daylight tags are invalid or older than the 24 hour window."""
    if is_daylight_invalid(tags):
        return True
    return now_ms - _timestamp(tags, "daylight_updated_at") >= DAYLIGHT_STALE_MS


def needs_slope_aspect(tags: Mapping[str, Any]) -> bool:
    """Slope/aspect is computed once, for records that have no aspect at all."""
    return tags.get("aspect_deg") is None and tags.get("aspect_card") is None


def needs_elevation(record: Mapping[str, Any]) -> bool:
    return (
        record_position(record) is not None
        and parse_elevation(record_tags(record).get("ele")) == 0
    )


class EnrichmentOrchestrator:
    """Drive estimators over a dataset it exclusively owns.

    The orchestrator claims the dataset's writer on construction, so no
    other component can mutate the records while it exists.

    Args:
        dataset: Dataset to enrich.
        runtime: Session runtime (requests, delays, clocks).
        config: Configuration snapshot.
        resolver: Elevation resolver; built from *config* when omitted.
        slope: Slope/aspect estimator; built on *resolver* when omitted.
        daylight: Daylight estimator.
        weather: Weather/snow estimator.
        snapshot: Local dataset persistence.
        remote: Remote dataset store client.
        shelters: Initial ingestion source.

    Example:
        >>> orchestrator = EnrichmentOrchestrator(Dataset(), Runtime(config), config)
        >>> report = asyncio.run(orchestrator.run())  # doctest: +SKIP
        >>> report.load.source
        <DatasetSource.REMOTE: 'remote'>
    """

    def __init__(
        self,
        dataset: Dataset,
        runtime: Runtime,
        config: Config,
        *,
        resolver: ElevationResolver | None = None,
        slope: SlopeAspectEstimator | None = None,
        daylight: DaylightEstimator | None = None,
        weather: WeatherSnowEstimator | None = None,
        snapshot: LocalSnapshot | None = None,
        remote: RemoteDatasetStore | None = None,
        shelters: ShelterSource | None = None,
    ) -> None:
        self._dataset = dataset
        self._writer = dataset.claim_writer()
        self._runtime = runtime
        self._config = config
        self._resolver = resolver or ElevationResolver(runtime, config, ElevationCache(config))
        self._slope = slope or SlopeAspectEstimator(self._resolver, runtime)
        self._daylight = daylight or DaylightEstimator(runtime)
        self._weather = weather or WeatherSnowEstimator(ForecastProvider(runtime, config), runtime)
        self._snapshot = snapshot or LocalSnapshot(config)
        self._remote = remote or RemoteDatasetStore(runtime, config)
        self._shelters = shelters or ShelterSource(runtime, config)

    @property
    def dataset(self) -> Dataset:
        return self._dataset

    # ── Persistence ────────────────────────────────────────────────

    def _persist(self) -> None:
        self._snapshot.save(self._dataset.to_list())

    async def _sync(self, report: PassReport) -> None:
        """Push the whole dataset upstream once if the pass changed anything."""
        if report.updated > 0:
            report.synced = await self._remote.replace_all(self._dataset.to_list())

    def _apply(self, index: int, patch: TagPatch) -> None:
        self._writer.update_tags(index, patch)
        self._persist()

    # ── Loading ────────────────────────────────────────────────────

    async def load_dataset(self) -> LoadResult:
        """Load the dataset: local snapshot, then remote store, then Overpass.

        The remote store replaces the local snapshot when it returns any
        records. With neither available, shelters are ingested from
        Overpass, their elevations populated, and the result pushed
        upstream.

        Raises:
            ProviderError: If initial ingestion is needed and fails. The
                dataset is left empty in that case.
        """
        local = self._snapshot.load()
        if local:
            self._writer.replace_all(local)
            logger.info("Loaded %d records from local snapshot", len(local))

        remote = await self._remote.fetch_all()
        if remote.ok and remote.value:
            self._writer.replace_all(remote.value)
            self._persist()
            logger.info("Loaded %d records from remote store", len(remote.value))
            return LoadResult(source=DatasetSource.REMOTE, records=len(self._dataset))
        if not remote.ok:
            logger.warning("Remote store unavailable (%s)", remote.failure.value)  # type: ignore[union-attr]

        if local:
            return LoadResult(source=DatasetSource.LOCAL, records=len(self._dataset))

        shelters = await self._shelters.fetch_shelters()
        self._writer.replace_all(shelters)
        elevation_pass = await self.populate_elevations()
        self._persist()
        if not elevation_pass.synced:
            await self._remote.replace_all(self._dataset.to_list())
        return LoadResult(
            source=DatasetSource.OVERPASS,
            records=len(self._dataset),
            elevation_pass=elevation_pass,
        )

    # ── Passes ─────────────────────────────────────────────────────

    async def _best_effort_pass(
        self,
        kind: PassKind,
        is_stale: Callable[[Mapping[str, Any], int], bool],
        estimate: Callable[[Mapping[str, Any]], Awaitable[Outcome[TagPatch]]],
        request_delay_s: float = 0.0,
    ) -> PassReport:
        report = PassReport(kind=kind)
        now_ms = self._runtime.now_ms()
        for index, record in enumerate(self._dataset):
            if not is_stale(record_tags(record), now_ms):
                continue
            if report.candidates and request_delay_s:
                await self._runtime.delay(request_delay_s)
            report.candidates += 1

            outcome = await estimate(record)
            if outcome.ok:
                self._apply(index, outcome.value)  # type: ignore[arg-type]
                report.updated += 1
            else:
                report.failures[outcome.failure] += 1  # type: ignore[index]
                logger.warning(
                    "%s update skipped for record %s: %s %s",
                    kind.value,
                    record.get("id"),
                    outcome.failure.value,  # type: ignore[union-attr]
                    outcome.detail,
                )

        await self._sync(report)
        logger.info(
            "%s pass: %d/%d records updated",
            kind.value,
            report.updated,
            report.candidates,
        )
        return report

    async def refresh_weather(self) -> PassReport:
        """Refresh temperature and snow tags older than one hour."""
        return await self._best_effort_pass(
            PassKind.WEATHER,
            is_weather_stale,
            self._weather.estimate_record,
            request_delay_s=_WEATHER_REQUEST_DELAY_S,
        )

    async def refresh_daylight(self) -> PassReport:
        """Recompute daylight tags that are invalid or older than a day."""

        async def estimate(record: Mapping[str, Any]) -> Outcome[TagPatch]:
            return self._daylight.estimate_record(record)

        return await self._best_effort_pass(PassKind.DAYLIGHT, is_daylight_stale, estimate)

    async def compute_slope_aspect(self) -> PassReport:
        """Compute slope/aspect once for records lacking it; stop at the first failure.

        Records without coordinates are skipped rather than stopping the
        pass, since no amount of waiting will fix them.
        """
        report = PassReport(kind=PassKind.SLOPE_ASPECT)
        targets = [
            index
            for index, record in enumerate(self._dataset)
            if needs_slope_aspect(record_tags(record))
        ]
        if not targets:
            return report
        logger.info("Computing slope/aspect for %d records", len(targets))

        for index in targets:
            if report.candidates:
                await self._runtime.delay(max(_ASPECT_MIN_DELAY_S, self._resolver.limiter.backoff))
            report.candidates += 1

            outcome = await self._slope.estimate_record(self._dataset[index])
            if outcome.ok:
                self._apply(index, outcome.value)  # type: ignore[arg-type]
                report.updated += 1
                continue

            report.failures[outcome.failure] += 1  # type: ignore[index]
            if outcome.failure is FailureReason.NO_COORDINATES:
                continue
            report.stopped_early = True
            logger.warning(
                "Slope/aspect pass stopped after %d updates (%s); "
                "remaining records will be retried on the next run",
                report.updated,
                outcome.failure.value,  # type: ignore[union-attr]
            )
            break

        await self._sync(report)
        logger.info(
            "slope_aspect pass: %d/%d records updated",
            report.updated,
            len(targets),
        )
        return report

    async def _resolve_with_retry(self, lat: float, lon: float, report: PassReport) -> int:
        for attempt in range(1, _BULK_MAX_ATTEMPTS + 1):
            outcome = await self._resolver.resolve(lat, lon)
            if outcome.ok:
                return round_half_up(outcome.value)  # type: ignore[arg-type]
            report.failures[outcome.failure] += 1  # type: ignore[index]
            logger.debug(
                "Elevation attempt %d/%d for %s,%s failed: %s",
                attempt,
                _BULK_MAX_ATTEMPTS,
                lat,
                lon,
                outcome.failure.value,  # type: ignore[union-attr]
            )
            if attempt < _BULK_MAX_ATTEMPTS:
                await self._runtime.delay(_BULK_RETRY_DELAY_S)

        fallback = await self._resolver.resolve_fallback(lat, lon)
        if fallback.ok:
            return round_half_up(fallback.value)  # type: ignore[arg-type]
        report.failures[fallback.failure] += 1  # type: ignore[index]

        logger.warning(
            "Elevation unresolved for %s,%s after %d attempts and fallback; using %d",
            lat,
            lon,
            _BULK_MAX_ATTEMPTS,
            ELEVATION_SENTINEL,
        )
        return ELEVATION_SENTINEL

    async def populate_elevations(self) -> PassReport:
        """Fill in ``ele`` for every positioned record missing it.

        Every targeted record ends with a numeric elevation: the primary
        value, the fallback value, or ``ELEVATION_SENTINEL``.
        """
        report = PassReport(kind=PassKind.ELEVATION)
        targets = [
            index for index, record in enumerate(self._dataset) if needs_elevation(record)
        ]
        for index in targets:
            if report.candidates:
                await self._runtime.delay(_BULK_RECORD_DELAY_S)
            report.candidates += 1

            lat, lon = record_position(self._dataset[index])  # type: ignore[misc]
            elevation = await self._resolve_with_retry(lat, lon, report)
            self._apply(index, {"ele": elevation})
            report.updated += 1

        await self._sync(report)
        return report

    async def run(self) -> SessionReport:
        """Load the dataset, then run the weather, slope/aspect and daylight passes."""
        load = await self.load_dataset()
        session = SessionReport(load=load)
        session.passes.append(await self.refresh_weather())
        session.passes.append(await self.compute_slope_aspect())
        session.passes.append(await self.refresh_daylight())
        return session
