"""Shelter dataset ownership and local persistence.

The dataset is the single mutable source of truth during a session.
``Dataset`` hands out read-only record views to anyone; changes go
through the one ``DatasetWriter`` it issues, which the enrichment
orchestrator claims when it is built. The whole collection is always
serialized as one unit.
"""

from __future__ import annotations

import copy
import json
import logging
import math
import re
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from bivacchi._types import Record, TagPatch
from bivacchi.exceptions import DatasetError

if TYPE_CHECKING:
    from bivacchi.config import Config

logger = logging.getLogger(__name__)

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


# ── Record helpers ─────────────────────────────────────────────────


def record_position(record: Mapping[str, Any]) -> tuple[float, float] | None:
    """Return ``(lat, lon)`` of a record, preferring its ``center``.

    Ways and relations from Overpass carry their position in ``center``;
    nodes carry ``lat``/``lon`` directly.

    Example:
        >>> record_position({"center": {"lat": 46.4, "lon": 12.1}})
        (46.4, 12.1)
        >>> record_position({"id": 1}) is None
        True
    """
    center = record.get("center")
    source: Mapping[str, Any] = center if isinstance(center, Mapping) else record
    lat = source.get("lat", record.get("lat"))
    lon = source.get("lon", record.get("lon"))
    try:
        lat_f = float(lat)  # type: ignore[arg-type]
        lon_f = float(lon)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(lat_f) and math.isfinite(lon_f)):
        return None
    return lat_f, lon_f


def record_tags(record: Mapping[str, Any]) -> Mapping[str, Any]:
    """Return the record's tags, an empty mapping when it has none."""
    tags = record.get("tags")
    return tags if isinstance(tags, Mapping) else {}


def parse_elevation(value: Any) -> int:
    """Read an ``ele`` tag as whole metres, 0 when absent or unreadable.

    OpenStreetMap elevations are free text such as ``"2350"`` or
    ``"2350 m"``; only the leading integer is used.

    Example:
        >>> parse_elevation("2350 m"), parse_elevation(1712.6), parse_elevation(None)
        (2350, 1712, 0)
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else 0
    match = _LEADING_INT_RE.match(str(value))
    return int(match.group(1)) if match else 0


# ── Dataset ownership ──────────────────────────────────────────────


def _read_only(value: Any) -> Any:
    """Return a read-only view of *value*, nested mappings and lists included."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: _read_only(item) for key, item in value.items()})
    if isinstance(value, list):
        return tuple(_read_only(item) for item in value)
    return value


class Dataset:
    """In-memory collection of shelter records.

    Indexing and iteration yield read-only views, nested ``tags`` and
    ``center`` included. Mutation requires the writer returned by
    ``claim_writer()``, which can be claimed only once.

    Args:
        records: Initial records; they are deep-copied.

    Example:
        >>> dataset = Dataset([{"id": 1, "lat": 46.4, "lon": 12.1, "tags": {}}])
        >>> writer = dataset.claim_writer()
        >>> writer.update_tags(0, {"ele": 2210})
        >>> dataset[0]["tags"]["ele"]
        2210
    """

    def __init__(self, records: Iterable[Mapping[str, Any]] = ()) -> None:
        self._records: list[Record] = [copy.deepcopy(dict(r)) for r in records]
        self._writer: DatasetWriter | None = None

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, index: int) -> Mapping[str, Any]:
        return _read_only(self._records[index])

    def __iter__(self) -> Iterator[Mapping[str, Any]]:
        for record in self._records:
            yield _read_only(record)

    def to_list(self) -> list[Record]:
        """Return a deep copy of every record, ready for serialization."""
        return copy.deepcopy(self._records)

    def claim_writer(self) -> DatasetWriter:
        """Hand out the dataset's only writer.

        Raises:
            DatasetError: If the writer was already claimed.
        """
        if self._writer is not None:
            raise DatasetError(
                what="Dataset writer already claimed",
                cause="Only one component may mutate the shelter dataset",
                fix="Route updates through the EnrichmentOrchestrator that owns it",
            )
        self._writer = DatasetWriter(self._records)
        return self._writer


class DatasetWriter:
    """Mutating handle on a ``Dataset``; obtain it via ``Dataset.claim_writer()``."""

    def __init__(self, records: list[Record]) -> None:
        self._records = records

    def replace_all(self, records: Iterable[Mapping[str, Any]]) -> None:
        """Replace the whole collection in place."""
        self._records[:] = [copy.deepcopy(dict(r)) for r in records]

    def update_tags(self, index: int, patch: TagPatch) -> None:
        """Merge *patch* into the tags of record *index*, creating ``tags`` if needed."""
        record = self._records[index]
        tags = record.get("tags")
        if not isinstance(tags, dict):
            tags = {}
            record["tags"] = tags
        tags.update(patch)


# ── Local persistence ──────────────────────────────────────────────


class LocalSnapshot:
    """Single string-keyed snapshot of the whole dataset on local disk.

    The snapshot lives at ``{cache_dir}/{snapshot_key}.json`` and is
    written atomically. Persistence is best effort: ``save`` and ``load``
    **never raise**, failures are logged as warnings.

    Args:
        config: Configuration providing ``cache_dir`` and ``snapshot_key``.
    """

    def __init__(self, config: Config) -> None:
        self._path = Path(config.cache_dir) / f"{config.snapshot_key}.json"

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[Record] | None:
        """Return the stored records, or ``None`` if there is no usable snapshot."""
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Cannot read local snapshot %s: %s", self._path, exc)
            return None

        try:
            parsed: Any = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning("Local snapshot %s is not valid JSON: %s", self._path, exc)
            return None
        if not isinstance(parsed, list):
            logger.warning(
                "Local snapshot %s holds %s, expected a list",
                self._path,
                type(parsed).__name__,
            )
            return None
        return [r for r in parsed if isinstance(r, dict)]

    def save(self, records: list[Record]) -> bool:
        """Write *records* as the new snapshot. Returns ``False`` on failure."""
        try:
            payload = json.dumps(records, ensure_ascii=False)
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(".tmp")
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(self._path)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Local snapshot save failed: %s", exc)
            return False
        return True
