"""Elevation lookup cache with an SQLite index.

Elevations are keyed by position rounded to 3 decimal degrees, a grid of
roughly 100 m, so neighbouring slope samples and repeated runs reuse
earlier lookups. Entries expire after a fixed TTL and are never evicted
by size.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from bivacchi.geomath import round_half_up

if TYPE_CHECKING:
    from bivacchi.config import Config

logger = logging.getLogger("bivacchi")

ELEVATION_TTL_MS = 7 * 24 * 60 * 60 * 1000  # 7 days

_GRID_SCALE = 1000  # 3 decimal degrees

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS elevation_cache (
    grid_key TEXT PRIMARY KEY,
    elevation REAL NOT NULL,
    fetched_at_ms INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_fetched ON elevation_cache(fetched_at_ms);
"""


@dataclass
class CacheStatus:
    """Summary statistics for the elevation cache.

    Args:
        entry_count: Number of cached grid cells.
        oldest_fetch_ms: Fetch time of the oldest entry, 0 when empty.
    """

    __slots__ = ("entry_count", "oldest_fetch_ms")

    entry_count: int
    oldest_fetch_ms: int


def grid_key(lat: float, lon: float) -> str:
    """Return the cache key of the ~100 m grid cell containing *lat*/*lon*.

    Example:
        >>> grid_key(46.12345, 12.0004)
        '46123,12000'
    """
    return f"{round_half_up(lat * _GRID_SCALE)},{round_half_up(lon * _GRID_SCALE)}"


class ElevationCache:
    """Persistent elevation cache keyed by grid cell.

    Cache methods **never raise exceptions** to callers. All errors are
    caught internally and logged as warnings; a failing cache behaves
    like an empty one.

    Args:
        config: Configuration providing ``cache_dir``.
        ttl_ms: Entry lifetime in milliseconds.

    Example:
        >>> cache = ElevationCache(Config(cache_dir="/tmp/bivacchi-cache"))
        >>> cache.store(46.5, 12.1, 2210.0, now_ms=0)
        >>> cache.get(46.5, 12.1, now_ms=1000)
        2210.0
    """

    def __init__(self, config: Config, ttl_ms: int = ELEVATION_TTL_MS) -> None:
        self._cache_dir = Path(config.cache_dir)
        self._db_path = self._cache_dir / "elevation.db"
        self._ttl_ms = ttl_ms
        self._init_db()

    def _init_db(self) -> None:
        try:
            self._cache_dir.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._db_path))
            try:
                conn.executescript(_CREATE_TABLE_SQL)
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as exc:
            logger.warning("Elevation cache initialization failed: %s", exc)

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._db_path))

    def get(self, lat: float, lon: float, now_ms: int) -> float | None:
        """Return the cached elevation for the cell, or ``None`` if absent or expired."""
        key = grid_key(lat, lon)
        try:
            conn = self._get_connection()
            try:
                row = conn.execute(
                    "SELECT elevation, fetched_at_ms FROM elevation_cache "
                    "WHERE grid_key = ?",
                    (key,),
                ).fetchone()
                if row is None:
                    return None

                elevation: float = row[0]
                fetched_at_ms: int = row[1]
                if now_ms - fetched_at_ms >= self._ttl_ms:
                    conn.execute("DELETE FROM elevation_cache WHERE grid_key = ?", (key,))
                    conn.commit()
                    return None

                logger.debug("Elevation cache hit for %s", key)
                return float(elevation)
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.warning("Elevation cache lookup failed for %s: %s", key, exc)
            return None

    def store(self, lat: float, lon: float, elevation: float, now_ms: int) -> None:
        """Cache *elevation* for the cell containing *lat*/*lon*."""
        key = grid_key(lat, lon)
        try:
            conn = self._get_connection()
            try:
                conn.execute(
                    "INSERT OR REPLACE INTO elevation_cache "
                    "(grid_key, elevation, fetched_at_ms) VALUES (?, ?, ?)",
                    (key, float(elevation), int(now_ms)),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.warning("Elevation cache store failed for %s: %s", key, exc)

    def purge_expired(self, now_ms: int) -> int:
        """Delete expired entries and return how many were removed."""
        try:
            conn = self._get_connection()
            try:
                cursor = conn.execute(
                    "DELETE FROM elevation_cache WHERE fetched_at_ms <= ?",
                    (now_ms - self._ttl_ms,),
                )
                conn.commit()
                removed = cursor.rowcount
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.warning("Elevation cache purge failed: %s", exc)
            return 0
        if removed:
            logger.info("Elevation cache: purged %d expired entries", removed)
        return removed

    def status(self) -> CacheStatus:
        """Return summary statistics; zeros on any error."""
        try:
            conn = self._get_connection()
            try:
                row = conn.execute(
                    "SELECT COUNT(*), COALESCE(MIN(fetched_at_ms), 0) FROM elevation_cache"
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as exc:
            logger.warning("Elevation cache status query failed: %s", exc)
            return CacheStatus(entry_count=0, oldest_fetch_ms=0)
        if row is None:
            return CacheStatus(entry_count=0, oldest_fetch_ms=0)
        return CacheStatus(entry_count=row[0], oldest_fetch_ms=row[1])

    def clear(self) -> None:
        """Remove every cached elevation."""
        try:
            conn = self._get_connection()
            try:
                conn.execute("DELETE FROM elevation_cache")
                conn.commit()
            finally:
                conn.close()
            logger.debug("Elevation cache cleared")
        except sqlite3.Error as exc:
            logger.warning("Elevation cache clear failed: %s", exc)
