"""Configuration for bivacchi.

A single frozen pydantic model carries every endpoint, path and timeout
the enrichment pipeline and the offline cache layer need. Components
receive a ``Config`` at construction time so later ``configure()`` calls
never affect objects that already exist.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from bivacchi.exceptions import ConfigurationError

logger = logging.getLogger("bivacchi")

_URL_RE = re.compile(r"^https?://[^\s/]+")


class Config(BaseModel):
    """Package configuration model.

    Args:
        cache_dir: Directory holding the local dataset snapshot.
        api_base_url: Origin of the remote dataset store.
        elevation_url: Primary single-point elevation endpoint.
        fallback_elevation_url: Secondary elevation lookup endpoint.
        forecast_url: Hourly/daily forecast endpoint.
        overpass_url: Overpass interpreter used for initial ingestion.
        request_timeout_s: Per-request timeout for enrichment calls.
        snapshot_key: Name of the local dataset snapshot.
        regions: Administrative regions queried on initial ingestion.

    Example:
        >>> cfg = Config(cache_dir="~/bivacchi-cache", request_timeout_s=10)
        >>> cfg.snapshot_key
        'bivacchi-data'
    """

    model_config = ConfigDict(frozen=True, validate_default=True, extra="forbid")

    cache_dir: Path = Path("~/.bivacchi")
    api_base_url: str = "http://localhost:3000"
    elevation_url: str = "https://api.open-meteo.com/v1/elevation"
    fallback_elevation_url: str = "https://api.open-elevation.com/api/v1/lookup"
    forecast_url: str = "https://api.open-meteo.com/v1/forecast"
    overpass_url: str = "https://overpass-api.de/api/interpreter"
    request_timeout_s: float = 30.0
    snapshot_key: str = "bivacchi-data"
    regions: tuple[str, ...] = (
        "Veneto",
        "Trentino-Alto Adige",
        "Friuli-Venezia Giulia",
    )

    @field_validator("cache_dir", mode="before")
    @classmethod
    def _expand_cache_dir(cls, v: str | Path) -> Path:
        """Expand ``~`` in the cache directory path."""
        return Path(v).expanduser()

    @field_validator(
        "api_base_url",
        "elevation_url",
        "fallback_elevation_url",
        "forecast_url",
        "overpass_url",
    )
    @classmethod
    def _validate_url(cls, v: str) -> str:
        if not _URL_RE.match(v):
            msg = f"expected an http(s) URL, got {v!r}"
            raise ValueError(msg)
        return v.rstrip("/")

    @field_validator("request_timeout_s")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        if v <= 0:
            msg = "request_timeout_s must be greater than 0"
            raise ValueError(msg)
        return v

    @field_validator("snapshot_key")
    @classmethod
    def _validate_snapshot_key(cls, v: str) -> str:
        """Snapshot keys become file names, so keep them path-safe."""
        if not re.fullmatch(r"[A-Za-z0-9_.-]+", v):
            msg = "snapshot_key may only contain letters, digits, '.', '_' and '-'"
            raise ValueError(msg)
        return v


_default_config = Config()


def configure(**kwargs: Any) -> None:
    """Set module-level default configuration.

    Creates a new ``Config`` from the current defaults merged with
    the provided keyword arguments.

    Raises:
        ConfigurationError: If a provided value fails validation or the
            key is unknown.

    Example:
        >>> configure(api_base_url="https://bivacchi.example.org")
    """
    global _default_config  # noqa: PLW0603
    current = _default_config.model_dump()
    current.update(kwargs)
    try:
        _default_config = Config(**current)
    except ValidationError as exc:
        raise ConfigurationError(
            what="Invalid configuration",
            cause=f"{exc.error_count()} invalid value(s): {sorted(kwargs)}",
            fix="Check the option names and values passed to configure()",
        ) from exc
    logger.debug("Default configuration updated: %s", sorted(kwargs))


def get_default_config() -> Config:
    """Return the current module-level default configuration."""
    return _default_config
