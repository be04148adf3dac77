"""Shared test fixtures for the bivacchi test suite."""

from __future__ import annotations

from pathlib import Path

import pytest
from fakes import FakeRuntime

from bivacchi.cache import ElevationCache
from bivacchi.config import Config


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    """Return a Config whose cache directory is an isolated temp dir."""
    return Config(cache_dir=tmp_path, api_base_url="http://store.test")


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    """Return a FakeRuntime answering every request with HTTP 404."""
    return FakeRuntime()


@pytest.fixture
def elevation_cache(test_config: Config) -> ElevationCache:
    """Return an empty ElevationCache in the temp cache directory."""
    return ElevationCache(test_config)
