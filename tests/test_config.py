"""Tests for the Config model and configure()."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from bivacchi.config import Config, configure, get_default_config
from bivacchi.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def _reset_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset module-level config before each test."""
    import bivacchi.config as _cfg

    monkeypatch.setattr(_cfg, "_default_config", Config())


# ── Config model ────────────────────────────────────────────────────


@pytest.mark.unit
class TestConfigDefaults:
    """Verify Config constructs with correct defaults."""

    def test_defaults(self) -> None:
        cfg = Config()
        assert cfg.api_base_url == "http://localhost:3000"
        assert cfg.elevation_url == "https://api.open-meteo.com/v1/elevation"
        assert cfg.request_timeout_s == 30.0
        assert cfg.snapshot_key == "bivacchi-data"
        assert cfg.regions == ("Veneto", "Trentino-Alto Adige", "Friuli-Venezia Giulia")

    def test_cache_dir_default_expands_home(self) -> None:
        cfg = Config()
        assert cfg.cache_dir.is_absolute()
        assert "~" not in str(cfg.cache_dir)

    def test_cache_dir_accepts_string(self, tmp_path: Path) -> None:
        cfg = Config(cache_dir=str(tmp_path))
        assert cfg.cache_dir == tmp_path

    def test_frozen(self) -> None:
        cfg = Config()
        with pytest.raises(ValidationError):
            cfg.request_timeout_s = 5  # type: ignore[misc]


@pytest.mark.unit
class TestConfigValidation:
    """Verify field validators."""

    def test_trailing_slash_stripped(self) -> None:
        cfg = Config(api_base_url="https://bivacchi.example.org/")
        assert cfg.api_base_url == "https://bivacchi.example.org"

    @pytest.mark.parametrize("url", ["ftp://example.org", "localhost:3000", "", "https:// x"])
    def test_rejects_non_http_url(self, url: str) -> None:
        with pytest.raises(ValidationError):
            Config(api_base_url=url)

    @pytest.mark.parametrize("timeout", [0, -1.5])
    def test_rejects_non_positive_timeout(self, timeout: float) -> None:
        with pytest.raises(ValidationError):
            Config(request_timeout_s=timeout)

    @pytest.mark.parametrize("key", ["../escape", "a/b", "name\n", ""])
    def test_rejects_unsafe_snapshot_key(self, key: str) -> None:
        with pytest.raises(ValidationError):
            Config(snapshot_key=key)

    def test_rejects_unknown_field(self) -> None:
        with pytest.raises(ValidationError):
            Config(unknown_option=1)  # type: ignore[call-arg]


# ── configure() ─────────────────────────────────────────────────────


@pytest.mark.unit
class TestConfigure:
    """Verify module-level default configuration."""

    def test_configure_updates_default(self) -> None:
        configure(api_base_url="https://bivacchi.example.org")
        assert get_default_config().api_base_url == "https://bivacchi.example.org"

    def test_configure_keeps_other_values(self) -> None:
        configure(request_timeout_s=12)
        configure(snapshot_key="alt-data")
        cfg = get_default_config()
        assert cfg.request_timeout_s == 12
        assert cfg.snapshot_key == "alt-data"

    def test_existing_config_unaffected(self) -> None:
        before = get_default_config()
        configure(request_timeout_s=5)
        assert before.request_timeout_s == 30.0

    def test_invalid_value_raises_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            configure(request_timeout_s=-1)
        assert get_default_config().request_timeout_s == 30.0

    def test_unknown_key_raises_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError):
            configure(not_an_option=True)
