"""Tests for shared JSON provider request handling."""

from __future__ import annotations

import asyncio

import pytest
import requests
from fakes import FakeRuntime, make_response

from bivacchi._types import FailureReason
from bivacchi.config import Config
from bivacchi.providers.base import JsonProvider


class _EchoProvider(JsonProvider):
    _name = "echo"

    async def get(self) -> object:
        return await self._get_json("https://echo.test/v1", {"q": 1})


def _run(runtime: FakeRuntime, config: Config):  # type: ignore[no-untyped-def]
    return asyncio.run(_EchoProvider(runtime, config).get())


@pytest.mark.unit
class TestJsonProvider:
    """Tests for _get_json failure tagging."""

    def test_success(self, test_config: Config) -> None:
        runtime = FakeRuntime(lambda call: make_response(200, {"ok": True}))
        outcome = _run(runtime, test_config)
        assert outcome.ok
        assert outcome.value == {"ok": True}
        assert runtime.calls[0].params == {"q": 1}

    def test_name(self, test_config: Config) -> None:
        assert _EchoProvider(FakeRuntime(), test_config).name == "echo"

    def test_timeout(self, test_config: Config) -> None:
        runtime = FakeRuntime(lambda call: requests.Timeout("read timed out"))
        assert _run(runtime, test_config).failure is FailureReason.TIMEOUT

    def test_connection_error(self, test_config: Config) -> None:
        runtime = FakeRuntime(lambda call: requests.ConnectionError("unreachable"))
        assert _run(runtime, test_config).failure is FailureReason.NETWORK_ERROR

    def test_rate_limited(self, test_config: Config) -> None:
        runtime = FakeRuntime(lambda call: make_response(429))
        outcome = _run(runtime, test_config)
        assert outcome.failure is FailureReason.RATE_LIMITED
        assert outcome.detail == "HTTP 429"

    @pytest.mark.parametrize("status", [400, 404, 500, 503])
    def test_http_error(self, test_config: Config, status: int) -> None:
        runtime = FakeRuntime(lambda call: make_response(status))
        outcome = _run(runtime, test_config)
        assert outcome.failure is FailureReason.HTTP_ERROR
        assert str(status) in outcome.detail

    def test_invalid_json(self, test_config: Config) -> None:
        runtime = FakeRuntime(lambda call: make_response(200, raw=b"<html>busy</html>"))
        assert _run(runtime, test_config).failure is FailureReason.MALFORMED_RESPONSE
