"""Tests for the remote dataset store client."""

from __future__ import annotations

import asyncio
import logging

import pytest
import requests
from fakes import FakeRuntime, make_response

from bivacchi._types import FailureReason
from bivacchi.config import Config
from bivacchi.providers.remote import RemoteDatasetStore

RECORDS = [
    {"id": 1, "lat": 46.43, "lon": 12.05, "tags": {"name": "Bivacco Baroni"}},
    {"id": 2, "lat": 46.5, "lon": 12.0, "tags": {"name": "Bivacco Fanton"}},
]


@pytest.mark.unit
class TestFetchAll:
    """Tests for RemoteDatasetStore.fetch_all."""

    def test_url(self, test_config: Config) -> None:
        assert RemoteDatasetStore(FakeRuntime(), test_config).url == "http://store.test/api/bivacchi"

    def test_returns_records(self, test_config: Config) -> None:
        runtime = FakeRuntime(lambda call: make_response(200, RECORDS))
        outcome = asyncio.run(RemoteDatasetStore(runtime, test_config).fetch_all())
        assert outcome.value == RECORDS
        assert runtime.calls[0].method == "GET"

    def test_empty_list_is_success(self, test_config: Config) -> None:
        runtime = FakeRuntime(lambda call: make_response(200, []))
        outcome = asyncio.run(RemoteDatasetStore(runtime, test_config).fetch_all())
        assert outcome.ok
        assert outcome.value == []

    def test_non_list_body(self, test_config: Config) -> None:
        runtime = FakeRuntime(lambda call: make_response(200, {"error": "oops"}))
        outcome = asyncio.run(RemoteDatasetStore(runtime, test_config).fetch_all())
        assert outcome.failure is FailureReason.MALFORMED_RESPONSE

    def test_non_record_entries_dropped(self, test_config: Config) -> None:
        runtime = FakeRuntime(lambda call: make_response(200, [RECORDS[0], None, 3]))
        outcome = asyncio.run(RemoteDatasetStore(runtime, test_config).fetch_all())
        assert outcome.value == [RECORDS[0]]

    def test_unreachable(self, test_config: Config) -> None:
        runtime = FakeRuntime(lambda call: requests.ConnectionError("refused"))
        outcome = asyncio.run(RemoteDatasetStore(runtime, test_config).fetch_all())
        assert outcome.failure is FailureReason.NETWORK_ERROR


@pytest.mark.unit
class TestReplaceAll:
    """Tests for RemoteDatasetStore.replace_all."""

    def test_posts_whole_collection(self, test_config: Config) -> None:
        runtime = FakeRuntime(lambda call: make_response(200, {"ok": True}))
        assert asyncio.run(RemoteDatasetStore(runtime, test_config).replace_all(RECORDS))
        call = runtime.calls[0]
        assert call.method == "POST"
        assert call.url == "http://store.test/api/bivacchi"
        assert call.json == RECORDS

    def test_rejected(self, test_config: Config, caplog: pytest.LogCaptureFixture) -> None:
        runtime = FakeRuntime(lambda call: make_response(413))
        with caplog.at_level(logging.WARNING):
            assert not asyncio.run(RemoteDatasetStore(runtime, test_config).replace_all(RECORDS))
        assert "HTTP 413" in caplog.text

    def test_network_error_swallowed(self, test_config: Config) -> None:
        runtime = FakeRuntime(lambda call: requests.ConnectionError("refused"))
        assert not asyncio.run(RemoteDatasetStore(runtime, test_config).replace_all(RECORDS))
