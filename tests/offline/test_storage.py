"""Tests for the named response stores."""

from __future__ import annotations

import pytest
from fakes import make_response

from bivacchi.offline.storage import CacheStorage, CachedResponse, CacheStore, Request


def body(text: str) -> CachedResponse:
    return CachedResponse(status=200, body=text.encode("utf-8"))


@pytest.mark.unit
class TestRequest:
    def test_parts(self) -> None:
        request = Request("https://a.tile.openstreetmap.org/5/16/11.png")
        assert request.scheme == "https"
        assert request.host == "a.tile.openstreetmap.org"
        assert request.path == "/5/16/11.png"
        assert request.method == "GET"

    def test_bare_origin_has_root_path(self) -> None:
        assert Request("http://localhost:3000").path == "/"

    def test_non_http_scheme(self) -> None:
        assert Request("chrome-extension://abc/page.html").scheme == "chrome-extension"


@pytest.mark.unit
class TestCachedResponse:
    def test_ok_range(self) -> None:
        assert CachedResponse(status=204).ok
        assert not CachedResponse(status=304).ok
        assert not CachedResponse(status=503).ok

    def test_json_response(self) -> None:
        response = CachedResponse.json_response({"error": "offline"}, status=503)
        assert response.json() == {"error": "offline"}
        assert response.headers["Content-Type"] == "application/json"
        assert response.status == 503

    def test_from_requests(self) -> None:
        resp = make_response(200, [{"id": 1}], url="http://store.test/api/bivacchi")
        response = CachedResponse.from_requests(resp)
        assert response.ok
        assert response.json() == [{"id": 1}]
        assert response.url == "http://store.test/api/bivacchi"
        assert response.headers["Content-Type"] == "application/json"

    def test_text_tolerates_bad_bytes(self) -> None:
        assert CachedResponse(status=200, body=b"caf\xff").text.startswith("caf")


@pytest.mark.unit
class TestCacheStore:
    def test_put_and_match(self) -> None:
        store = CacheStore("s")
        store.put("u1", body("a"))
        assert "u1" in store
        assert store.match("u1") == body("a")
        assert store.match("u2") is None

    def test_replacing_moves_to_newest(self) -> None:
        store = CacheStore("s")
        for url in ("u1", "u2", "u3"):
            store.put(url, body(url))
        store.put("u1", body("again"))
        assert store.keys() == ["u2", "u3", "u1"]
        assert store.match("u1") == body("again")

    def test_delete(self) -> None:
        store = CacheStore("s")
        store.put("u1", body("a"))
        assert store.delete("u1")
        assert not store.delete("u1")
        assert len(store) == 0

    def test_unbounded_never_evicts(self) -> None:
        store = CacheStore("s")
        evicted = sum(store.put(f"u{i}", body("x")) for i in range(1000))
        assert evicted == 0
        assert len(store) == 1000

    def test_bounded_evicts_oldest_batch(self) -> None:
        store = CacheStore("tiles", max_entries=500, evict_batch=100)
        for i in range(500):
            assert store.put(f"t{i}", body("x")) == 0
        assert len(store) == 500

        assert store.put("t500", body("x")) == 100
        assert len(store) == 401
        assert "t0" not in store
        assert "t99" not in store
        assert "t100" in store
        assert "t500" in store

    def test_bound_holds_after_every_insert(self) -> None:
        store = CacheStore("tiles", max_entries=50, evict_batch=10)
        for i in range(300):
            store.put(f"t{i}", body("x"))
            assert len(store) <= 50


@pytest.mark.unit
class TestCacheStorage:
    def test_open_is_idempotent(self) -> None:
        storage = CacheStorage()
        first = storage.open("maps", max_entries=5)
        again = storage.open("maps")
        assert first is again
        assert again.max_entries == 5

    def test_match_searches_in_creation_order(self) -> None:
        storage = CacheStorage()
        storage.open("a").put("u", body("from a"))
        storage.open("b").put("u", body("from b"))
        storage.open("b").put("only-b", body("b"))
        assert storage.match("u") == body("from a")
        assert storage.match("only-b") == body("b")
        assert storage.match("missing") is None

    def test_keys_and_delete(self) -> None:
        storage = CacheStorage()
        storage.open("a")
        storage.open("b")
        assert storage.keys() == ["a", "b"]
        assert storage.delete("a")
        assert not storage.delete("a")
        assert storage.keys() == ["b"]
