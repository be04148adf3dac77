"""Named response stores for the offline cache layer.

A ``CacheStorage`` holds independent ``CacheStore`` key-spaces, each keyed
by request URL and kept in insertion order. A store may be bounded by
entry count, in which case the oldest entries are evicted in batches.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit

import requests

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Request:
    """An intercepted outgoing request."""

    url: str
    method: str = "GET"

    @property
    def scheme(self) -> str:
        return urlsplit(self.url).scheme

    @property
    def host(self) -> str:
        return urlsplit(self.url).hostname or ""

    @property
    def path(self) -> str:
        return urlsplit(self.url).path or "/"


@dataclass(frozen=True)
class CachedResponse:
    """A response as served to the caller, from the network or a store.

    Args:
        status: HTTP status code.
        body: Raw response body.
        headers: Response headers.
        url: URL the response belongs to.
    """

    status: int
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)

    @classmethod
    def from_requests(cls, resp: requests.Response) -> CachedResponse:
        return cls(
            status=resp.status_code,
            body=resp.content or b"",
            headers=dict(resp.headers),
            url=resp.url or "",
        )

    @classmethod
    def json_response(cls, payload: Any, status: int = 200, url: str = "") -> CachedResponse:
        return cls(
            status=status,
            body=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            url=url,
        )


class CacheStore:
    """One named, insertion-ordered response store.

    Args:
        name: Store name.
        max_entries: Entry bound; ``None`` for unbounded.
        evict_batch: Number of oldest entries removed when the bound is
            exceeded.
    """

    def __init__(
        self,
        name: str,
        max_entries: int | None = None,
        evict_batch: int = 100,
    ) -> None:
        self.name = name
        self.max_entries = max_entries
        self.evict_batch = evict_batch
        self._entries: dict[str, CachedResponse] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: object) -> bool:
        return url in self._entries

    def match(self, url: str) -> CachedResponse | None:
        return self._entries.get(url)

    def put(self, url: str, response: CachedResponse) -> int:
        """Store *response* under *url*, then enforce the entry bound.

        Replacing an existing key moves it to the newest position.

        Returns:
            Number of evicted entries.
        """
        self._entries.pop(url, None)
        self._entries[url] = response

        if self.max_entries is None or len(self._entries) <= self.max_entries:
            return 0
        oldest = list(self._entries)[: self.evict_batch]
        for key in oldest:
            del self._entries[key]
        logger.info("Evicted %d oldest entries from %s", len(oldest), self.name)
        return len(oldest)

    def delete(self, url: str) -> bool:
        return self._entries.pop(url, None) is not None

    def keys(self) -> list[str]:
        """Stored URLs, oldest first."""
        return list(self._entries)


class CacheStorage:
    """Registry of named ``CacheStore`` instances."""

    def __init__(self) -> None:
        self._stores: dict[str, CacheStore] = {}

    def open(
        self,
        name: str,
        max_entries: int | None = None,
        evict_batch: int = 100,
    ) -> CacheStore:
        """Return the store called *name*, creating it with the given bound."""
        store = self._stores.get(name)
        if store is None:
            store = CacheStore(name, max_entries=max_entries, evict_batch=evict_batch)
            self._stores[name] = store
        return store

    def match(self, url: str) -> CachedResponse | None:
        """First cached response for *url* across all stores, in creation order."""
        for store in self._stores.values():
            cached = store.match(url)
            if cached is not None:
                return cached
        return None

    def keys(self) -> list[str]:
        return list(self._stores)

    def delete(self, name: str) -> bool:
        return self._stores.pop(name, None) is not None
