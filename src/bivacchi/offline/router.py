"""Per-resource caching disciplines for intercepted requests.

Requests are classified by URL into one of five resource classes, each
served with its own discipline:

==================  ==========================================  =======
Class               Discipline                                  Timeout
==================  ==========================================  =======
dataset API         network first, cached copy on failure       8 s
forecast/Overpass   network only, synthesized 503 on failure    10 s
map tiles           cache first, bounded store, 404 on failure  5 s
static assets       cache first, background refresh on hit      5 s
anything else       stale-while-revalidate                      5 s
==================  ==========================================  =======

Example:
    >>> router = CacheStrategyRouter(Runtime(config), config)
    >>> response = asyncio.run(router.handle(Request(url)))  # doctest: +SKIP
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Coroutine
from enum import Enum
from typing import Any
from urllib.parse import urljoin

import requests

from bivacchi._types import Record
from bivacchi.config import Config
from bivacchi.exceptions import OfflineError
from bivacchi.offline.storage import CacheStorage, CachedResponse, Request
from bivacchi.providers.remote import DATASET_PATH
from bivacchi.runtime import Runtime

logger = logging.getLogger(__name__)

CACHE_VERSION = "bivacchi-v3"
STATIC_CACHE = f"{CACHE_VERSION}-static"
DATA_CACHE = f"{CACHE_VERSION}-data"
MAP_CACHE = f"{CACHE_VERSION}-maps"
_CACHE_PREFIX = "bivacchi-"

STATIC_ASSETS: tuple[str, ...] = (
    "/",
    "/index.html",
    "/style.css",
    "/script.js",
    "/manifest.json",
    "/icons/icon.svg",
    "https://unpkg.com/leaflet@1.9.4/dist/leaflet.css",
    "https://unpkg.com/leaflet@1.9.4/dist/leaflet.js",
    "https://cdn.jsdelivr.net/npm/nouislider@15.8.0/dist/nouislider.min.css",
    "https://cdn.jsdelivr.net/npm/nouislider@15.8.0/dist/nouislider.min.js",
)

API_PATTERNS = (re.compile(r"/api/bivacchi$"), re.compile(r"/api/me$"))
VOLATILE_HOSTS = ("open-meteo.com", "overpass-api.de")
MAP_TILE_PATTERN = re.compile(r"tile\.openstreetmap\.org")

MAX_MAP_TILES = 500
MAP_TILE_EVICT_BATCH = 100

API_TIMEOUT_S = 8.0
VOLATILE_TIMEOUT_S = 10.0
ASSET_TIMEOUT_S = 5.0

_NETWORK_ERRORS = (asyncio.TimeoutError, requests.RequestException)


class ResourceClass(str, Enum):
    DATASET_API = "dataset_api"
    VOLATILE_API = "volatile_api"
    MAP_TILE = "map_tile"
    STATIC_ASSET = "static_asset"
    OTHER = "other"


def classify(request: Request) -> ResourceClass:
    """Assign *request* to exactly one resource class; first match wins."""
    if any(pattern.search(request.path) for pattern in API_PATTERNS):
        return ResourceClass.DATASET_API
    if any(host in request.host for host in VOLATILE_HOSTS):
        return ResourceClass.VOLATILE_API
    if MAP_TILE_PATTERN.search(request.host):
        return ResourceClass.MAP_TILE
    if request.path in STATIC_ASSETS or request.url in STATIC_ASSETS:
        return ResourceClass.STATIC_ASSET
    return ResourceClass.OTHER


def offline_dataset_response(url: str = "") -> CachedResponse:
    """Empty dataset served when the dataset API is unreachable and uncached."""
    return CachedResponse.json_response([], status=503, url=url)


def offline_api_response(url: str = "") -> CachedResponse:
    return CachedResponse.json_response({"error": "offline"}, status=503, url=url)


class CacheStrategyRouter:
    """Serve intercepted GET requests from the network and named stores.

    Background refreshes run as tasks on the current event loop; call
    :meth:`drain` to wait for them.

    Args:
        runtime: Session runtime performing network requests.
        config: Configuration; ``api_base_url`` is the origin relative
            static assets and the dataset URL resolve against.
        storage: Store registry; a fresh one when omitted.
    """

    def __init__(
        self,
        runtime: Runtime,
        config: Config,
        storage: CacheStorage | None = None,
    ) -> None:
        self._runtime = runtime
        self._config = config
        self._storage = storage or CacheStorage()
        self._storage.open(MAP_CACHE, max_entries=MAX_MAP_TILES, evict_batch=MAP_TILE_EVICT_BATCH)
        self._background: set[asyncio.Task[Any]] = set()

    @property
    def storage(self) -> CacheStorage:
        return self._storage

    @property
    def dataset_url(self) -> str:
        return urljoin(self._config.api_base_url + "/", DATASET_PATH.lstrip("/"))

    # ── Lifecycle ──────────────────────────────────────────────────

    async def install(self) -> bool:
        """Pre-cache every static asset, all or nothing.

        Returns:
            True when every asset was fetched and stored.
        """
        urls = [urljoin(self._config.api_base_url + "/", asset) for asset in STATIC_ASSETS]
        results = await asyncio.gather(
            *(self._fetch(Request(url), ASSET_TIMEOUT_S) for url in urls),
            return_exceptions=True,
        )
        failed = [
            url
            for url, result in zip(urls, results)
            if isinstance(result, BaseException) or not result.ok
        ]
        if failed:
            logger.error("Static pre-cache failed for %d assets: %s", len(failed), failed[0])
            return False

        store = self._storage.open(STATIC_CACHE)
        for url, result in zip(urls, results):
            store.put(url, result)  # type: ignore[arg-type]
        logger.info("Pre-cached %d static assets", len(urls))
        return True

    def activate(self) -> list[str]:
        """Delete stores left over from older cache versions."""
        current = {STATIC_CACHE, DATA_CACHE, MAP_CACHE}
        stale = [
            name
            for name in self._storage.keys()
            if name.startswith(_CACHE_PREFIX) and name not in current
        ]
        for name in stale:
            logger.info("Deleting old cache %s", name)
            self._storage.delete(name)
        return stale

    def cache_dataset(self, records: list[Record]) -> None:
        """Store a copy of *records* as the dataset API's cached response."""
        self._storage.open(DATA_CACHE).put(
            self.dataset_url,
            CachedResponse.json_response(json.loads(json.dumps(records)), url=self.dataset_url),
        )

    def cache_status(self) -> dict[str, int]:
        """Entry count per store."""
        return {name: len(self._storage.open(name)) for name in self._storage.keys()}

    async def drain(self) -> None:
        """Wait for pending background refreshes."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ── Dispatch ───────────────────────────────────────────────────

    async def handle(self, request: Request) -> CachedResponse | None:
        """Serve *request* according to its resource class.

        Returns:
            The response, or None when the request is not intercepted
            (non-GET methods, non-http schemes).

        Raises:
            OfflineError: If neither the network nor a store can serve it.
        """
        if request.method.upper() != "GET":
            return None
        if not request.scheme.startswith("http"):
            return None

        kind = classify(request)
        logger.debug("%s %s", kind.value, request.url)
        if kind is ResourceClass.DATASET_API:
            return await self._network_first(request, DATA_CACHE)
        if kind is ResourceClass.VOLATILE_API:
            return await self._network_only(request, VOLATILE_TIMEOUT_S)
        if kind is ResourceClass.MAP_TILE:
            return await self._cache_first(request, MAP_CACHE, map_tile=True)
        if kind is ResourceClass.STATIC_ASSET:
            return await self._cache_first(request, STATIC_CACHE)
        return await self._stale_while_revalidate(request, STATIC_CACHE)

    # ── Strategies ─────────────────────────────────────────────────

    async def _fetch(self, request: Request, timeout: float | None = None) -> CachedResponse:
        fetch = self._runtime.fetch(request.url, timeout=timeout)
        if timeout is None:
            resp = await fetch
        else:
            resp = await asyncio.wait_for(fetch, timeout)
        return CachedResponse.from_requests(resp)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _offline(self, request: Request, exc: BaseException | None = None) -> OfflineError:
        cause = f"{type(exc).__name__}: {exc}" if exc is not None else "Network request failed"
        return OfflineError(
            what=f"Cannot serve {request.url}",
            cause=f"{cause}; no cached copy available",
            fix="Retry when the connection is restored",
        )

    async def _network_first(self, request: Request, store_name: str) -> CachedResponse:
        try:
            response = await self._fetch(request, API_TIMEOUT_S)
        except _NETWORK_ERRORS as exc:
            logger.info("Network failed, trying cache: %s", request.url)
            cached = self._storage.match(request.url)
            if cached is not None:
                return cached
            if DATASET_PATH in request.url:
                return offline_dataset_response(request.url)
            raise self._offline(request, exc) from exc

        if response.ok:
            self._storage.open(store_name).put(request.url, response)
        return response

    async def _network_only(self, request: Request, timeout: float) -> CachedResponse:
        try:
            return await self._fetch(request, timeout)
        except _NETWORK_ERRORS as exc:
            logger.info("Volatile request failed (%s): %s", type(exc).__name__, request.url)
            return offline_api_response(request.url)

    async def _cache_first(
        self,
        request: Request,
        store_name: str,
        map_tile: bool = False,
    ) -> CachedResponse:
        cached = self._storage.match(request.url)
        if cached is not None:
            if not map_tile:
                self._spawn(self._fetch_and_cache(request, store_name))
            return cached

        try:
            response = await self._fetch(request, ASSET_TIMEOUT_S)
        except _NETWORK_ERRORS as exc:
            logger.info("Fetch failed for %s", request.url)
            if map_tile:
                return CachedResponse(status=404, url=request.url)
            raise self._offline(request, exc) from exc

        if response.ok:
            self._storage.open(store_name).put(request.url, response)
        return response

    async def _fetch_and_cache(self, request: Request, store_name: str) -> None:
        try:
            response = await self._fetch(request)
        except _NETWORK_ERRORS as exc:
            logger.debug("Background refresh failed for %s: %s", request.url, exc)
            return
        if response.ok:
            self._storage.open(store_name).put(request.url, response)

    async def _revalidate(self, request: Request, store_name: str) -> CachedResponse | None:
        try:
            response = await self._fetch(request, ASSET_TIMEOUT_S)
        except _NETWORK_ERRORS as exc:
            logger.debug("Revalidation failed for %s: %s", request.url, exc)
            return None
        if response.ok:
            self._storage.open(store_name).put(request.url, response)
        return response

    async def _stale_while_revalidate(self, request: Request, store_name: str) -> CachedResponse:
        cached = self._storage.match(request.url)
        refresh = self._spawn(self._revalidate(request, store_name))
        if cached is not None:
            return cached

        response = await refresh
        if response is None:
            raise self._offline(request)
        return response
