"""Offline request cache: named stores and per-resource caching disciplines."""

from bivacchi.offline.router import CacheStrategyRouter, ResourceClass, classify
from bivacchi.offline.storage import CacheStorage, CacheStore, CachedResponse, Request

__all__ = [
    "CacheStorage",
    "CacheStore",
    "CacheStrategyRouter",
    "CachedResponse",
    "Request",
    "ResourceClass",
    "classify",
]
