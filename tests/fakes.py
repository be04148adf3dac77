"""Test doubles shared across the suite."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Union

import requests

START_MS = 1_760_000_000_000  # 2025-10-09T08:53:20Z
DAY_MS = 24 * 60 * 60 * 1000
LOCAL_TZ = timezone(timedelta(hours=2))


@dataclass
class FetchCall:
    """One request seen by ``FakeRuntime.fetch``."""

    url: str
    method: str
    params: dict[str, Any] | None
    json: Any
    timeout: float | None


Handler = Callable[[FetchCall], Union[requests.Response, BaseException]]


def make_response(
    status: int = 200,
    body: Any = None,
    *,
    raw: bytes | None = None,
    url: str = "",
) -> requests.Response:
    """Build a real ``requests.Response`` with a JSON (or raw) body."""
    resp = requests.Response()
    resp.status_code = status
    if raw is not None:
        resp._content = raw
    elif body is not None:
        resp._content = json.dumps(body).encode("utf-8")
        resp.headers["Content-Type"] = "application/json"
    else:
        resp._content = b""
    resp.encoding = "utf-8"
    resp.url = url
    return resp


def not_found(call: FetchCall) -> requests.Response:
    return make_response(404, url=call.url)


class FakeRuntime:
    """Runtime with scripted responses and a virtual clock.

    ``handler`` maps each request to a response, or to an exception that
    ``fetch`` raises. ``delay`` records the requested wait and advances
    the virtual clock instead of sleeping.
    """

    def __init__(self, handler: Handler | None = None, start_ms: int = START_MS) -> None:
        self.handler: Handler = handler or not_found
        self.calls: list[FetchCall] = []
        self.delays: list[float] = []
        self.clock_s = 0.0
        self.start_ms = start_ms

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        json: Any = None,
        timeout: float | None = None,
    ) -> requests.Response:
        call = FetchCall(url=url, method=method, params=params, json=json, timeout=timeout)
        self.calls.append(call)
        await asyncio.sleep(0)
        result = self.handler(call)
        if isinstance(result, BaseException):
            raise result
        return result

    async def delay(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.clock_s += seconds
        await asyncio.sleep(0)

    def monotonic(self) -> float:
        return self.clock_s

    def now_ms(self) -> int:
        return self.start_ms + int(self.clock_s * 1000)

    def now(self) -> datetime:
        return datetime.fromtimestamp(self.now_ms() / 1000, tz=LOCAL_TZ)

    def calls_to(self, url_prefix: str, method: str = "GET") -> list[FetchCall]:
        return [c for c in self.calls if c.url.startswith(url_prefix) and c.method == method]
