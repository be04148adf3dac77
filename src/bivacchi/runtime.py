"""Suspension points for the enrichment pipeline.

Every network call and every deliberate wait in the pipeline goes
through a ``Runtime``. The default implementation performs blocking
``requests`` calls on a worker thread and sleeps with ``asyncio``;
tests substitute a runtime with scripted responses and a virtual clock
so retry and backoff timing can be checked without wall-clock waits.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from typing import Any

import requests

from bivacchi.config import Config

logger = logging.getLogger(__name__)

_USER_AGENT = "bivacchi-enrichment/0.3"


class Runtime:
    """HTTP, delay and clock access for one enrichment session.

    Args:
        config: Configuration providing the default request timeout.
        session: Optional ``requests.Session`` to reuse connections.

    Example:
        >>> runtime = Runtime(Config())
        >>> response = asyncio.run(
        ...     runtime.fetch("https://api.open-meteo.com/v1/elevation",
        ...                   params={"latitude": 46.5, "longitude": 12.1})
        ... )  # doctest: +SKIP
    """

    def __init__(self, config: Config, session: requests.Session | None = None) -> None:
        self._config = config
        self._session = session if session is not None else requests.Session()
        self._session.headers.setdefault("User-Agent", _USER_AGENT)

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        json: Any = None,
        timeout: float | None = None,
    ) -> requests.Response:
        """Perform one HTTP request without blocking the event loop.

        Raises:
            requests.RequestException: On connection errors and timeouts.
        """
        effective_timeout = timeout if timeout is not None else self._config.request_timeout_s
        logger.debug("%s %s %s", method, url, params or "")
        return await asyncio.to_thread(
            self._session.request,
            method,
            url,
            params=params,
            json=json,
            timeout=effective_timeout,
        )

    async def delay(self, seconds: float) -> None:
        """Suspend the current task for *seconds*."""
        if seconds > 0:
            await asyncio.sleep(seconds)

    def monotonic(self) -> float:
        """Monotonic clock in seconds, used for request spacing."""
        return time.monotonic()

    def now_ms(self) -> int:
        """Wall-clock time in epoch milliseconds, used for ``*_updated_at`` tags."""
        return int(time.time() * 1000)

    def now(self) -> datetime:
        """Timezone-aware local wall-clock time."""
        return datetime.now().astimezone()
