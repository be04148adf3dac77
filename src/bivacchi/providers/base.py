"""Shared request handling for external JSON providers.

Every enrichment provider performs single GET requests through the
session ``Runtime`` and turns transport errors, HTTP statuses and
undecodable bodies into tagged ``Outcome`` failures instead of raising.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from bivacchi._types import FailureReason, Outcome
from bivacchi.config import Config
from bivacchi.runtime import Runtime

logger = logging.getLogger(__name__)

_RATE_LIMITED_STATUS = 429


class JsonProvider:
    """Base class for providers answering GET requests with JSON.

    Subclasses set ``_name`` to a short identifier used in logs.

    Args:
        runtime: Session runtime performing the requests.
        config: Configuration snapshot providing endpoints.
    """

    _name: str = ""

    def __init__(self, runtime: Runtime, config: Config) -> None:
        self._runtime = runtime
        self._config = config

    @property
    def name(self) -> str:
        return self._name

    async def _get_json(self, url: str, params: dict[str, Any]) -> Outcome[Any]:
        """GET *url* and decode the JSON body.

        Returns:
            The decoded body, or a failure tagged ``RATE_LIMITED``,
            ``TIMEOUT``, ``NETWORK_ERROR``, ``HTTP_ERROR`` or
            ``MALFORMED_RESPONSE``.
        """
        try:
            resp = await self._runtime.fetch(url, params=params)
        except requests.Timeout as exc:
            logger.warning("%s request timed out: %s", self._name, exc)
            return Outcome.fail(FailureReason.TIMEOUT, str(exc))
        except requests.RequestException as exc:
            logger.warning("%s request failed (%s): %s", self._name, type(exc).__name__, exc)
            return Outcome.fail(FailureReason.NETWORK_ERROR, str(exc))

        if resp.status_code == _RATE_LIMITED_STATUS:
            return Outcome.fail(FailureReason.RATE_LIMITED, "HTTP 429")
        if not resp.ok:
            logger.warning("%s returned HTTP %d", self._name, resp.status_code)
            return Outcome.fail(FailureReason.HTTP_ERROR, f"HTTP {resp.status_code}")

        try:
            return Outcome.success(resp.json())
        except ValueError as exc:
            logger.warning("%s returned an undecodable body: %s", self._name, exc)
            return Outcome.fail(FailureReason.MALFORMED_RESPONSE, "invalid JSON")
