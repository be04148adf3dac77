"""Initial shelter ingestion from the Overpass API.

Used once, when neither a local snapshot nor the remote store holds any
data. A failure here is systemic: it raises ``ProviderError`` with advice
to retry, and the caller commits nothing.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from bivacchi._types import Record
from bivacchi.config import Config
from bivacchi.exceptions import ProviderError
from bivacchi.runtime import Runtime

logger = logging.getLogger(__name__)

_QUERY_TIMEOUT_S = 180
# Client-side timeout leaves headroom over the server-side query timeout
_REQUEST_TIMEOUT_S = 200.0

_SHELTER_SELECTORS = (
    '["tourism"~"alpine_hut|wilderness_hut"]["name"~"bivacco",i]',
    '["amenity"="shelter"]["name"~"bivacco",i]',
    '["shelter_type"~"bivouac|basic_hut"]',
)


def build_query(regions: tuple[str, ...]) -> str:
    """Build the Overpass QL query for bivouac shelters in *regions*.

    Example:
        >>> 'area[name="Veneto"]' in build_query(("Veneto",))
        True
    """
    areas = "\n".join(f'  area[name="{name}"][admin_level="4"];' for name in regions)
    statements = "\n".join(
        f"  {kind}{selector}(area.regioni);"
        for selector in _SHELTER_SELECTORS
        for kind in ("node", "way")
    )
    return (
        f"[out:json][timeout:{_QUERY_TIMEOUT_S}];\n"
        f"(\n{areas}\n)->.regioni;\n"
        f"(\n{statements}\n);\n"
        "out center;"
    )


def _has_name(element: Any) -> bool:
    if not isinstance(element, dict):
        return False
    tags = element.get("tags")
    name = tags.get("name") if isinstance(tags, dict) else None
    return isinstance(name, str) and name.strip() != ""


class ShelterSource:
    """Query Overpass for named shelters in the configured regions.

    Args:
        runtime: Session runtime performing the request.
        config: Configuration with ``overpass_url`` and ``regions``.
    """

    def __init__(self, runtime: Runtime, config: Config) -> None:
        self._runtime = runtime
        self._config = config

    async def fetch_shelters(self) -> list[Record]:
        """Return every named shelter element.

        Raises:
            ProviderError: If the query cannot be completed.
        """
        query = build_query(self._config.regions)
        try:
            resp = await self._runtime.fetch(
                self._config.overpass_url,
                params={"data": query},
                timeout=_REQUEST_TIMEOUT_S,
            )
        except requests.RequestException as exc:
            raise ProviderError(
                what="Shelter query failed",
                cause=f"{type(exc).__name__}: {exc}",
                fix="Check the internet connection and retry",
            ) from exc

        if resp.status_code == 429:
            raise ProviderError(
                what="Shelter query failed",
                cause="Too many requests to the Overpass server (HTTP 429)",
                fix="Retry later",
            )
        if resp.status_code == 504:
            raise ProviderError(
                what="Shelter query failed",
                cause="The Overpass server is overloaded (HTTP 504)",
                fix="Retry later",
            )
        if not resp.ok:
            raise ProviderError(
                what="Shelter query failed",
                cause=f"HTTP {resp.status_code}",
                fix="Retry later; if persistent, check https://overpass-api.de status",
            )

        try:
            body = resp.json()
        except ValueError as exc:
            raise ProviderError(
                what="Shelter query failed",
                cause="Invalid JSON response from Overpass",
                fix="Retry later",
            ) from exc

        elements = body.get("elements") if isinstance(body, dict) else None
        if not isinstance(elements, list):
            raise ProviderError(
                what="Shelter query failed",
                cause="Overpass response has no 'elements' list",
                fix="Retry later",
            )

        shelters = [e for e in elements if _has_name(e)]
        logger.info(
            "Overpass returned %d elements, %d named shelters",
            len(elements),
            len(shelters),
        )
        return shelters
