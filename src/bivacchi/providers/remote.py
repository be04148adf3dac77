"""Client for the remote shelter dataset store.

The store exposes the whole collection at ``/api/bivacchi``: ``GET``
returns every record, ``POST`` replaces the collection. There is no
per-record upsert.
"""

from __future__ import annotations

import logging

import requests

from bivacchi._types import FailureReason, Outcome, Record
from bivacchi.providers.base import JsonProvider

logger = logging.getLogger(__name__)

DATASET_PATH = "/api/bivacchi"


class RemoteDatasetStore(JsonProvider):
    """Read and replace the remote dataset."""

    _name = "dataset-store"

    @property
    def url(self) -> str:
        return f"{self._config.api_base_url}{DATASET_PATH}"

    async def fetch_all(self) -> Outcome[list[Record]]:
        """Return the stored records; an empty list is a valid answer."""
        outcome = await self._get_json(self.url, {})
        if not outcome.ok:
            return outcome  # type: ignore[return-value]
        if not isinstance(outcome.value, list):
            return Outcome.fail(FailureReason.MALFORMED_RESPONSE, "dataset is not a list")
        return Outcome.success([r for r in outcome.value if isinstance(r, dict)])

    async def replace_all(self, records: list[Record]) -> bool:
        """Replace the remote collection with *records*.

        This method **never raises**; a failed sync is logged and retried
        implicitly by the next pass that changes the dataset.
        """
        try:
            resp = await self._runtime.fetch(self.url, method="POST", json=records)
        except requests.RequestException as exc:
            logger.warning("Dataset sync failed: %s", exc)
            return False
        if not resp.ok:
            logger.warning("Dataset sync rejected with HTTP %d", resp.status_code)
            return False
        logger.info("Synced %d records upstream", len(records))
        return True
