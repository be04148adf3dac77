"""Top-level entry points for bivacchi.

Example:
    >>> import bivacchi
    >>> report = bivacchi.enrich()
    >>> report.load.source
    <DatasetSource.REMOTE: 'remote'>
    >>> [(p.kind.value, p.updated) for p in report.passes]
    [('weather', 212), ('slope_aspect', 0), ('daylight', 0)]
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from bivacchi.config import get_default_config
from bivacchi.dataset import Dataset
from bivacchi.pipeline import EnrichmentOrchestrator, SessionReport
from bivacchi.runtime import Runtime

if TYPE_CHECKING:
    from bivacchi.config import Config


async def enrich_async(config: Config | None = None) -> SessionReport:
    """Run one enrichment session inside an existing event loop.

    Args:
        config: Optional configuration override. Defaults to the
            module-level configuration.

    Returns:
        SessionReport describing the dataset source and every pass.

    Raises:
        ProviderError: If the dataset has to be ingested from Overpass
            and the query fails.
    """
    cfg = config or get_default_config()
    orchestrator = EnrichmentOrchestrator(Dataset(), Runtime(cfg), cfg)
    return await orchestrator.run()


def enrich(config: Config | None = None) -> SessionReport:
    """Load the shelter dataset and run every enrichment pass once.

    The dataset is loaded from the local snapshot, the remote store, or
    Overpass, in that order of preference. Weather, slope/aspect and
    daylight passes then run in sequence; progress is saved locally
    after each updated record and pushed upstream once per pass.

    Args:
        config: Optional configuration override.

    Returns:
        SessionReport describing the dataset source and every pass.
    """
    return asyncio.run(enrich_async(config))
