"""bivacchi: environmental enrichment and offline caching for mountain shelters.

Example:
    >>> import bivacchi
    >>>
    >>> # One enrichment session with the default configuration
    >>> report = bivacchi.enrich()
    >>> report.load.source
    <DatasetSource.REMOTE: 'remote'>
    >>>
    >>> # Point the pipeline at another remote store
    >>> bivacchi.configure(api_base_url="https://bivacchi.example.org")
    >>> report = bivacchi.enrich()
"""

from bivacchi.__about__ import __version__
from bivacchi._types import FailureReason, Outcome
from bivacchi.api import enrich, enrich_async
from bivacchi.config import Config, configure, get_default_config
from bivacchi.dataset import Dataset, DatasetWriter, LocalSnapshot
from bivacchi.exceptions import (
    BivacchiError,
    ConfigurationError,
    DatasetError,
    OfflineError,
    ProviderError,
)
from bivacchi.offline import CacheStrategyRouter, Request
from bivacchi.pipeline import (
    DatasetSource,
    EnrichmentOrchestrator,
    LoadResult,
    PassKind,
    PassReport,
    SessionReport,
)
from bivacchi.runtime import Runtime

__all__ = [
    # Version
    "__version__",
    # Entry points
    "enrich",
    "enrich_async",
    # Configuration
    "Config",
    "configure",
    "get_default_config",
    # Pipeline
    "Dataset",
    "DatasetSource",
    "DatasetWriter",
    "EnrichmentOrchestrator",
    "LoadResult",
    "LocalSnapshot",
    "PassKind",
    "PassReport",
    "Runtime",
    "SessionReport",
    # Results
    "FailureReason",
    "Outcome",
    # Offline cache
    "CacheStrategyRouter",
    "Request",
    # Exceptions
    "BivacchiError",
    "ConfigurationError",
    "DatasetError",
    "OfflineError",
    "ProviderError",
]
