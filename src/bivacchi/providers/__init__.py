"""External data providers used by the enrichment pipeline.

Includes the rate-limited elevation resolver (Open-Meteo with an
Open-Elevation fallback), the Open-Meteo forecast client, the Overpass
shelter source used for initial ingestion, and the remote dataset store.
"""

from bivacchi.providers.elevation import ElevationResolver
from bivacchi.providers.forecast import ForecastProvider
from bivacchi.providers.overpass import ShelterSource
from bivacchi.providers.remote import RemoteDatasetStore

__all__ = [
    "ElevationResolver",
    "ForecastProvider",
    "RemoteDatasetStore",
    "ShelterSource",
]
