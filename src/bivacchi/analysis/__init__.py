"""Per-record estimators producing derived tag patches."""

from bivacchi.analysis.daylight import DaylightEstimator
from bivacchi.analysis.slope import SlopeAspect, SlopeAspectEstimator
from bivacchi.analysis.snow import SnowConfidence, SnowVerdict, WeatherSnowEstimator, classify_snow

__all__ = [
    "DaylightEstimator",
    "SlopeAspect",
    "SlopeAspectEstimator",
    "SnowConfidence",
    "SnowVerdict",
    "WeatherSnowEstimator",
    "classify_snow",
]
