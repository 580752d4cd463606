"""Speed estimation and filtering."""

from .estimator import SpeedEstimate, SpeedEstimator, position_speed_kmh
from .filter import (
    EmaSmoother,
    FilterTrace,
    MedianWindow,
    SpeedFilterPipeline,
    StopDetector,
    StopState,
)

__all__ = [
    "EmaSmoother",
    "FilterTrace",
    "MedianWindow",
    "SpeedEstimate",
    "SpeedEstimator",
    "SpeedFilterPipeline",
    "StopDetector",
    "StopState",
    "position_speed_kmh",
]
