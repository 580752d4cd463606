"""Service layer package.

Exports the high-level service consumed by UI and device collaborators.
"""

from .tracking_service import (
    Listener,
    RideTrackingService,
    SampleSource,
    TrackingServiceConfig,
)

__all__ = ["Listener", "RideTrackingService", "SampleSource", "TrackingServiceConfig"]
