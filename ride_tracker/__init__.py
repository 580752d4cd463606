"""Cycling ride tracking core: GPS gating, speed filtering and ride lifecycle."""

from .errors import PersistenceError, RideNotFoundError, RideTrackerError
from .models import (
    EventType,
    HeartRateSample,
    LocationSample,
    RideEvent,
    RideSnapshot,
    RideState,
    RideSummary,
    RoutePoint,
)
from .persistence import InMemoryRideRepository, RideRepository
from .services import RideTrackingService, TrackingServiceConfig

__all__ = [
    "EventType",
    "HeartRateSample",
    "InMemoryRideRepository",
    "LocationSample",
    "PersistenceError",
    "RideEvent",
    "RideNotFoundError",
    "RideRepository",
    "RideSnapshot",
    "RideState",
    "RideSummary",
    "RideTrackerError",
    "RideTrackingService",
    "RoutePoint",
    "TrackingServiceConfig",
]
