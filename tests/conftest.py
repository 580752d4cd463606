"""Global pytest fixtures & helpers.

Adds project root to path and provides reusable fixtures for building GPS
fixes, driving a fake clock and constructing a deterministic service.
"""
from __future__ import annotations

import math
import os
import sys
from typing import Optional

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from ride_tracker.geo import EARTH_RADIUS_M
from ride_tracker.models import LocationSample
from ride_tracker.persistence import InMemoryRideRepository
from ride_tracker.services import RideTrackingService, TrackingServiceConfig

BASE_LAT = 51.5
BASE_LON = -0.12
METRES_PER_DEGREE_LAT = EARTH_RADIUS_M * math.pi / 180.0


# --- Factory helpers -------------------------------------------------
class FakeClock:
    """Millisecond clock moved explicitly by tests."""

    def __init__(self, now_ms: float = 0.0) -> None:
        self.now_ms = now_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, delta_ms: float) -> float:
        self.now_ms += delta_ms
        return self.now_ms


def north_of(metres: float, lat: float = BASE_LAT) -> float:
    """Latitude ``metres`` north of ``lat`` along the meridian."""
    return lat + metres / METRES_PER_DEGREE_LAT


def make_fix(
    north_m: float = 0.0,
    t_ms: float = 0.0,
    *,
    accuracy: float = 5.0,
    speed_mps: float = 0.0,
    altitude: Optional[float] = None,
) -> LocationSample:
    return LocationSample(
        latitude=north_of(north_m),
        longitude=BASE_LON,
        accuracy_m=accuracy,
        speed_mps=speed_mps,
        timestamp_ms=t_ms,
        altitude_m=altitude,
    )


def feed(service: RideTrackingService, clock: FakeClock, fix: LocationSample) -> bool:
    clock.now_ms = fix.timestamp_ms
    return service.submit_location_sample(fix)


def make_service(clock: FakeClock, repository=None, **overrides) -> RideTrackingService:
    config = TrackingServiceConfig(
        repository=repository if repository is not None else InMemoryRideRepository(),
        clock=clock,
        threaded=overrides.pop("threaded", False),
        tick_interval_s=overrides.pop("tick_interval_s", None),
    )
    return RideTrackingService(config, **overrides)


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def repository() -> InMemoryRideRepository:
    return InMemoryRideRepository()


@pytest.fixture
def service(clock, repository):
    svc = make_service(clock, repository)
    yield svc
    svc.close()
