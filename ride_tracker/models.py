"""Dataclasses describing ride inputs, events and results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

LatLon = Tuple[float, float]


class RideState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    PAUSED = "paused"
    FINISHED = "finished"


class EventType(str, Enum):
    STOPPED = "stopped"
    PAUSED = "paused"
    SPRINT = "sprint"
    CLIMB_START = "climb_start"
    CLIMB_END = "climb_end"
    DESCENT_START = "descent_start"
    DESCENT_END = "descent_end"


@dataclass(frozen=True, slots=True)
class LocationSample:
    """One raw GPS fix as delivered by the location provider."""

    latitude: float
    longitude: float
    accuracy_m: float
    speed_mps: float
    timestamp_ms: float
    altitude_m: Optional[float] = None

    @property
    def has_altitude(self) -> bool:
        return self.altitude_m is not None

    @property
    def position(self) -> LatLon:
        return (self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class HeartRateSample:
    bpm: int
    timestamp_ms: float


@dataclass(frozen=True, slots=True)
class RoutePoint:
    """Accepted fix as handed to the repository."""

    latitude: float
    longitude: float
    altitude_m: float
    accuracy_m: float
    speed_mps: float
    timestamp_ms: float

    @classmethod
    def from_sample(cls, sample: LocationSample) -> "RoutePoint":
        return cls(
            latitude=sample.latitude,
            longitude=sample.longitude,
            altitude_m=sample.altitude_m if sample.altitude_m is not None else 0.0,
            accuracy_m=sample.accuracy_m,
            speed_mps=sample.speed_mps,
            timestamp_ms=sample.timestamp_ms,
        )


@dataclass(frozen=True, slots=True)
class RideEvent:
    """Discrete semantic event recorded during a ride. Never mutated."""

    event_type: EventType
    timestamp_ms: float
    latitude: float
    longitude: float
    altitude_m: Optional[float] = None
    speed_kmh: Optional[float] = None
    note: Optional[str] = None


@dataclass(slots=True)
class RideSnapshot:
    """Point-in-time copy of a live ride; safe to hand to other threads."""

    state: RideState
    manual_pause: bool
    started_at: Optional[datetime]
    duration_ms: float
    total_paused_ms: float
    distance_km: float
    elevation_gain_m: float
    elevation_loss_m: float
    current_speed_kmh: float
    max_speed_kmh: float
    average_speed_kmh: float
    heart_rate_bpm: int
    max_heart_rate_bpm: int
    route_points: List[RoutePoint] = field(default_factory=list)
    polyline_points: List[LatLon] = field(default_factory=list)
    heart_rate_samples: List[HeartRateSample] = field(default_factory=list)
    events: List[RideEvent] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class RideSummary:
    """Finalised ride record produced when a ride finishes."""

    ride_id: Optional[int]
    started_at: Optional[datetime]
    ended_at: datetime
    distance_km: float
    duration_ms: float
    moving_time_ms: float
    average_speed_kmh: float
    max_speed_kmh: float
    average_heart_rate_bpm: int
    max_heart_rate_bpm: int
    elevation_gain_m: float
    elevation_loss_m: float
    polyline: str
    encoded_polyline: str
    completed: bool = True


__all__ = [
    "EventType",
    "HeartRateSample",
    "LatLon",
    "LocationSample",
    "RideEvent",
    "RideSnapshot",
    "RideState",
    "RideSummary",
    "RoutePoint",
]
