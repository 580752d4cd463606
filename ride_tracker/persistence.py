"""Repository interface consumed by the tracking service.

The storage schema belongs to the embedding application. The core only calls
the operations below at lifecycle boundaries; :class:`InMemoryRideRepository`
is a thread-safe implementation for tests, the replay tool and embedders that
persist elsewhere.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import itertools
import logging
import threading
from typing import Dict, List, Optional, Protocol, Sequence

from .errors import RideNotFoundError
from .models import HeartRateSample, RideEvent, RideSummary, RoutePoint


class RideRepository(Protocol):
    def create_ride(self, started_at: datetime) -> int: ...

    def finalize_ride(self, summary: RideSummary) -> None: ...

    def save_points(self, ride_id: int, points: Sequence[RoutePoint]) -> None: ...

    def save_heart_rate(
        self, ride_id: int, samples: Sequence[HeartRateSample]
    ) -> None: ...

    def save_events(self, ride_id: int, events: Sequence[RideEvent]) -> None: ...

    def delete_ride(self, ride_id: int) -> None: ...


@dataclass(slots=True)
class StoredRide:
    ride_id: int
    started_at: datetime
    summary: Optional[RideSummary] = None
    points: List[RoutePoint] = field(default_factory=list)
    heart_rate: List[HeartRateSample] = field(default_factory=list)
    events: List[RideEvent] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.summary is not None and self.summary.completed


class InMemoryRideRepository:
    """Dictionary-backed :class:`RideRepository`."""

    def __init__(self) -> None:
        self._log = logging.getLogger(self.__class__.__name__)
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._rides: Dict[int, StoredRide] = {}

    def create_ride(self, started_at: datetime) -> int:
        with self._lock:
            ride_id = next(self._ids)
            self._rides[ride_id] = StoredRide(ride_id=ride_id, started_at=started_at)
        self._log.debug("Created ride %s", ride_id)
        return ride_id

    def finalize_ride(self, summary: RideSummary) -> None:
        if summary.ride_id is None:
            raise RideNotFoundError("Cannot finalize a ride without an id")
        with self._lock:
            self._require(summary.ride_id).summary = summary

    def save_points(self, ride_id: int, points: Sequence[RoutePoint]) -> None:
        with self._lock:
            self._require(ride_id).points.extend(points)

    def save_heart_rate(self, ride_id: int, samples: Sequence[HeartRateSample]) -> None:
        with self._lock:
            self._require(ride_id).heart_rate.extend(samples)

    def save_events(self, ride_id: int, events: Sequence[RideEvent]) -> None:
        with self._lock:
            self._require(ride_id).events.extend(events)

    def delete_ride(self, ride_id: int) -> None:
        with self._lock:
            if self._rides.pop(ride_id, None) is None:
                raise RideNotFoundError(f"Ride {ride_id} does not exist")
        self._log.debug("Deleted ride %s", ride_id)

    def get(self, ride_id: int) -> StoredRide:
        with self._lock:
            return self._require(ride_id)

    def ride_ids(self) -> List[int]:
        with self._lock:
            return sorted(self._rides)

    def _require(self, ride_id: int) -> StoredRide:
        try:
            return self._rides[ride_id]
        except KeyError:
            raise RideNotFoundError(f"Ride {ride_id} does not exist") from None


__all__ = ["InMemoryRideRepository", "RideRepository", "StoredRide"]
