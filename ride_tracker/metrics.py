"""Cumulative ride metrics: distance, elevation, speed and heart rate."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import List, Optional

import numpy as np

from .config import DISTANCE_JITTER_FLOOR_M, ELEVATION_NOISE_FLOOR_M
from .geo import haversine_m
from .models import HeartRateSample, LatLon, LocationSample, RoutePoint

_MS_PER_HOUR = 1000.0 * 60.0 * 60.0


@dataclass(slots=True)
class RideMetrics:
    """Copy of the accumulator state handed to readers."""

    distance_km: float = 0.0
    elevation_gain_m: float = 0.0
    elevation_loss_m: float = 0.0
    current_speed_kmh: float = 0.0
    max_speed_kmh: float = 0.0
    average_speed_kmh: float = 0.0
    heart_rate_bpm: int = 0
    max_heart_rate_bpm: int = 0
    route_points: List[RoutePoint] = field(default_factory=list)
    polyline_points: List[LatLon] = field(default_factory=list)
    heart_rate_samples: List[HeartRateSample] = field(default_factory=list)


class MetricsAccumulator:
    """Sole writer of the numeric ride totals and the collected samples."""

    def __init__(
        self,
        *,
        jitter_floor_m: float = DISTANCE_JITTER_FLOOR_M,
        elevation_floor_m: float = ELEVATION_NOISE_FLOOR_M,
    ) -> None:
        self._log = logging.getLogger(self.__class__.__name__)
        self.jitter_floor_m = jitter_floor_m
        self.elevation_floor_m = elevation_floor_m
        self.reset()

    def reset(self) -> None:
        self.distance_km = 0.0
        self.elevation_gain_m = 0.0
        self.elevation_loss_m = 0.0
        self.current_speed_kmh = 0.0
        self.max_speed_kmh = 0.0
        self.average_speed_kmh = 0.0
        self.heart_rate_bpm = 0
        self.max_heart_rate_bpm = 0
        self._last_altitude: Optional[float] = None
        self._route_points: List[RoutePoint] = []
        self._polyline: List[LatLon] = []
        self._heart_rate: List[HeartRateSample] = []

    def record_speed(self, speed_kmh: float) -> bool:
        """Store the latest filtered speed; True when it set a new maximum."""

        self.current_speed_kmh = speed_kmh
        if speed_kmh > self.max_speed_kmh:
            self.max_speed_kmh = speed_kmh
            return True
        return False

    def record_location(
        self,
        sample: LocationSample,
        previous: Optional[LocationSample],
        *,
        accrue: bool,
    ) -> float:
        """Collect an accepted fix and return the metres added to the total.

        Every fix is kept as a route point. Distance and the polyline only
        grow while ``accrue`` holds.
        """

        self._route_points.append(RoutePoint.from_sample(sample))
        if not accrue:
            return 0.0
        added_m = 0.0
        if previous is not None:
            displacement = haversine_m(previous.position, sample.position)
            if displacement > self.jitter_floor_m:
                added_m = displacement
                self.distance_km += displacement / 1000.0
                self._log.debug(
                    "Distance updated: %.4f km (movement %.1fm)",
                    self.distance_km,
                    displacement,
                )
        self._polyline.append(sample.position)
        return added_m

    def record_altitude(self, sample: LocationSample) -> Optional[float]:
        """Return the signed elevation change when it is significant."""

        if not sample.has_altitude:
            return None
        previous = self._last_altitude
        self._last_altitude = sample.altitude_m
        if previous is None:
            return None
        change = sample.altitude_m - previous
        if abs(change) < self.elevation_floor_m:
            return None
        if change > 0:
            self.elevation_gain_m += change
        else:
            self.elevation_loss_m += -change
        return change

    def record_heart_rate(self, sample: HeartRateSample) -> bool:
        """Store a heart-rate reading; True when it set a new maximum."""

        self.heart_rate_bpm = sample.bpm
        self._heart_rate.append(sample)
        if sample.bpm > self.max_heart_rate_bpm:
            self.max_heart_rate_bpm = sample.bpm
            return True
        return False

    def update_average_speed(self, active_ms: float) -> Optional[float]:
        if active_ms <= 0:
            return None
        self.average_speed_kmh = self.distance_km / (active_ms / _MS_PER_HOUR)
        return self.average_speed_kmh

    def average_heart_rate(self) -> int:
        if not self._heart_rate:
            return 0
        return int(np.mean([sample.bpm for sample in self._heart_rate]))

    @property
    def polyline_points(self) -> List[LatLon]:
        return list(self._polyline)

    @property
    def route_points(self) -> List[RoutePoint]:
        return list(self._route_points)

    @property
    def heart_rate_samples(self) -> List[HeartRateSample]:
        return list(self._heart_rate)

    def snapshot(self) -> RideMetrics:
        return RideMetrics(
            distance_km=self.distance_km,
            elevation_gain_m=self.elevation_gain_m,
            elevation_loss_m=self.elevation_loss_m,
            current_speed_kmh=self.current_speed_kmh,
            max_speed_kmh=self.max_speed_kmh,
            average_speed_kmh=self.average_speed_kmh,
            heart_rate_bpm=self.heart_rate_bpm,
            max_heart_rate_bpm=self.max_heart_rate_bpm,
            route_points=self.route_points,
            polyline_points=self.polyline_points,
            heart_rate_samples=self.heart_rate_samples,
        )


__all__ = ["MetricsAccumulator", "RideMetrics"]
