"""Median + EMA smoothing with a hysteresis stop detector.

The pipeline turns the jittery raw speed candidate of each accepted fix into
the displayed speed:

1. a median over the last few observations removes single-sample spikes;
2. an exponential moving average, whose weight depends on the time since the
   previous update, gives the value held while the rider is moving;
3. a stop detector with separate enter/leave thresholds snaps the output to
   exactly ``0.0`` once the rider has been slow for long enough, and only
   releases it when the median clearly exceeds the resume threshold.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
import logging
import math
from typing import Deque, Optional, Tuple

from ..config import (
    EMA_TAU_MS,
    MEDIAN_MIN_SAMPLES,
    MEDIAN_WINDOW_SIZE,
    RESUME_THRESHOLD_KMH,
    SPEED_WINDOW_MS,
    STOP_CONFIRM_MS,
    STOP_THRESHOLD_KMH,
)

RawSpeedObservation = Tuple[float, float]  # (speed km/h, timestamp ms)


class MedianWindow:
    """Rolling window of raw observations with a short median filter."""

    def __init__(
        self,
        *,
        window_ms: float = SPEED_WINDOW_MS,
        size: int = MEDIAN_WINDOW_SIZE,
        min_samples: int = MEDIAN_MIN_SAMPLES,
    ) -> None:
        if size < 1:
            raise ValueError("size must be >= 1")
        self.window_ms = window_ms
        self.size = size
        self.min_samples = min_samples
        self._observations: Deque[RawSpeedObservation] = deque()

    def __len__(self) -> int:
        return len(self._observations)

    def add(self, speed_kmh: float, now_ms: float) -> float:
        """Record an observation, prune stale ones and return the median."""

        self._observations.append((speed_kmh, now_ms))
        cutoff = now_ms - self.window_ms
        while self._observations and self._observations[0][1] < cutoff:
            self._observations.popleft()
        recent = [speed for speed, _ in list(self._observations)[-self.size :]]
        if len(recent) < self.min_samples:
            return speed_kmh
        recent.sort()
        # Lower-middle element for even counts.
        return recent[(len(recent) - 1) // 2]

    def clear(self) -> None:
        self._observations.clear()


class EmaSmoother:
    """Time-aware exponential moving average seeded with its first input."""

    def __init__(self, tau_ms: float = EMA_TAU_MS) -> None:
        if tau_ms <= 0:
            raise ValueError("tau_ms must be positive")
        self.tau_ms = tau_ms
        self.value = 0.0
        self.last_update_ms: Optional[float] = None

    def update(self, value: float, now_ms: float) -> float:
        if self.last_update_ms is None:
            self.value = value
        else:
            delta_ms = max(0.0, now_ms - self.last_update_ms)
            alpha = 1.0 - math.exp(-delta_ms / self.tau_ms)
            self.value = self.value + alpha * (value - self.value)
        self.last_update_ms = now_ms
        return self.value

    def reset(self) -> None:
        self.value = 0.0
        self.last_update_ms = None


class StopState(str, Enum):
    MOVING = "moving"
    ENTERING_STOP = "entering_stop"
    STOPPED = "stopped"


class StopDetector:
    """Hysteresis between moving and stopped.

    ``since_ms`` is the time the median first dropped below the stop
    threshold. It is kept while stopped for diagnostics and cleared on resume.
    """

    def __init__(
        self,
        *,
        stop_threshold_kmh: float = STOP_THRESHOLD_KMH,
        resume_threshold_kmh: float = RESUME_THRESHOLD_KMH,
        confirm_ms: float = STOP_CONFIRM_MS,
    ) -> None:
        if resume_threshold_kmh < stop_threshold_kmh:
            raise ValueError("resume threshold must not be below the stop threshold")
        self._log = logging.getLogger(self.__class__.__name__)
        self.stop_threshold_kmh = stop_threshold_kmh
        self.resume_threshold_kmh = resume_threshold_kmh
        self.confirm_ms = confirm_ms
        self.state = StopState.MOVING
        self.since_ms: Optional[float] = None

    @property
    def is_stopped(self) -> bool:
        return self.state is StopState.STOPPED

    def apply(self, median_kmh: float, held_kmh: float, now_ms: float) -> float:
        """Return the speed to display given the median and the held value."""

        if self.state is not StopState.STOPPED and median_kmh < self.stop_threshold_kmh:
            if self.since_ms is None:
                self.state = StopState.ENTERING_STOP
                self.since_ms = now_ms
            elif now_ms - self.since_ms >= self.confirm_ms:
                self.state = StopState.STOPPED
                self._log.debug(
                    "Entering stop state after %.0fms below %.2f km/h",
                    now_ms - self.since_ms,
                    self.stop_threshold_kmh,
                )
                return 0.0
            return held_kmh
        if self.state is StopState.STOPPED:
            if median_kmh > self.resume_threshold_kmh:
                self.state = StopState.MOVING
                self.since_ms = None
                self._log.debug("Resuming from stop state at %.2f km/h", median_kmh)
                return held_kmh
            return 0.0
        self.state = StopState.MOVING
        self.since_ms = None
        return held_kmh

    def reset(self) -> None:
        self.state = StopState.MOVING
        self.since_ms = None


@dataclass(frozen=True, slots=True)
class FilterTrace:
    raw_kmh: float
    median_kmh: float
    smoothed_kmh: float
    filtered_kmh: float
    stop_state: StopState


class SpeedFilterPipeline:
    """Median, EMA and stop detection chained for one ride."""

    def __init__(
        self,
        median: MedianWindow | None = None,
        smoother: EmaSmoother | None = None,
        stop_detector: StopDetector | None = None,
    ) -> None:
        self._log = logging.getLogger(self.__class__.__name__)
        self.median = median or MedianWindow()
        self.smoother = smoother or EmaSmoother()
        self.stop_detector = stop_detector or StopDetector()
        self.last_trace: Optional[FilterTrace] = None

    def process(self, raw_kmh: float, now_ms: float) -> float:
        median_kmh = self.median.add(raw_kmh, now_ms)
        smoothed = self.smoother.update(median_kmh, now_ms)
        filtered = max(0.0, self.stop_detector.apply(median_kmh, smoothed, now_ms))
        self.last_trace = FilterTrace(
            raw_kmh=raw_kmh,
            median_kmh=median_kmh,
            smoothed_kmh=smoothed,
            filtered_kmh=filtered,
            stop_state=self.stop_detector.state,
        )
        self._log.debug(
            "Speed raw=%.2f median=%.2f smoothed=%.2f final=%.2f",
            raw_kmh,
            median_kmh,
            smoothed,
            filtered,
        )
        return filtered

    @property
    def is_stopped(self) -> bool:
        return self.stop_detector.is_stopped

    def reset(self) -> None:
        self.median.clear()
        self.smoother.reset()
        self.stop_detector.reset()
        self.last_trace = None


__all__ = [
    "EmaSmoother",
    "FilterTrace",
    "MedianWindow",
    "SpeedFilterPipeline",
    "StopDetector",
    "StopState",
]
