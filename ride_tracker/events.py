"""Semantic ride events derived from the filtered signals."""

from __future__ import annotations

import logging
from typing import List, Optional

from .config import (
    CLIMB_END_EVENTS_ENABLED,
    CLIMB_EVENT_THRESHOLD_M,
    SPRINT_EVENT_COOLDOWN_MS,
    SPRINT_THRESHOLD_KMH,
)
from .geo import MPS_TO_KMH
from .models import EventType, LocationSample, RideEvent

MANUAL_PAUSE_NOTE = "Manual pause"
AUTO_PAUSE_NOTE = "Auto-pause (stationary)"
RESUME_NOTE = "Resume from pause/stop"

_END_OF = {
    EventType.CLIMB_START: EventType.CLIMB_END,
    EventType.DESCENT_START: EventType.DESCENT_END,
}


class EventDetector:
    """Append-only event log for one ride; the only writer of that log."""

    def __init__(
        self,
        *,
        sprint_threshold_kmh: float = SPRINT_THRESHOLD_KMH,
        sprint_cooldown_ms: float = SPRINT_EVENT_COOLDOWN_MS,
        climb_threshold_m: float = CLIMB_EVENT_THRESHOLD_M,
        climb_end_events: bool = CLIMB_END_EVENTS_ENABLED,
    ) -> None:
        self._log = logging.getLogger(self.__class__.__name__)
        self.sprint_threshold_kmh = sprint_threshold_kmh
        self.sprint_cooldown_ms = sprint_cooldown_ms
        self.climb_threshold_m = climb_threshold_m
        self.climb_end_events = climb_end_events
        self.reset()

    def reset(self) -> None:
        self._events: List[RideEvent] = []
        self._last_sprint_ms: Optional[float] = None
        self._trend: Optional[EventType] = None
        self._trend_total_m = 0.0

    @property
    def events(self) -> List[RideEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def on_speed(self, speed_kmh: float, sample: LocationSample) -> Optional[RideEvent]:
        if speed_kmh <= self.sprint_threshold_kmh:
            return None
        if (
            self.sprint_cooldown_ms > 0
            and self._last_sprint_ms is not None
            and sample.timestamp_ms - self._last_sprint_ms < self.sprint_cooldown_ms
        ):
            return None
        self._last_sprint_ms = sample.timestamp_ms
        return self._add(
            EventType.SPRINT,
            sample,
            sample.timestamp_ms,
            f"High speed: {int(speed_kmh)} km/h",
        )

    def on_elevation_change(
        self, change_m: float, sample: LocationSample
    ) -> List[RideEvent]:
        """React to a significant elevation change between two readings."""

        emitted: List[RideEvent] = []
        start_type = EventType.CLIMB_START if change_m > 0 else EventType.DESCENT_START
        if self._trend is not None and self._trend is not start_type:
            if self.climb_end_events:
                emitted.append(
                    self._add(
                        _END_OF[self._trend],
                        sample,
                        sample.timestamp_ms,
                        f"Total elevation change: {int(self._trend_total_m)}m",
                    )
                )
            self._trend = None
            self._trend_total_m = 0.0
        if abs(change_m) > self.climb_threshold_m:
            emitted.append(
                self._add(
                    start_type,
                    sample,
                    sample.timestamp_ms,
                    f"Elevation change: {int(change_m)}m",
                )
            )
            if self._trend is None:
                self._trend = start_type
                self._trend_total_m = 0.0
        if self._trend is start_type:
            self._trend_total_m += change_m
        return emitted

    def on_pause(
        self, location: Optional[LocationSample], now_ms: float, *, manual: bool
    ) -> Optional[RideEvent]:
        note = MANUAL_PAUSE_NOTE if manual else AUTO_PAUSE_NOTE
        return self._add_at_last_location(EventType.PAUSED, location, now_ms, note)

    def on_resume(
        self, location: Optional[LocationSample], now_ms: float
    ) -> Optional[RideEvent]:
        return self._add_at_last_location(
            EventType.STOPPED, location, now_ms, RESUME_NOTE
        )

    def _add_at_last_location(
        self,
        event_type: EventType,
        location: Optional[LocationSample],
        now_ms: float,
        note: str,
    ) -> Optional[RideEvent]:
        if location is None:
            self._log.debug("No location yet; skipping %s event", event_type.value)
            return None
        return self._add(event_type, location, now_ms, note)

    def _add(
        self,
        event_type: EventType,
        sample: LocationSample,
        timestamp_ms: float,
        note: Optional[str],
    ) -> RideEvent:
        event = RideEvent(
            event_type=event_type,
            timestamp_ms=timestamp_ms,
            latitude=sample.latitude,
            longitude=sample.longitude,
            altitude_m=sample.altitude_m,
            speed_kmh=max(0.0, sample.speed_mps) * MPS_TO_KMH,
            note=note,
        )
        self._events.append(event)
        self._log.debug(
            "Added ride event %s at %.6f, %.6f",
            event_type.value,
            sample.latitude,
            sample.longitude,
        )
        return event


__all__ = [
    "AUTO_PAUSE_NOTE",
    "EventDetector",
    "MANUAL_PAUSE_NOTE",
    "RESUME_NOTE",
]
