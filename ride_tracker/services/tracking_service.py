"""Ride tracking service (application layer).

Owns one ride at a time and is the single writer of its state. Location and
heart-rate samples arrive through one ordered channel per source; lifecycle
commands come from the UI. Every mutation happens under one re-entrant lock,
and readers get copies through :meth:`RideTrackingService.snapshot`.

Sample timestamps and the service clock must share a time base (monotonic
milliseconds by default): speed-driven transitions are timed on sample
timestamps, commands on the clock.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import threading
import time
from typing import Any, Callable, List, Optional, Protocol

from ..channels import DurationTicker, SampleChannel
from ..config import DURATION_TICK_SECONDS
from ..events import EventDetector
from ..gate import LocationSampleGate
from ..geo import encode_pipe_polyline, encode_polyline
from ..metrics import MetricsAccumulator
from ..models import (
    HeartRateSample,
    LocationSample,
    RideEvent,
    RideSnapshot,
    RideState,
    RideSummary,
    RoutePoint,
)
from ..persistence import InMemoryRideRepository, RideRepository
from ..speed import SpeedEstimator, SpeedFilterPipeline
from ..state_machine import RideStateMachine, Transition

Listener = Callable[[str, Any], None]


class SampleSource(Protocol):
    """External producer of samples (GPS provider, heart-rate strap)."""

    def start_updates(self) -> None: ...

    def stop_updates(self) -> None: ...


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class TrackingServiceConfig:
    repository: RideRepository | None = None
    clock: Callable[[], float] = _monotonic_ms
    wall_clock: Callable[[], datetime] = _utc_now
    # Process submissions on per-source consumer threads; False handles
    # them inline on the caller's thread.
    threaded: bool = True
    # None disables the ticker thread; callers drive tick() themselves.
    tick_interval_s: float | None = DURATION_TICK_SECONDS
    logger: logging.Logger | None = None


class RideTrackingService:
    def __init__(
        self,
        config: TrackingServiceConfig | None = None,
        *,
        gate: LocationSampleGate | None = None,
        estimator: SpeedEstimator | None = None,
        speed_filter: SpeedFilterPipeline | None = None,
        metrics: MetricsAccumulator | None = None,
        events: EventDetector | None = None,
        state_machine: RideStateMachine | None = None,
    ) -> None:
        self.config = config or TrackingServiceConfig()
        self._log = self.config.logger or logging.getLogger(self.__class__.__name__)
        self.repository: RideRepository = (
            self.config.repository or InMemoryRideRepository()
        )
        self._clock = self.config.clock
        self._wall_clock = self.config.wall_clock
        self.gate = gate or LocationSampleGate()
        self.estimator = estimator or SpeedEstimator()
        self.speed_filter = speed_filter or SpeedFilterPipeline()
        self.metrics = metrics or MetricsAccumulator()
        self.events = events or EventDetector()
        self.machine = state_machine or RideStateMachine()

        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._ride_id: Optional[int] = None
        self._started_at: Optional[datetime] = None
        self._last_location: Optional[LocationSample] = None
        self._duration_ms = 0.0

        self._location_channel: SampleChannel[LocationSample] = SampleChannel(
            "location", self.process_location_sample
        )
        self._heart_rate_channel: SampleChannel[HeartRateSample] = SampleChannel(
            "heart_rate", self.process_heart_rate
        )
        self._ticker: DurationTicker | None = None
        if self.config.tick_interval_s is not None:
            self._ticker = DurationTicker(self._on_tick, self.config.tick_interval_s)

        self._location_source: SampleSource | None = None
        self._heart_rate_source: SampleSource | None = None
        self._pending_location_start = False
        self._pending_heart_rate_start = False

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    def _publish(self, name: str, value: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(name, value)
            except Exception:
                self._log.debug("Listener failed for %s", name, exc_info=True)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------
    @property
    def state(self) -> RideState:
        with self._lock:
            return self.machine.state

    @property
    def ride_id(self) -> Optional[int]:
        with self._lock:
            return self._ride_id

    def route_points(self) -> List[RoutePoint]:
        with self._lock:
            return self.metrics.route_points

    def snapshot(self) -> RideSnapshot:
        with self._lock:
            metrics = self.metrics.snapshot()
            return RideSnapshot(
                state=self.machine.state,
                manual_pause=self.machine.manual_pause,
                started_at=self._started_at,
                duration_ms=self._duration_ms,
                total_paused_ms=self.machine.total_paused_ms,
                distance_km=metrics.distance_km,
                elevation_gain_m=metrics.elevation_gain_m,
                elevation_loss_m=metrics.elevation_loss_m,
                current_speed_kmh=metrics.current_speed_kmh,
                max_speed_kmh=metrics.max_speed_kmh,
                average_speed_kmh=metrics.average_speed_kmh,
                heart_rate_bpm=metrics.heart_rate_bpm,
                max_heart_rate_bpm=metrics.max_heart_rate_bpm,
                route_points=metrics.route_points,
                polyline_points=metrics.polyline_points,
                heart_rate_samples=metrics.heart_rate_samples,
                events=self.events.events,
            )

    def debug_state(self) -> str:
        with self._lock:
            last = self._last_location
            lines = [
                "=== Tracking Debug Info ===",
                f"Ride State: {self.machine.state.value}",
                f"Ride Id: {self._ride_id}",
                f"Location Source: {'Bound' if self._location_source else 'None'}",
                f"Location Channel: {'Running' if self._location_channel.running else 'Halted'}",
                f"Pending Location Start: {self._pending_location_start}",
                f"Current Speed: {self.metrics.current_speed_kmh:.2f} km/h",
                f"Stop State: {self.speed_filter.stop_detector.state.value}",
                f"Total Distance: {self.metrics.distance_km:.4f} km",
                f"Route Points: {len(self.metrics.route_points)}",
                f"Events: {len(self.events)}",
                "Last Location: "
                + (f"{last.latitude}, {last.longitude}" if last else "None"),
                f"Is Manual Pause: {self.machine.manual_pause}",
                "===========================",
            ]
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Sample entry points
    # ------------------------------------------------------------------
    def submit_location_sample(self, sample: LocationSample) -> bool:
        if self.config.threaded:
            return self._location_channel.put(sample)
        return self.process_location_sample(sample)

    def submit_heart_rate(self, bpm: int, timestamp_ms: float | None = None) -> bool:
        sample = HeartRateSample(
            bpm=int(bpm),
            timestamp_ms=self._clock() if timestamp_ms is None else timestamp_ms,
        )
        if self.config.threaded:
            return self._heart_rate_channel.put(sample)
        return self.process_heart_rate(sample)

    def drain(self) -> None:
        """Wait until every queued sample has been processed."""

        self._location_channel.drain()
        self._heart_rate_channel.drain()

    def process_location_sample(self, sample: LocationSample) -> bool:
        """Run one fix through gate, speed pipeline and accumulators.

        Returns True when the fix was accepted.
        """

        with self._lock:
            if not self.machine.is_live:
                self._log.debug("No live ride; dropping location sample")
                return False
            self._publish("location", sample)
            previous = self._last_location
            decision = self.gate.accept(sample, previous)
            if not decision.accepted:
                return False
            estimate = self.estimator.estimate(sample, previous)
            if not estimate.plausible:
                self._log.debug(
                    "Rejecting absurd speed: %.1f km/h", estimate.selected_kmh
                )
                return False

            filtered = self.speed_filter.process(
                estimate.selected_kmh, sample.timestamp_ms
            )
            self._apply_speed(filtered, sample)

            change = self.metrics.record_altitude(sample)
            if change is not None:
                for event in self.events.on_elevation_change(change, sample):
                    self._publish("event", event)

            accrue = self.machine.accrues_distance
            added_m = self.metrics.record_location(sample, previous, accrue=accrue)
            if added_m:
                self._publish("distance", self.metrics.distance_km)
            if accrue:
                self._publish("route", self.metrics.polyline_points)
            self._last_location = sample
            return True

    def process_heart_rate(self, sample: HeartRateSample) -> bool:
        with self._lock:
            if not self.machine.is_live:
                self._log.debug("No live ride; dropping heart rate %s", sample.bpm)
                return False
            if sample.bpm <= 0:
                self._log.debug("Ignoring non-positive heart rate %s", sample.bpm)
                return False
            new_max = self.metrics.record_heart_rate(sample)
            self._publish("heart_rate", sample.bpm)
            if new_max:
                self._publish("max_heart_rate", sample.bpm)
            return True

    def _apply_speed(self, speed_kmh: float, sample: LocationSample) -> None:
        if self.metrics.record_speed(speed_kmh):
            self._publish("max_speed", speed_kmh)
        self._publish("speed", speed_kmh)
        sprint = self.events.on_speed(speed_kmh, sample)
        if sprint is not None:
            self._publish("event", sprint)
        transition = self.machine.on_speed(speed_kmh, sample.timestamp_ms)
        if transition is not None:
            self._after_transition(transition, sample.timestamp_ms, sample)

    # ------------------------------------------------------------------
    # Lifecycle commands
    # ------------------------------------------------------------------
    def start_ride(self) -> bool:
        with self._lock:
            now = self._clock()
            transition = self.machine.start(now)
            if transition is None:
                return False
            self._reset_ride()
            self._started_at = self._wall_clock()
            self._ride_id = self._create_ride(self._started_at)
            if self.config.threaded:
                self._location_channel.start()
                self._heart_rate_channel.start()
            self._start_sources()
            self._publish_reset()
            self._after_transition(transition, now, None)
            self._log.info("Ride %s started at %s", self._ride_id, self._started_at)
            return True

    def pause_ride(self) -> bool:
        with self._lock:
            now = self._clock()
            transition = self.machine.pause(now)
            if transition is None:
                return False
            self._after_transition(transition, now, self._last_location)
            return True

    def resume_ride(self) -> bool:
        with self._lock:
            now = self._clock()
            transition = self.machine.resume(now)
            if transition is None:
                return False
            self._after_transition(transition, now, self._last_location)
            return True

    def finish_ride(self) -> Optional[RideSummary]:
        with self._lock:
            if not self.machine.is_live:
                self.machine.finish(self._clock())
                return None
        self._halt_inputs()
        with self._lock:
            now = self._clock()
            transition = self.machine.finish(now)
            if transition is None:
                return None
            self._after_transition(transition, now, None)
            summary = self._build_summary(now)
            self._persist(summary)
            self._publish("average_heart_rate", summary.average_heart_rate_bpm)
            self._publish("ride_finished", summary)
            self._log.info(
                "Ride %s saved: %.3f km, %d points, %d events",
                summary.ride_id,
                summary.distance_km,
                len(self.metrics.route_points),
                len(self.events),
            )
            self._return_to_idle()
            return summary

    def discard_ride(self) -> bool:
        with self._lock:
            if not self.machine.is_live:
                self.machine.discard(self._clock())
                return False
        self._halt_inputs()
        with self._lock:
            now = self._clock()
            transition = self.machine.discard(now)
            if transition is None:
                return False
            self._after_transition(transition, now, None)
            if self._ride_id is not None:
                try:
                    self.repository.delete_ride(self._ride_id)
                    self._log.info("Ride %s discarded", self._ride_id)
                except Exception as exc:
                    self._log.error(
                        "Error discarding ride %s: %s", self._ride_id, exc, exc_info=True
                    )
            self._return_to_idle()
            return True

    def close(self) -> None:
        """Release threads and sources without touching the live ride."""

        self._halt_inputs()
        with self._lock:
            if self._ticker is not None:
                self._ticker.stop()

    def __enter__(self) -> "RideTrackingService":
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Duration ticking
    # ------------------------------------------------------------------
    def tick(self) -> Optional[float]:
        """Refresh duration and average speed; no-op unless the ride is active."""

        with self._lock:
            if self.machine.state is not RideState.ACTIVE:
                return None
            self._duration_ms = self.machine.active_duration_ms(self._clock())
            self._publish("duration", self._duration_ms)
            average = self.metrics.update_average_speed(self._duration_ms)
            if average is not None:
                self._publish("average_speed", average)
            return self._duration_ms

    def _on_tick(self, generation: int) -> None:
        with self._lock:
            if self._ticker is None or not self._ticker.is_current(generation):
                return
            self.tick()

    # ------------------------------------------------------------------
    # Source binding
    # ------------------------------------------------------------------
    def bind_location_source(self, source: SampleSource) -> None:
        with self._lock:
            self._location_source = source
            if self.machine.is_live and self._pending_location_start:
                self._log.info("Starting location updates after source binding")
                self._pending_location_start = not self._start_source(source)

    def unbind_location_source(self) -> None:
        with self._lock:
            self._location_source = None
            self._pending_location_start = self.machine.is_live

    def bind_heart_rate_source(self, source: SampleSource) -> None:
        with self._lock:
            self._heart_rate_source = source
            if self.machine.is_live and self._pending_heart_rate_start:
                self._log.info("Starting heart rate updates after source binding")
                self._pending_heart_rate_start = not self._start_source(source)

    def unbind_heart_rate_source(self) -> None:
        with self._lock:
            self._heart_rate_source = None
            self._pending_heart_rate_start = self.machine.is_live

    def _start_sources(self) -> None:
        if self._location_source is None:
            self._log.warning("Location source not bound; start deferred until binding")
            self._pending_location_start = True
        else:
            self._pending_location_start = not self._start_source(
                self._location_source
            )
        if self._heart_rate_source is None:
            self._pending_heart_rate_start = True
        else:
            self._pending_heart_rate_start = not self._start_source(
                self._heart_rate_source
            )

    def _start_source(self, source: SampleSource) -> bool:
        try:
            source.start_updates()
        except Exception as exc:
            self._log.error("Failed to start sample source: %s", exc, exc_info=True)
            return False
        return True

    def _halt_inputs(self) -> None:
        """Stop producers, then drain and stop both channels."""

        with self._lock:
            sources = [self._location_source, self._heart_rate_source]
            self._pending_location_start = False
            self._pending_heart_rate_start = False
        for source in sources:
            if source is None:
                continue
            try:
                source.stop_updates()
            except Exception as exc:
                self._log.error("Failed to stop sample source: %s", exc, exc_info=True)
        self._location_channel.stop()
        self._heart_rate_channel.stop()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _after_transition(
        self,
        transition: Transition,
        now_ms: float,
        location: Optional[LocationSample],
    ) -> None:
        event: Optional[RideEvent] = None
        if transition.enters_pause:
            self._stop_ticker()
            self._duration_ms = self.machine.active_duration_ms(now_ms)
            event = self.events.on_pause(
                location, now_ms, manual=self.machine.manual_pause
            )
        elif transition.enters_active:
            if transition is not Transition.STARTED:
                event = self.events.on_resume(location, now_ms)
            self._start_ticker()
        else:
            self._stop_ticker()
        if event is not None:
            self._publish("event", event)
        self._publish("ride_state", self.machine.state)

    def _start_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.start()

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.stop()

    def _create_ride(self, started_at: datetime) -> Optional[int]:
        try:
            return self.repository.create_ride(started_at)
        except Exception as exc:
            self._log.error("Failed to create ride record: %s", exc, exc_info=True)
            return None

    def _build_summary(self, now_ms: float) -> RideSummary:
        moving_ms = self.machine.active_duration_ms(now_ms)
        self._duration_ms = moving_ms
        average = self.metrics.update_average_speed(moving_ms) or 0.0
        polyline_points = self.metrics.polyline_points
        return RideSummary(
            ride_id=self._ride_id,
            started_at=self._started_at,
            ended_at=self._wall_clock(),
            distance_km=self.metrics.distance_km,
            duration_ms=self.machine.elapsed_ms(now_ms),
            moving_time_ms=moving_ms,
            average_speed_kmh=average,
            max_speed_kmh=self.metrics.max_speed_kmh,
            average_heart_rate_bpm=self.metrics.average_heart_rate(),
            max_heart_rate_bpm=self.metrics.max_heart_rate_bpm,
            elevation_gain_m=self.metrics.elevation_gain_m,
            elevation_loss_m=self.metrics.elevation_loss_m,
            polyline=encode_pipe_polyline(polyline_points),
            encoded_polyline=encode_polyline(polyline_points),
        )

    def _persist(self, summary: RideSummary) -> None:
        if summary.ride_id is None:
            self._log.warning("Ride has no record id; skipping persistence")
            return
        try:
            self.repository.finalize_ride(summary)
            self.repository.save_points(summary.ride_id, self.metrics.route_points)
            self.repository.save_heart_rate(
                summary.ride_id, self.metrics.heart_rate_samples
            )
            self.repository.save_events(summary.ride_id, self.events.events)
        except Exception as exc:
            self._log.error(
                "Error saving ride %s: %s", summary.ride_id, exc, exc_info=True
            )

    def _reset_ride(self) -> None:
        self.speed_filter.reset()
        self.metrics.reset()
        self.events.reset()
        self._ride_id = None
        self._started_at = None
        self._last_location = None
        self._duration_ms = 0.0

    def _return_to_idle(self) -> None:
        self._reset_ride()
        self.machine.reset()
        self._publish_reset()
        self._publish("ride_state", self.machine.state)

    def _publish_reset(self) -> None:
        for name in ("speed", "distance", "duration", "average_speed", "max_speed"):
            self._publish(name, 0.0)
        for name in ("heart_rate", "average_heart_rate", "max_heart_rate"):
            self._publish(name, 0)
        self._publish("route", [])


__all__ = [
    "Listener",
    "RideTrackingService",
    "SampleSource",
    "TrackingServiceConfig",
]
