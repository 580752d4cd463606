"""Ride lifecycle: idle, active, paused and finished.

The machine owns the timing side of a ride (start time, paused time, the
manual-pause flag) and the auto-pause timer. It does not touch metrics or
events; callers react to the :class:`Transition` values it returns.
"""

from __future__ import annotations

from enum import Enum
import logging
from typing import Optional

from .config import AUTO_PAUSE_DELAY_MS, AUTO_PAUSE_SPEED_KMH, AUTO_RESUME_SPEED_KMH
from .models import RideState


class Transition(str, Enum):
    STARTED = "started"
    PAUSED = "paused"
    AUTO_PAUSED = "auto_paused"
    RESUMED = "resumed"
    AUTO_RESUMED = "auto_resumed"
    FINISHED = "finished"
    DISCARDED = "discarded"

    @property
    def enters_active(self) -> bool:
        return self in (Transition.STARTED, Transition.RESUMED, Transition.AUTO_RESUMED)

    @property
    def enters_pause(self) -> bool:
        return self in (Transition.PAUSED, Transition.AUTO_PAUSED)


class RideStateMachine:
    """Lifecycle plus auto-pause/resume decisions from the filtered speed.

    ``manual_pause`` is the single flag telling a manual pause from an
    automatic one. While it is set, speed never resumes the ride.
    """

    def __init__(
        self,
        *,
        auto_pause_speed_kmh: float = AUTO_PAUSE_SPEED_KMH,
        auto_pause_delay_ms: float = AUTO_PAUSE_DELAY_MS,
        auto_resume_speed_kmh: float = AUTO_RESUME_SPEED_KMH,
    ) -> None:
        self._log = logging.getLogger(self.__class__.__name__)
        self.auto_pause_speed_kmh = auto_pause_speed_kmh
        self.auto_pause_delay_ms = auto_pause_delay_ms
        self.auto_resume_speed_kmh = auto_resume_speed_kmh
        self.state = RideState.IDLE
        self._clear_timing()

    def _clear_timing(self) -> None:
        self.manual_pause = False
        self.started_ms: Optional[float] = None
        self.pause_started_ms: Optional[float] = None
        self.total_paused_ms = 0.0
        self.stationary_since_ms: Optional[float] = None

    @property
    def is_live(self) -> bool:
        return self.state in (RideState.ACTIVE, RideState.PAUSED)

    @property
    def accrues_distance(self) -> bool:
        """Active, or paused automatically while motion is still settling."""

        return self.state is RideState.ACTIVE or (
            self.state is RideState.PAUSED and not self.manual_pause
        )

    def active_duration_ms(self, now_ms: float) -> float:
        if self.started_ms is None:
            return 0.0
        paused = self.total_paused_ms
        if self.state is RideState.PAUSED and self.pause_started_ms is not None:
            paused += max(0.0, now_ms - self.pause_started_ms)
        return max(0.0, now_ms - self.started_ms - paused)

    def elapsed_ms(self, now_ms: float) -> float:
        if self.started_ms is None:
            return 0.0
        return max(0.0, now_ms - self.started_ms)

    # -- commands -------------------------------------------------------
    def start(self, now_ms: float) -> Optional[Transition]:
        if self.state is not RideState.IDLE:
            return self._ignored("start")
        self._clear_timing()
        self.started_ms = now_ms
        self.state = RideState.ACTIVE
        self._log.info("Ride started")
        return Transition.STARTED

    def pause(self, now_ms: float) -> Optional[Transition]:
        if self.state is RideState.PAUSED and not self.manual_pause:
            # Promote an auto-pause; the pause keeps its original start time.
            self.manual_pause = True
            self._log.info("Auto-pause converted to manual pause")
            return Transition.PAUSED
        if self.state is not RideState.ACTIVE:
            return self._ignored("pause")
        self._enter_pause(now_ms, manual=True)
        return Transition.PAUSED

    def resume(self, now_ms: float) -> Optional[Transition]:
        if self.state is not RideState.PAUSED:
            return self._ignored("resume")
        self._leave_pause(now_ms)
        return Transition.RESUMED

    def finish(self, now_ms: float) -> Optional[Transition]:
        if not self.is_live:
            return self._ignored("finish")
        self._close(now_ms)
        return Transition.FINISHED

    def discard(self, now_ms: float) -> Optional[Transition]:
        if not self.is_live:
            return self._ignored("discard")
        self._close(now_ms)
        return Transition.DISCARDED

    def reset(self) -> None:
        """Return to idle once a finished ride has been handed off."""

        self._clear_timing()
        self.state = RideState.IDLE

    # -- speed-driven transitions ----------------------------------------
    def on_speed(self, speed_kmh: float, now_ms: float) -> Optional[Transition]:
        if self.state is RideState.ACTIVE:
            if speed_kmh >= self.auto_pause_speed_kmh:
                if self.stationary_since_ms is not None:
                    self._log.debug("Speed increased, resetting pause timer")
                self.stationary_since_ms = None
                return None
            if self.stationary_since_ms is None:
                self.stationary_since_ms = now_ms
                self._log.debug(
                    "Speed %.2f below stationary threshold %.2f, starting pause timer",
                    speed_kmh,
                    self.auto_pause_speed_kmh,
                )
                return None
            if now_ms - self.stationary_since_ms >= self.auto_pause_delay_ms:
                self._log.info(
                    "Auto-pausing ride after %.0fs stationary",
                    (now_ms - self.stationary_since_ms) / 1000.0,
                )
                self._enter_pause(now_ms, manual=False)
                return Transition.AUTO_PAUSED
            return None
        if self.state is RideState.PAUSED:
            if self.manual_pause:
                self._log.debug("Manual pause - auto-resume disabled")
                return None
            if speed_kmh >= self.auto_resume_speed_kmh:
                self._log.info("Auto-resuming ride at %.2f km/h", speed_kmh)
                self._leave_pause(now_ms)
                return Transition.AUTO_RESUMED
            return None
        self.stationary_since_ms = None
        return None

    # -- internals ------------------------------------------------------
    def _enter_pause(self, now_ms: float, *, manual: bool) -> None:
        self.manual_pause = manual
        self.pause_started_ms = now_ms
        self.stationary_since_ms = None
        self.state = RideState.PAUSED
        if manual:
            self._log.info("Ride paused manually")

    def _leave_pause(self, now_ms: float) -> None:
        if self.pause_started_ms is not None:
            self.total_paused_ms += max(0.0, now_ms - self.pause_started_ms)
        self.pause_started_ms = None
        self.manual_pause = False
        self.stationary_since_ms = None
        self.state = RideState.ACTIVE
        self._log.info("Ride resumed (paused %.1fs in total)", self.total_paused_ms / 1000.0)

    def _close(self, now_ms: float) -> None:
        if self.state is RideState.PAUSED and self.pause_started_ms is not None:
            self.total_paused_ms += max(0.0, now_ms - self.pause_started_ms)
            self.pause_started_ms = None
        self.stationary_since_ms = None
        self.state = RideState.FINISHED
        self._log.info("Ride finished")

    def _ignored(self, command: str) -> None:
        self._log.warning(
            "Ignoring %s command in state %s", command, self.state.value
        )
        return None


__all__ = ["RideStateMachine", "Transition"]
