"""Acceptance rules for raw GPS fixes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Optional

from .config import (
    GATE_JUMP_ACCURACY_M,
    GATE_JUMP_DISTANCE_M,
    GATE_JUMP_WINDOW_S,
    GATE_MAX_ACCURACY_M,
    GATE_TELEPORT_DISTANCE_M,
)
from .geo import haversine_m
from .models import LocationSample


class RejectReason(str, Enum):
    POOR_ACCURACY = "poor_accuracy"
    GPS_JUMP = "gps_jump"
    TELEPORT = "teleport"
    ABSURD_SPEED = "absurd_speed"


@dataclass(frozen=True, slots=True)
class GateDecision:
    """Outcome of gating one fix against the previously accepted one."""

    accepted: bool
    reason: Optional[RejectReason] = None
    displacement_m: Optional[float] = None
    elapsed_s: Optional[float] = None

    @classmethod
    def reject(
        cls,
        reason: RejectReason,
        displacement_m: Optional[float] = None,
        elapsed_s: Optional[float] = None,
    ) -> "GateDecision":
        return cls(False, reason, displacement_m, elapsed_s)


class LocationSampleGate:
    """Drop fixes that are too inaccurate or physically implausible.

    The gate is a pure decision: it never remembers samples itself. Callers
    pass the last fix they fully accepted and advance that reference only
    when the rest of the pipeline accepts the sample too.
    """

    def __init__(
        self,
        *,
        max_accuracy_m: float = GATE_MAX_ACCURACY_M,
        jump_distance_m: float = GATE_JUMP_DISTANCE_M,
        jump_window_s: float = GATE_JUMP_WINDOW_S,
        jump_accuracy_m: float = GATE_JUMP_ACCURACY_M,
        teleport_distance_m: float = GATE_TELEPORT_DISTANCE_M,
    ) -> None:
        self._log = logging.getLogger(self.__class__.__name__)
        self.max_accuracy_m = max_accuracy_m
        self.jump_distance_m = jump_distance_m
        self.jump_window_s = jump_window_s
        self.jump_accuracy_m = jump_accuracy_m
        self.teleport_distance_m = teleport_distance_m

    def accept(
        self,
        sample: LocationSample,
        previous: Optional[LocationSample] = None,
    ) -> GateDecision:
        if sample.accuracy_m > self.max_accuracy_m:
            self._log.debug(
                "Rejecting fix with poor accuracy: %.1fm > %.1fm",
                sample.accuracy_m,
                self.max_accuracy_m,
            )
            return GateDecision.reject(RejectReason.POOR_ACCURACY)
        if previous is None:
            return GateDecision(True)

        displacement = haversine_m(previous.position, sample.position)
        elapsed = (sample.timestamp_ms - previous.timestamp_ms) / 1000.0
        self._log.debug(
            "GPS displacement %.1fm in %.1fs (accuracy %.1fm)",
            displacement,
            elapsed,
            sample.accuracy_m,
        )
        if (
            displacement > self.jump_distance_m
            and elapsed < self.jump_window_s
            and sample.accuracy_m > self.jump_accuracy_m
        ):
            self._log.debug(
                "Rejecting GPS jump: %.1fm in %.1fs with accuracy %.1fm",
                displacement,
                elapsed,
                sample.accuracy_m,
            )
            return GateDecision.reject(RejectReason.GPS_JUMP, displacement, elapsed)
        if displacement > self.teleport_distance_m:
            self._log.debug("Rejecting extreme displacement: %.1fm", displacement)
            return GateDecision.reject(RejectReason.TELEPORT, displacement, elapsed)
        return GateDecision(True, None, displacement, elapsed)


__all__ = ["GateDecision", "LocationSampleGate", "RejectReason"]
