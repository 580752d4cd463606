"""Raw speed candidate per accepted fix."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional

from ..config import DEVICE_SPEED_TRUST_KMH, MAX_PLAUSIBLE_SPEED_KMH
from ..geo import MPS_TO_KMH, haversine_m
from ..models import LocationSample

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SpeedEstimate:
    """Both candidates plus the one selected for filtering (all km/h)."""

    device_kmh: float
    position_kmh: float
    selected_kmh: float
    source: str
    plausible: bool


def position_speed_kmh(
    current: LocationSample, previous: Optional[LocationSample]
) -> float:
    """Speed implied by the displacement since ``previous``; 0 when undefined."""

    if previous is None:
        return 0.0
    elapsed_s = (current.timestamp_ms - previous.timestamp_ms) / 1000.0
    if elapsed_s <= 0:
        return 0.0
    distance_m = haversine_m(previous.position, current.position)
    return distance_m / elapsed_s * MPS_TO_KMH


class SpeedEstimator:
    """Prefer the receiver's Doppler speed, fall back to position speed."""

    def __init__(
        self,
        *,
        device_trust_kmh: float = DEVICE_SPEED_TRUST_KMH,
        max_plausible_kmh: float = MAX_PLAUSIBLE_SPEED_KMH,
    ) -> None:
        self.device_trust_kmh = device_trust_kmh
        self.max_plausible_kmh = max_plausible_kmh

    def estimate(
        self, sample: LocationSample, previous: Optional[LocationSample] = None
    ) -> SpeedEstimate:
        device_kmh = max(0.0, sample.speed_mps) * MPS_TO_KMH
        position_kmh = position_speed_kmh(sample, previous)
        if device_kmh > self.device_trust_kmh:
            selected, source = device_kmh, "device"
        else:
            selected, source = position_kmh, "position"
        plausible = selected <= self.max_plausible_kmh
        _LOG.debug(
            "Speed candidates device=%.2f position=%.2f using %s=%.2f km/h",
            device_kmh,
            position_kmh,
            source,
            selected,
        )
        return SpeedEstimate(
            device_kmh=device_kmh,
            position_kmh=position_kmh,
            selected_kmh=selected,
            source=source,
            plausible=plausible,
        )


__all__ = ["SpeedEstimate", "SpeedEstimator", "position_speed_kmh"]
