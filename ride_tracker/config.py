"""Central configuration for the ride tracking core.

All values are constants imported by the rest of the package. Components take
them as constructor defaults, so tests and embedders can override individual
thresholds without touching this module. Values can be tuned through
environment variables (optionally via a local `.env`).
"""

from __future__ import annotations

import os

from dotenv import load_dotenv


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env from the current directory or any parent folder.
load_dotenv()


# ---------------------------------------------------------------------------
# Location sample gate
# ---------------------------------------------------------------------------
# Fixes with a horizontal accuracy worse than this (metres) are dropped.
GATE_MAX_ACCURACY_M = _env_float("GATE_MAX_ACCURACY_M", 25.0)

# A displacement larger than GATE_JUMP_DISTANCE_M within GATE_JUMP_WINDOW_S
# seconds is a GPS jump when accuracy is worse than GATE_JUMP_ACCURACY_M.
GATE_JUMP_DISTANCE_M = _env_float("GATE_JUMP_DISTANCE_M", 100.0)
GATE_JUMP_WINDOW_S = _env_float("GATE_JUMP_WINDOW_S", 10.0)
GATE_JUMP_ACCURACY_M = _env_float("GATE_JUMP_ACCURACY_M", 15.0)

# Displacements above this are rejected regardless of time or accuracy.
GATE_TELEPORT_DISTANCE_M = _env_float("GATE_TELEPORT_DISTANCE_M", 500.0)


# ---------------------------------------------------------------------------
# Speed estimation
# ---------------------------------------------------------------------------
# Device-reported speed (km/h) above which it is trusted over position speed.
DEVICE_SPEED_TRUST_KMH = _env_float("DEVICE_SPEED_TRUST_KMH", 0.5)

# Anything faster than this (km/h) is not a bicycle; the sample is dropped.
MAX_PLAUSIBLE_SPEED_KMH = _env_float("MAX_PLAUSIBLE_SPEED_KMH", 100.0)


# ---------------------------------------------------------------------------
# Speed filter pipeline
# ---------------------------------------------------------------------------
# Rolling window of raw speed observations (milliseconds).
SPEED_WINDOW_MS = _env_int("SPEED_WINDOW_MS", 10_000)

# Median filter width and the minimum number of samples before it applies.
MEDIAN_WINDOW_SIZE = _env_int("MEDIAN_WINDOW_SIZE", 5)
MEDIAN_MIN_SAMPLES = _env_int("MEDIAN_MIN_SAMPLES", 3)

# EMA time constant (milliseconds).
EMA_TAU_MS = _env_float("EMA_TAU_MS", 3000.0)

# Hysteresis thresholds: 0.5 m/s to enter the stop state, 1.0 m/s to leave it.
STOP_THRESHOLD_KMH = _env_float("STOP_THRESHOLD_KMH", 0.5 * 3.6)
RESUME_THRESHOLD_KMH = _env_float("RESUME_THRESHOLD_KMH", 1.0 * 3.6)

# Time the median must stay below the stop threshold before reporting 0.
STOP_CONFIRM_MS = _env_int("STOP_CONFIRM_MS", 2500)


# ---------------------------------------------------------------------------
# Metrics accumulation
# ---------------------------------------------------------------------------
# Movements at or below this (metres) are GPS jitter and add no distance.
DISTANCE_JITTER_FLOOR_M = _env_float("DISTANCE_JITTER_FLOOR_M", 1.0)

# Altitude changes below this (metres) are ignored for gain/loss.
ELEVATION_NOISE_FLOOR_M = _env_float("ELEVATION_NOISE_FLOOR_M", 0.5)


# ---------------------------------------------------------------------------
# Event detection
# ---------------------------------------------------------------------------
SPRINT_THRESHOLD_KMH = _env_float("SPRINT_THRESHOLD_KMH", 35.0)

# Minimum spacing between two sprint events (milliseconds). 0 emits one event
# per qualifying speed update.
SPRINT_EVENT_COOLDOWN_MS = _env_int("SPRINT_EVENT_COOLDOWN_MS", 0)

# Elevation step (metres) between consecutive readings that marks a climb or
# descent start.
CLIMB_EVENT_THRESHOLD_M = _env_float("CLIMB_EVENT_THRESHOLD_M", 5.0)

# Emit ClimbEnd/DescentEnd when the elevation trend reverses.
CLIMB_END_EVENTS_ENABLED = _env_bool("CLIMB_END_EVENTS_ENABLED", True)


# ---------------------------------------------------------------------------
# Ride lifecycle
# ---------------------------------------------------------------------------
# Filtered speed (km/h) regarded as stationary for auto-pause.
AUTO_PAUSE_SPEED_KMH = _env_float("AUTO_PAUSE_SPEED_KMH", 0.5)

# How long (milliseconds) the rider must stay stationary before auto-pause.
AUTO_PAUSE_DELAY_MS = _env_int("AUTO_PAUSE_DELAY_MS", 15_000)

# Filtered speed (km/h) that lifts an automatic pause.
AUTO_RESUME_SPEED_KMH = _env_float("AUTO_RESUME_SPEED_KMH", 2.0)

# Duration ticker cadence (seconds).
DURATION_TICK_SECONDS = _env_float("DURATION_TICK_SECONDS", 1.0)

# Seconds to wait for a sample channel to drain when a ride stops.
CHANNEL_STOP_TIMEOUT_SECONDS = _env_float("CHANNEL_STOP_TIMEOUT_SECONDS", 5.0)
