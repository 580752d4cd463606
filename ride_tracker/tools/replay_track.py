"""Replay a recorded ride through the tracking service.

Reads a CSV of GPS fixes (and optionally a CSV of heart-rate readings), feeds
them through :class:`RideTrackingService` in timestamp order with a clock that
follows the recording, and prints the finished ride summary as JSON.

Fix columns: ``timestamp_ms, latitude, longitude, accuracy_m, speed_mps`` and
optionally ``altitude_m``. Heart-rate columns: ``timestamp_ms, bpm``.

Usage:
    python -m ride_tracker.tools.replay_track fixes.csv --heart-rate hr.csv
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any, List, Optional, Sequence

import pandas as pd

from ..geo import decode_pipe_polyline, path_length_m
from ..models import HeartRateSample, LocationSample, RideEvent, RideSummary, RoutePoint
from ..persistence import InMemoryRideRepository
from ..services import RideTrackingService, TrackingServiceConfig
from ..utils import json_dumps_sorted

LOGGER = logging.getLogger(__name__)

FIX_COLUMNS = ("timestamp_ms", "latitude", "longitude", "accuracy_m", "speed_mps")
HEART_RATE_COLUMNS = ("timestamp_ms", "bpm")
TICK_MS = 1000.0


class ReplayClock:
    """Clock that only moves when the replay advances it."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms


@dataclass(slots=True)
class ReplayResult:
    summary: Optional[RideSummary]
    events: List[RideEvent] = field(default_factory=list)
    route_points: List[RoutePoint] = field(default_factory=list)
    states: List[str] = field(default_factory=list)
    accepted: int = 0
    rejected: int = 0
    route_length_km: float = 0.0


def _require_columns(frame: pd.DataFrame, columns: Sequence[str], path: Path) -> None:
    missing = [col for col in columns if col not in frame.columns]
    if missing:
        raise ValueError(f"{path}: missing columns {', '.join(missing)}")


def load_fixes(path: Path) -> List[LocationSample]:
    frame = pd.read_csv(path)
    _require_columns(frame, FIX_COLUMNS, path)
    frame = frame.sort_values("timestamp_ms", kind="stable")
    has_altitude = "altitude_m" in frame.columns
    fixes: List[LocationSample] = []
    for row in frame.itertuples(index=False):
        altitude = getattr(row, "altitude_m") if has_altitude else None
        fixes.append(
            LocationSample(
                latitude=float(row.latitude),
                longitude=float(row.longitude),
                accuracy_m=float(row.accuracy_m),
                speed_mps=float(row.speed_mps),
                timestamp_ms=float(row.timestamp_ms),
                altitude_m=None if altitude is None or pd.isna(altitude) else float(altitude),
            )
        )
    return fixes


def load_heart_rate(path: Path) -> List[HeartRateSample]:
    frame = pd.read_csv(path)
    _require_columns(frame, HEART_RATE_COLUMNS, path)
    frame = frame.dropna(subset=["bpm"]).sort_values("timestamp_ms", kind="stable")
    return [
        HeartRateSample(bpm=int(row.bpm), timestamp_ms=float(row.timestamp_ms))
        for row in frame.itertuples(index=False)
    ]


def route_frame(points: Sequence[RoutePoint]) -> pd.DataFrame:
    """Tabulate route points for export."""

    columns = ["timestamp_ms", "latitude", "longitude", "altitude_m", "accuracy_m", "speed_mps"]
    return pd.DataFrame(
        [[getattr(point, col) for col in columns] for point in points],
        columns=columns,
    )


def replay(
    fixes: Sequence[LocationSample],
    heart_rate: Sequence[HeartRateSample] = (),
) -> ReplayResult:
    """Feed recorded samples through a fresh service and finish the ride."""

    if not fixes:
        return ReplayResult(summary=None)
    start_ms = min(
        [fixes[0].timestamp_ms] + ([heart_rate[0].timestamp_ms] if heart_rate else [])
    )
    clock = ReplayClock(start_ms)
    service = RideTrackingService(
        TrackingServiceConfig(
            repository=InMemoryRideRepository(),
            clock=clock,
            threaded=False,
            tick_interval_s=None,
        )
    )
    result = ReplayResult(summary=None)

    def _on_change(name: str, value: Any) -> None:
        if name == "ride_state":
            result.states.append(value.value)

    service.subscribe(_on_change)
    service.start_ride()

    timeline: List[tuple[float, int, Any]] = [(f.timestamp_ms, 0, f) for f in fixes]
    timeline.extend((hr.timestamp_ms, 1, hr) for hr in heart_rate)
    timeline.sort(key=lambda item: (item[0], item[1]))

    next_tick = start_ms + TICK_MS
    for timestamp_ms, kind, sample in timeline:
        while next_tick <= timestamp_ms:
            clock.now_ms = next_tick
            service.tick()
            next_tick += TICK_MS
        clock.now_ms = timestamp_ms
        if kind == 0:
            if service.process_location_sample(sample):
                result.accepted += 1
            else:
                result.rejected += 1
        else:
            service.process_heart_rate(sample)

    snapshot = service.snapshot()
    result.events = snapshot.events
    result.route_points = snapshot.route_points
    result.summary = service.finish_ride()
    if result.summary is not None:
        # Length of the stored polyline, independent of the jitter floor.
        route = decode_pipe_polyline(result.summary.polyline)
        result.route_length_km = path_length_m(route) / 1000.0
    service.close()
    return result


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Replay recorded GPS fixes through the ride tracker.",
    )
    parser.add_argument("fixes", type=Path, help="CSV file with GPS fixes")
    parser.add_argument("--heart-rate", type=Path, help="Optional heart-rate CSV")
    parser.add_argument(
        "--route-csv",
        type=Path,
        help="Optional path to write the accepted route points as CSV",
    )
    parser.add_argument(
        "--events",
        action="store_true",
        help="Include the ride events in the printed JSON",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point used via ``python -m ride_tracker.tools.replay_track``."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.INFO,
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )

    try:
        fixes = load_fixes(args.fixes)
        heart_rate = load_heart_rate(args.heart_rate) if args.heart_rate else []
    except (OSError, ValueError) as exc:
        LOGGER.error("Failed to load recording: %s", exc)
        return 1
    if not fixes:
        LOGGER.error("No fixes found in %s", args.fixes)
        return 1

    LOGGER.info("Replaying %d fixes and %d heart-rate readings", len(fixes), len(heart_rate))
    result = replay(fixes, heart_rate)
    LOGGER.info("Accepted %d fixes, rejected %d", result.accepted, result.rejected)
    if result.summary is not None:
        LOGGER.info(
            "Summary distance %.3f km, polyline length %.3f km",
            result.summary.distance_km,
            result.route_length_km,
        )

    if args.route_csv:
        args.route_csv.parent.mkdir(parents=True, exist_ok=True)
        route_frame(result.route_points).to_csv(args.route_csv, index=False)
        LOGGER.info("Route written to %s", args.route_csv)

    payload: dict[str, Any] = {
        "summary": result.summary,
        "accepted": result.accepted,
        "rejected": result.rejected,
        "route_length_km": result.route_length_km,
        "states": result.states,
    }
    if args.events:
        payload["events"] = result.events
    print(json_dumps_sorted(payload, indent=2))
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
