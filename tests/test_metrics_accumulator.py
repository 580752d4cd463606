"""Tests for cumulative ride metrics."""

from __future__ import annotations

import pytest

from conftest import make_fix
from ride_tracker.metrics import MetricsAccumulator
from ride_tracker.models import HeartRateSample


def test_distance_accrues_between_consecutive_fixes() -> None:
    metrics = MetricsAccumulator()
    previous = None
    for i in range(11):
        fix = make_fix(10.0 * i, 2000.0 * i)
        metrics.record_location(fix, previous, accrue=True)
        previous = fix
    assert metrics.distance_km == pytest.approx(0.1, abs=1e-6)
    assert len(metrics.route_points) == 11
    assert len(metrics.polyline_points) == 11


def test_jitter_below_floor_is_not_counted() -> None:
    metrics = MetricsAccumulator()
    first = make_fix(0.0, 0.0)
    metrics.record_location(first, None, accrue=True)
    added = metrics.record_location(make_fix(0.5, 1000.0), first, accrue=True)
    assert added == 0.0
    assert metrics.distance_km == 0.0
    assert len(metrics.polyline_points) == 2


def test_route_points_kept_when_not_accruing() -> None:
    metrics = MetricsAccumulator()
    first = make_fix(0.0, 0.0)
    metrics.record_location(first, None, accrue=False)
    added = metrics.record_location(make_fix(20.0, 1000.0), first, accrue=False)
    assert added == 0.0
    assert metrics.distance_km == 0.0
    assert len(metrics.route_points) == 2
    assert metrics.polyline_points == []


def test_route_point_altitude_defaults_to_zero() -> None:
    metrics = MetricsAccumulator()
    metrics.record_location(make_fix(), None, accrue=True)
    assert metrics.route_points[0].altitude_m == 0.0


def test_elevation_gain_and_loss_respect_noise_floor() -> None:
    metrics = MetricsAccumulator()
    changes = [
        metrics.record_altitude(make_fix(altitude=alt))
        for alt in (100.0, 100.4, 101.0, 99.0)
    ]
    assert changes[0] is None
    assert changes[1] is None
    assert changes[2] == pytest.approx(0.6)
    assert changes[3] == pytest.approx(-2.0)
    assert metrics.elevation_gain_m == pytest.approx(0.6)
    assert metrics.elevation_loss_m == pytest.approx(2.0)


def test_elevation_change_at_floor_counts() -> None:
    metrics = MetricsAccumulator()
    metrics.record_altitude(make_fix(altitude=100.0))
    assert metrics.record_altitude(make_fix(altitude=100.5)) == pytest.approx(0.5)
    assert metrics.elevation_gain_m == pytest.approx(0.5)


def test_missing_altitude_keeps_previous_reference() -> None:
    metrics = MetricsAccumulator()
    metrics.record_altitude(make_fix(altitude=100.0))
    assert metrics.record_altitude(make_fix(altitude=None)) is None
    assert metrics.record_altitude(make_fix(altitude=103.0)) == pytest.approx(3.0)


def test_speed_tracks_current_and_maximum() -> None:
    metrics = MetricsAccumulator()
    assert metrics.record_speed(12.0)
    assert not metrics.record_speed(8.0)
    assert metrics.current_speed_kmh == 8.0
    assert metrics.max_speed_kmh == 12.0


def test_heart_rate_maximum_and_truncated_average() -> None:
    metrics = MetricsAccumulator()
    assert metrics.average_heart_rate() == 0
    flags = [
        metrics.record_heart_rate(HeartRateSample(bpm, ts))
        for bpm, ts in ((121, 0.0), (140, 1000.0), (122, 2000.0))
    ]
    assert flags == [True, True, False]
    assert metrics.heart_rate_bpm == 122
    assert metrics.max_heart_rate_bpm == 140
    assert metrics.average_heart_rate() == 127


def test_average_speed_from_active_time() -> None:
    metrics = MetricsAccumulator()
    first = make_fix(0.0, 0.0)
    metrics.record_location(first, None, accrue=True)
    metrics.record_location(make_fix(100.0, 60_000.0), first, accrue=True)
    assert metrics.update_average_speed(0.0) is None
    assert metrics.update_average_speed(60_000.0) == pytest.approx(6.0, rel=1e-6)


def test_snapshot_is_a_copy() -> None:
    metrics = MetricsAccumulator()
    metrics.record_location(make_fix(), None, accrue=True)
    snap = metrics.snapshot()
    snap.route_points.clear()
    snap.polyline_points.clear()
    assert len(metrics.route_points) == 1
    assert len(metrics.polyline_points) == 1


def test_reset_clears_everything() -> None:
    metrics = MetricsAccumulator()
    metrics.record_speed(20.0)
    metrics.record_heart_rate(HeartRateSample(150, 0.0))
    metrics.record_location(make_fix(), None, accrue=True)
    metrics.reset()
    assert metrics.snapshot() == MetricsAccumulator().snapshot()
