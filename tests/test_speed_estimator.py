"""Tests for raw speed selection."""

from __future__ import annotations

import pytest

from conftest import make_fix
from ride_tracker.speed import SpeedEstimator, position_speed_kmh


def test_device_speed_preferred_when_trustworthy() -> None:
    estimate = SpeedEstimator().estimate(make_fix(10.0, 2000.0, speed_mps=5.0), make_fix())
    assert estimate.source == "device"
    assert estimate.selected_kmh == pytest.approx(18.0)
    assert estimate.plausible


def test_position_speed_used_when_device_speed_is_low() -> None:
    previous = make_fix(0.0, 0.0)
    estimate = SpeedEstimator().estimate(make_fix(10.0, 2000.0, speed_mps=0.1), previous)
    assert estimate.source == "position"
    assert estimate.device_kmh == pytest.approx(0.36)
    assert estimate.selected_kmh == pytest.approx(18.0, rel=1e-3)


def test_negative_device_speed_treated_as_zero() -> None:
    previous = make_fix(0.0, 0.0)
    estimate = SpeedEstimator().estimate(make_fix(5.0, 1000.0, speed_mps=-3.0), previous)
    assert estimate.device_kmh == 0.0
    assert estimate.source == "position"
    assert estimate.selected_kmh == pytest.approx(18.0, rel=1e-3)


def test_position_speed_zero_without_history_or_elapsed_time() -> None:
    assert position_speed_kmh(make_fix(), None) == 0.0
    assert position_speed_kmh(make_fix(10.0, 1000.0), make_fix(0.0, 1000.0)) == 0.0
    assert SpeedEstimator().estimate(make_fix()).selected_kmh == 0.0


def test_absurd_speed_flagged_implausible() -> None:
    estimate = SpeedEstimator().estimate(make_fix(speed_mps=30.0))
    assert estimate.selected_kmh == pytest.approx(108.0)
    assert not estimate.plausible
    assert SpeedEstimator().estimate(make_fix(speed_mps=27.0)).plausible
