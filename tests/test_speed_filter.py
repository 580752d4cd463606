"""Tests for the median, EMA and stop-detection pipeline."""

from __future__ import annotations

import math

import pytest

from ride_tracker.speed import (
    EmaSmoother,
    MedianWindow,
    SpeedFilterPipeline,
    StopDetector,
    StopState,
)


def test_median_passthrough_until_minimum_samples() -> None:
    window = MedianWindow()
    assert window.add(10.0, 0.0) == 10.0
    assert window.add(20.0, 1000.0) == 20.0
    assert window.add(30.0, 2000.0) == 20.0


def test_median_takes_lower_middle_for_even_counts() -> None:
    window = MedianWindow()
    for value, ts in ((10.0, 0.0), (20.0, 1000.0), (30.0, 2000.0)):
        window.add(value, ts)
    assert window.add(0.0, 3000.0) == 10.0


def test_median_uses_only_last_five_observations() -> None:
    window = MedianWindow()
    for i, value in enumerate([50.0, 50.0, 50.0, 1.0, 1.0, 1.0, 2.0]):
        result = window.add(value, i * 1000.0)
    # last five: 50, 1, 1, 1, 2
    assert result == 1.0


def test_median_window_prunes_stale_observations() -> None:
    window = MedianWindow()
    window.add(1.0, 0.0)
    window.add(2.0, 500.0)
    assert window.add(3.0, 11_000.0) == 3.0
    assert len(window) == 1


def test_ema_seeds_with_first_value_and_decays_with_time() -> None:
    smoother = EmaSmoother(tau_ms=3000.0)
    assert smoother.update(10.0, 0.0) == 10.0
    assert smoother.update(0.0, 3000.0) == pytest.approx(10.0 * math.exp(-1.0))


def test_ema_ignores_non_positive_time_steps() -> None:
    smoother = EmaSmoother()
    smoother.update(10.0, 5000.0)
    assert smoother.update(0.0, 5000.0) == 10.0
    assert smoother.update(0.0, 4000.0) == 10.0


def test_stop_detector_rejects_inverted_thresholds() -> None:
    with pytest.raises(ValueError):
        StopDetector(stop_threshold_kmh=4.0, resume_threshold_kmh=3.0)


def test_stop_detector_recovers_before_confirmation() -> None:
    detector = StopDetector()
    assert detector.apply(1.0, 4.0, 0.0) == 4.0
    assert detector.state is StopState.ENTERING_STOP
    assert detector.apply(1.0, 3.0, 2000.0) == 3.0
    assert detector.apply(2.0, 3.0, 2400.0) == 3.0
    assert detector.state is StopState.MOVING
    assert detector.since_ms is None


def test_stop_detector_holds_zero_between_thresholds() -> None:
    detector = StopDetector()
    detector.apply(0.0, 1.0, 0.0)
    assert detector.apply(0.0, 1.0, 2500.0) == 0.0
    assert detector.is_stopped
    assert detector.since_ms == 0.0
    assert detector.apply(3.0, 2.5, 3000.0) == 0.0
    assert detector.apply(3.6, 2.5, 3500.0) == 0.0
    assert detector.apply(3.7, 2.5, 4000.0) == 2.5
    assert detector.state is StopState.MOVING
    assert detector.since_ms is None


def _feed(pipeline: SpeedFilterPipeline, samples):
    return [pipeline.process(speed, ts) for speed, ts in samples]


def test_pipeline_confirms_stop_after_sustained_low_speed() -> None:
    pipeline = SpeedFilterPipeline()
    _feed(pipeline, [(20.0, ts * 1000.0) for ts in range(5)])
    held = _feed(pipeline, [(0.0, t) for t in (5000.0, 6000.0, 7000.0, 8000.0, 9000.0)])
    assert all(value > 0.0 for value in held)
    assert not pipeline.is_stopped
    assert pipeline.stop_detector.since_ms == 7000.0

    assert pipeline.process(0.0, 9500.0) == 0.0
    assert pipeline.is_stopped
    assert pipeline.last_trace.stop_state is StopState.STOPPED


def test_pipeline_resumes_once_median_clears_resume_threshold() -> None:
    pipeline = SpeedFilterPipeline()
    _feed(pipeline, [(20.0, ts * 1000.0) for ts in range(5)])
    _feed(pipeline, [(0.0, t) for t in (5000.0, 6000.0, 7000.0, 8000.0, 9000.0, 9500.0)])
    assert pipeline.is_stopped

    assert _feed(pipeline, [(10.0, 10_500.0), (10.0, 11_500.0)]) == [0.0, 0.0]
    resumed = pipeline.process(10.0, 12_500.0)
    assert resumed > 0.0
    assert resumed == pytest.approx(pipeline.smoother.value)
    assert not pipeline.is_stopped


def test_pipeline_output_is_never_negative() -> None:
    pipeline = SpeedFilterPipeline()
    outputs = _feed(pipeline, [(speed, i * 700.0) for i, speed in enumerate([5, 0, 12, 0, 0, 3, 40, 0])])
    assert min(outputs) >= 0.0


def test_pipeline_reset_clears_all_stages() -> None:
    pipeline = SpeedFilterPipeline()
    _feed(pipeline, [(0.0, t * 1000.0) for t in range(5)])
    assert pipeline.is_stopped
    pipeline.reset()
    assert not pipeline.is_stopped
    assert len(pipeline.median) == 0
    assert pipeline.smoother.last_update_ms is None
    assert pipeline.last_trace is None
