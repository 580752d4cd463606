"""Tests for semantic ride events."""

from __future__ import annotations

import pytest

from conftest import make_fix
from ride_tracker.events import (
    AUTO_PAUSE_NOTE,
    MANUAL_PAUSE_NOTE,
    RESUME_NOTE,
    EventDetector,
)
from ride_tracker.models import EventType


def test_sprint_event_above_threshold() -> None:
    detector = EventDetector()
    sample = make_fix(t_ms=5000.0, speed_mps=10.0)
    assert detector.on_speed(35.0, sample) is None
    event = detector.on_speed(36.4, sample)
    assert event is not None
    assert event.event_type is EventType.SPRINT
    assert event.note == "High speed: 36 km/h"
    assert event.timestamp_ms == 5000.0
    assert event.speed_kmh == pytest.approx(36.0)


def test_sprint_events_repeat_without_cooldown() -> None:
    detector = EventDetector()
    for i in range(3):
        detector.on_speed(40.0, make_fix(t_ms=i * 1000.0))
    assert len(detector) == 3


def test_sprint_cooldown_suppresses_repeats() -> None:
    detector = EventDetector(sprint_cooldown_ms=5000.0)
    assert detector.on_speed(40.0, make_fix(t_ms=0.0)) is not None
    assert detector.on_speed(40.0, make_fix(t_ms=1000.0)) is None
    assert detector.on_speed(40.0, make_fix(t_ms=6000.0)) is not None
    assert len(detector) == 2


def test_small_elevation_change_emits_nothing() -> None:
    detector = EventDetector()
    assert detector.on_elevation_change(4.0, make_fix(altitude=104.0)) == []
    assert len(detector) == 0


def test_climb_then_descent_closes_the_climb() -> None:
    detector = EventDetector()
    first = detector.on_elevation_change(6.0, make_fix(altitude=106.0))
    assert [e.event_type for e in first] == [EventType.CLIMB_START]
    assert first[0].note == "Elevation change: 6m"
    assert first[0].altitude_m == 106.0

    detector.on_elevation_change(2.0, make_fix(altitude=108.0))
    second = detector.on_elevation_change(-6.5, make_fix(altitude=101.5))
    assert [e.event_type for e in second] == [
        EventType.CLIMB_END,
        EventType.DESCENT_START,
    ]
    assert second[0].note == "Total elevation change: 8m"
    assert second[1].note == "Elevation change: -6m"


def test_climb_end_events_can_be_disabled() -> None:
    detector = EventDetector(climb_end_events=False)
    detector.on_elevation_change(6.0, make_fix())
    emitted = detector.on_elevation_change(-6.0, make_fix())
    assert [e.event_type for e in emitted] == [EventType.DESCENT_START]


def test_pause_and_resume_events_use_given_location() -> None:
    detector = EventDetector()
    location = make_fix(50.0, 1000.0, speed_mps=0.0)
    manual = detector.on_pause(location, 2000.0, manual=True)
    auto = detector.on_pause(location, 3000.0, manual=False)
    resumed = detector.on_resume(location, 4000.0)
    assert manual.event_type is EventType.PAUSED and manual.note == MANUAL_PAUSE_NOTE
    assert auto.note == AUTO_PAUSE_NOTE
    assert resumed.event_type is EventType.STOPPED
    assert resumed.note == RESUME_NOTE
    assert resumed.timestamp_ms == 4000.0
    assert resumed.latitude == location.latitude


def test_pause_without_location_is_skipped() -> None:
    detector = EventDetector()
    assert detector.on_pause(None, 0.0, manual=True) is None
    assert detector.on_resume(None, 0.0) is None
    assert detector.events == []


def test_events_property_returns_copy_and_reset_clears() -> None:
    detector = EventDetector()
    detector.on_speed(40.0, make_fix())
    detector.events.clear()
    assert len(detector) == 1
    detector.reset()
    assert len(detector) == 0
