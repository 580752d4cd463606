"""Tests for distance and polyline helpers."""

from __future__ import annotations

import math

import pytest

from ride_tracker.geo import (
    EARTH_RADIUS_M,
    decode_pipe_polyline,
    decode_polyline,
    encode_pipe_polyline,
    encode_polyline,
    haversine_m,
    path_length_m,
)

GOOGLE_SAMPLE = [(38.5, -120.2), (40.7, -120.95), (43.252, -126.453)]
GOOGLE_SAMPLE_ENCODED = "_p~iF~ps|U_ulLnnqC_mqNvxq`@"


def test_haversine_one_degree_of_latitude() -> None:
    expected = EARTH_RADIUS_M * math.pi / 180.0
    assert haversine_m((0.0, 0.0), (1.0, 0.0)) == pytest.approx(expected)
    assert haversine_m((51.5, -0.12), (51.5, -0.12)) == 0.0


def test_path_length_matches_pairwise_haversine() -> None:
    points = [(51.5, -0.12), (51.501, -0.121), (51.503, -0.119), (51.5035, -0.118)]
    expected = sum(haversine_m(a, b) for a, b in zip(points, points[1:]))
    assert path_length_m(points) == pytest.approx(expected)
    assert path_length_m(points[:1]) == 0.0


def test_pipe_polyline_format() -> None:
    encoded = encode_pipe_polyline([(1.5, 2.25), (3.0, -4.0)])
    assert encoded == "1.5,2.25|3.0,-4.0"
    assert decode_pipe_polyline(encoded) == [(1.5, 2.25), (3.0, -4.0)]
    assert encode_pipe_polyline([]) == ""
    assert decode_pipe_polyline("") == []


def test_pipe_polyline_rejects_malformed_pairs() -> None:
    with pytest.raises(ValueError):
        decode_pipe_polyline("1.5,2.0|3.0")
    with pytest.raises(ValueError):
        decode_pipe_polyline("a,b")


def test_google_polyline_encoding() -> None:
    assert encode_polyline(GOOGLE_SAMPLE) == GOOGLE_SAMPLE_ENCODED
    decoded = decode_polyline(GOOGLE_SAMPLE_ENCODED)
    for (lat, lon), (exp_lat, exp_lon) in zip(decoded, GOOGLE_SAMPLE):
        assert lat == pytest.approx(exp_lat)
        assert lon == pytest.approx(exp_lon)
    assert len(decoded) == len(GOOGLE_SAMPLE)
    assert encode_polyline([]) == ""
    assert decode_polyline("") == []


def test_pipe_polyline_uses_exponent_notation_for_tiny_and_huge_values() -> None:
    points = [(0.0005, -0.00012345), (0.0, 1e-05), (12345678.0, 0.001)]
    encoded = encode_pipe_polyline(points)
    assert encoded == "5.0E-4,-1.2345E-4|0.0,1.0E-5|1.2345678E7,0.001"
    assert decode_pipe_polyline(encoded) == points
