"""Great-circle distance and route serialisation helpers."""

from __future__ import annotations

from decimal import Decimal
import math
from typing import List, Sequence

import numpy as np
import polyline

from .models import LatLon

EARTH_RADIUS_M = 6_371_000.0
MPS_TO_KMH = 3.6


def haversine_m(first: LatLon, second: LatLon) -> float:
    """Return the great-circle distance in metres between two lat/lon pairs."""

    lat1, lon1 = first
    lat2, lon2 = second
    sin = math.sin
    cos = math.cos
    radians = math.radians
    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)
    delta_lat = lat2_rad - lat1_rad
    delta_lon = radians(lon2 - lon1)
    sin_half_lat = sin(delta_lat / 2.0)
    sin_half_lon = sin(delta_lon / 2.0)
    a = sin_half_lat**2 + cos(lat1_rad) * cos(lat2_rad) * sin_half_lon**2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def path_length_m(points: Sequence[LatLon]) -> float:
    """Return the summed haversine length of a route in metres."""

    if len(points) < 2:
        return 0.0
    coords = np.radians(np.asarray(points, dtype=float))
    lat = coords[:, 0]
    lon = coords[:, 1]
    delta_lat = np.diff(lat)
    delta_lon = np.diff(lon)
    a = (
        np.sin(delta_lat / 2.0) ** 2
        + np.cos(lat[:-1]) * np.cos(lat[1:]) * np.sin(delta_lon / 2.0) ** 2
    )
    c = 2.0 * np.arctan2(np.sqrt(a), np.sqrt(1.0 - a))
    return float(np.sum(EARTH_RADIUS_M * c))


def _format_coordinate(value: float) -> str:
    """Shortest round-trip text for a coordinate, JVM ``Double.toString`` style.

    Magnitudes in ``[1e-3, 1e7)`` print as plain decimals (``51.5``, ``3.0``);
    anything else uses ``E`` notation (``5.0E-4``) so stored routes match the
    ones written by the mobile app byte for byte.
    """

    value = float(value)
    magnitude = abs(value)
    if value == 0.0 or 1e-3 <= magnitude < 1e7:
        return repr(value)
    sign, digits, exponent = Decimal(repr(value)).as_tuple()
    text = "".join(str(digit) for digit in digits).rstrip("0") or "0"
    scientific_exp = len(digits) + exponent - 1
    mantissa = f"{text[0]}.{text[1:] or '0'}"
    return f"{'-' if sign else ''}{mantissa}E{scientific_exp}"


def encode_pipe_polyline(points: Sequence[LatLon]) -> str:
    """Serialise coordinates as ``lat,lon|lat,lon`` for route storage."""

    return "|".join(
        f"{_format_coordinate(lat)},{_format_coordinate(lon)}" for lat, lon in points
    )


def decode_pipe_polyline(encoded: str) -> List[LatLon]:
    """Parse a ``lat,lon|lat,lon`` string back into coordinate pairs."""

    if not encoded:
        return []
    points: List[LatLon] = []
    for chunk in encoded.split("|"):
        lat_text, sep, lon_text = chunk.partition(",")
        if not sep:
            raise ValueError(f"Malformed polyline pair: {chunk!r}")
        points.append((float(lat_text), float(lon_text)))
    return points


def encode_polyline(points: Sequence[LatLon], precision: int = 5) -> str:
    """Encode coordinates with the Google polyline algorithm."""

    if not points:
        return ""
    return polyline.encode([(float(lat), float(lon)) for lat, lon in points], precision)


def decode_polyline(encoded: str, precision: int = 5) -> List[LatLon]:
    """Decode a Google encoded polyline string into a list of (lat, lon) tuples."""

    if not encoded:
        return []
    try:
        decoded = polyline.decode(encoded, precision)
    except (ValueError, TypeError, IndexError) as exc:
        raise ValueError("Unable to decode polyline") from exc
    return [(float(lat), float(lon)) for lat, lon in decoded]


__all__ = [
    "EARTH_RADIUS_M",
    "MPS_TO_KMH",
    "decode_pipe_polyline",
    "decode_polyline",
    "encode_pipe_polyline",
    "encode_polyline",
    "haversine_m",
    "path_length_m",
]
