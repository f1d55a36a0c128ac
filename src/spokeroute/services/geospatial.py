"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Any, Iterable

EARTH_RADIUS_MILES = 3958.8
METERS_PER_MILE = 1609.34


class RouteValidationError(ValueError):
    """Raised when a route request is rejected before any routing or ordering work."""


class InvalidCoordinatesError(RouteValidationError):
    """Raised for latitude/longitude values outside WGS84 bounds."""


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in statute miles."""

    return _central_angle(lat1, lon1, lat2, lon2) * EARTH_RADIUS_MILES


def _central_angle(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def meters_to_miles(meters: float) -> float:
    return meters / METERS_PER_MILE


def seconds_to_minutes(seconds: float) -> int:
    return int(round(seconds / 60))


def is_valid_coordinate(lat: Any, lng: Any) -> bool:
    """Return True for a finite numeric latitude/longitude pair inside WGS84 bounds."""

    for value in (lat, lng):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if math.isnan(value) or math.isinf(value):
            return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def validate_coordinates(pairs: Iterable[tuple[float, float]]) -> None:
    """Raise InvalidCoordinatesError on the first out-of-range (lat, lng) pair."""

    for index, (lat, lng) in enumerate(pairs):
        if not is_valid_coordinate(lat, lng):
            raise InvalidCoordinatesError(f"Invalid coordinate at position {index}: ({lat}, {lng})")
