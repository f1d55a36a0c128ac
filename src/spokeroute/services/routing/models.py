"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal

from ..geospatial import meters_to_miles, seconds_to_minutes

RoutingService = Literal["primary", "fallback"]


@dataclass(slots=True)
class RouteGeometry:
    """GeoJSON LineString exactly as the provider returned it.

    Providers speak GeoJSON, so ``coordinates`` are ``[lng, lat]`` pairs;
    ``coordinate_order`` records that so map layers never have to guess.
    """

    coordinates: List[List[float]]
    type: str = "LineString"
    coordinate_order: str = "lng_lat"

    def to_lat_lng(self) -> list[tuple[float, float]]:
        return [(point[1], point[0]) for point in self.coordinates]


@dataclass(slots=True)
class ProviderRoute:
    """Geometry plus raw metric distance/duration from a single provider."""

    geometry: RouteGeometry
    distance_meters: float
    duration_seconds: float


@dataclass(slots=True)
class RoutingResult:
    geometry: RouteGeometry
    distance_meters: float
    distance_miles: float
    duration_seconds: float
    duration_minutes: int
    service: RoutingService
    provider: str
    waypoint_count: int = field(default=0)

    @classmethod
    def from_provider(
        cls, route: ProviderRoute, *, service: RoutingService, provider: str, waypoint_count: int
    ) -> "RoutingResult":
        return cls(
            geometry=route.geometry,
            distance_meters=route.distance_meters,
            distance_miles=meters_to_miles(route.distance_meters),
            duration_seconds=route.duration_seconds,
            duration_minutes=seconds_to_minutes(route.duration_seconds),
            service=service,
            provider=provider,
            waypoint_count=waypoint_count,
        )


def parse_linestring(payload: object) -> RouteGeometry:
    """Build a RouteGeometry from a GeoJSON LineString dict; raise ValueError otherwise."""

    if not isinstance(payload, dict) or payload.get("type") != "LineString":
        raise ValueError("Route geometry is not a GeoJSON LineString.")
    coordinates = payload.get("coordinates")
    if not isinstance(coordinates, list) or len(coordinates) < 2:
        raise ValueError("Route geometry has fewer than two coordinates.")
    return RouteGeometry(coordinates=[[float(point[0]), float(point[1])] for point in coordinates])
