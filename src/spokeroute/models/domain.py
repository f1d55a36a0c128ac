"""Domain models for route waypoints and stop lists."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from ..services.geospatial import InvalidCoordinatesError, RouteValidationError, is_valid_coordinate


@dataclass(frozen=True, slots=True)
class Waypoint:
    """A geographic point, optionally labelled with a stop id and address."""

    latitude: float
    longitude: float
    address: Optional[str] = None
    id: Optional[str] = None

    def as_lat_lng(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)

    def is_valid(self) -> bool:
        return is_valid_coordinate(self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class RouteRequest:
    """Stops to order between a fixed start and an optional fixed end."""

    start: Waypoint
    stops: tuple[Waypoint, ...]
    end: Optional[Waypoint] = None
    round_trip: bool = False

    @property
    def effective_end(self) -> Optional[Waypoint]:
        if self.round_trip:
            return self.start
        return self.end

    def validate(self) -> None:
        if not self.stops:
            raise RouteValidationError("Route request needs at least one stop besides start/end.")
        named = [("start", self.start), *((f"stop {i}", stop) for i, stop in enumerate(self.stops))]
        if self.end is not None:
            named.append(("end", self.end))
        for label, waypoint in named:
            if not waypoint.is_valid():
                raise InvalidCoordinatesError(
                    f"Invalid {label} coordinate: ({waypoint.latitude}, {waypoint.longitude})"
                )


@dataclass(slots=True)
class RouteStopInput:
    """A stored route stop as the route-storage collaborator hands it over.

    Coordinates may be missing for companies that were never geocoded.
    """

    id: str
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_waypoint(self) -> Waypoint:
        if not self.has_coordinates:
            raise InvalidCoordinatesError(f"Stop {self.id} has no coordinates.")
        return Waypoint(latitude=self.latitude, longitude=self.longitude, address=self.address, id=self.id)


@dataclass(slots=True)
class RouteDefinition:
    """A saved route: its endpoints and stops in their current sequence."""

    route_id: str
    name: str
    start: Waypoint
    stops: list[RouteStopInput] = field(default_factory=list)
    end: Optional[Waypoint] = None
    round_trip: bool = True
    description: Optional[str] = None
