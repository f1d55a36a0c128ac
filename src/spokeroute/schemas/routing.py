"""Bicycle routing request/response schemas."""

from __future__ import annotations

from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

CyclingProfile = Literal["cycling-regular", "cycling-road", "cycling-mountain", "cycling-electric"]


class RouteGeometryModel(BaseModel):
    type: str = "LineString"
    coordinates: List[List[float]]
    coordinate_order: str = Field(default="lng_lat", description="Axis order of each coordinate pair.")


class RoutingResultModel(BaseModel):
    geometry: RouteGeometryModel
    distance_meters: float
    distance_miles: float
    duration_seconds: float
    duration_minutes: int
    service: Literal["primary", "fallback"]
    provider: str
    waypoint_count: int


class BicycleRouteRequest(BaseModel):
    # Bounds are checked by the routing client so bad input yields available=False, not a 422.
    waypoints: List[Tuple[float, float]] = Field(..., description="[latitude, longitude] pairs in visit order.")
    profile: Optional[CyclingProfile] = None
    prefer_primary: bool = Field(default=True, description="Set False to skip the paid provider.")


class BicycleRouteResponse(BaseModel):
    available: bool
    route: Optional[RoutingResultModel] = None
