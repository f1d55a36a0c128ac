"""Route optimization request/response schemas."""

from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .routing import CyclingProfile, RoutingResultModel


class WaypointModel(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: Optional[str] = None
    id: Optional[str] = None


class RouteStopModel(BaseModel):
    id: str
    name: str
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    address: Optional[str] = None


class RouteDefinitionModel(BaseModel):
    route_id: str
    name: str
    description: Optional[str] = None
    start: WaypointModel
    end: Optional[WaypointModel] = None
    round_trip: bool = True
    stops: List[RouteStopModel] = Field(..., min_length=1, description="Stops in their current sequence.")


class OptimizeRouteRequest(RouteDefinitionModel):
    skip_routing: bool = Field(default=False, description="Skip road geometry and use straight-line distances only.")
    profile: Optional[CyclingProfile] = None


class OptimizeStoredRouteRequest(BaseModel):
    skip_routing: bool = False
    profile: Optional[CyclingProfile] = None


class OptimizationResultModel(BaseModel):
    optimized_order: List[str]
    total_distance_miles: float
    original_distance_miles: float
    distance_savings_miles: float
    distance_savings_percent: float
    estimated_time_minutes: int
    distances_from_start: Dict[str, float]


class RouteStateModel(BaseModel):
    order: List[str]
    distance_miles: float
    time_minutes: int
    distances_from_start: Optional[Dict[str, float]] = None


class ExcludedStopModel(BaseModel):
    id: str
    name: str
    reason: str


class SavingsModel(BaseModel):
    distance_miles: float
    percent: float


class OptimizationComparisonResponse(BaseModel):
    route_id: str
    before: RouteStateModel
    after: RouteStateModel
    savings: SavingsModel
    result: OptimizationResultModel
    excluded_stops: List[ExcludedStopModel]
    routing: Optional[RoutingResultModel] = None


class RouteStatsRequest(BaseModel):
    order: List[str]
    stops: List[WaypointModel] = Field(..., description="Stops with ids; order entries refer to these ids.")
    start: WaypointModel
    end: Optional[WaypointModel] = None
    round_trip: bool = False


class RouteStatsResponse(BaseModel):
    distance_miles: float
    time_minutes: int


class ApplyOptimizationRequest(BaseModel):
    optimized_order: List[str] = Field(..., min_length=1)
    distances_from_start: Dict[str, float] = Field(default_factory=dict)


class ApplyOptimizationResponse(BaseModel):
    success: bool
    route_id: str
    stop_count: int


class ExportRouteRequest(RouteDefinitionModel):
    geometry: Optional[List[List[float]]] = Field(default=None, description="[lng, lat] LineString coordinates.")


ExportFormatParam = Literal["gpx", "csv", "json"]
