"""Route ordering models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..routing.models import RoutingResult


@dataclass(slots=True)
class MatrixPoint:
    id: str
    lat: float
    lng: float
    is_start: bool = False
    is_end: bool = False


@dataclass(slots=True)
class DistanceMatrix:
    points: List[MatrixPoint]
    distances: List[List[float]]  # [i][j] = miles from point i to point j

    def __len__(self) -> int:
        return len(self.points)


@dataclass(slots=True)
class OptimizationResult:
    optimized_order: List[str]
    total_distance_miles: float
    original_distance_miles: float
    distance_savings_miles: float
    distance_savings_percent: float
    estimated_time_minutes: int
    distances_from_start: Dict[str, float] = field(default_factory=dict)


@dataclass(slots=True)
class RouteStats:
    distance_miles: float
    time_minutes: int


@dataclass(slots=True)
class ExcludedStop:
    id: str
    name: str
    reason: str


@dataclass(slots=True)
class RouteState:
    order: List[str]
    distance_miles: float
    time_minutes: int
    distances_from_start: Optional[Dict[str, float]] = None


@dataclass(slots=True)
class OptimizationComparison:
    """Before/after proposal handed back to the caller for accept or discard."""

    route_id: str
    before: RouteState
    after: RouteState
    result: OptimizationResult
    excluded_stops: List[ExcludedStop] = field(default_factory=list)
    routing: Optional[RoutingResult] = None
