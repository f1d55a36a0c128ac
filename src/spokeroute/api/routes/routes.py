"""Route optimization endpoints."""

from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, HTTPException, Query, Response, status

from ...models.domain import RouteDefinition, RouteStopInput, Waypoint
from ...persistence.routes import RouteStoreError, get_route_store
from ...schemas.routes import (
    ApplyOptimizationRequest,
    ApplyOptimizationResponse,
    ExportFormatParam,
    ExportRouteRequest,
    OptimizationComparisonResponse,
    OptimizeRouteRequest,
    OptimizeStoredRouteRequest,
    RouteDefinitionModel,
    RouteStatsRequest,
    RouteStatsResponse,
    WaypointModel,
)
from ...services.export import export_route
from ...services.optimization.models import OptimizationComparison
from ...services.optimization.tsp_solver import RouteOptimizer
from ...services.routing.models import RouteGeometry
from ...services.routes.service import apply_optimization, propose_optimization

router = APIRouter(prefix="/routes", tags=["routes"])

logger = logging.getLogger(__name__)


def _waypoint(model: WaypointModel | None) -> Waypoint | None:
    if model is None:
        return None
    return Waypoint(latitude=model.latitude, longitude=model.longitude, address=model.address, id=model.id)


def _definition(payload: RouteDefinitionModel) -> RouteDefinition:
    return RouteDefinition(
        route_id=payload.route_id,
        name=payload.name,
        description=payload.description,
        start=_waypoint(payload.start),
        end=_waypoint(payload.end),
        round_trip=payload.round_trip,
        stops=[
            RouteStopInput(
                id=stop.id,
                name=stop.name,
                latitude=stop.latitude,
                longitude=stop.longitude,
                address=stop.address,
            )
            for stop in payload.stops
        ],
    )


def _comparison_response(comparison: OptimizationComparison) -> OptimizationComparisonResponse:
    payload = asdict(comparison)
    payload["savings"] = {
        "distance_miles": comparison.result.distance_savings_miles,
        "percent": comparison.result.distance_savings_percent,
    }
    return OptimizationComparisonResponse.model_validate(payload)


def _propose(route: RouteDefinition, skip_routing: bool, profile: str | None) -> OptimizationComparisonResponse:
    try:
        comparison = propose_optimization(route, skip_routing=skip_routing, profile=profile)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error optimizing route {route.route_id}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to optimize route: {str(exc)}",
        ) from exc
    return _comparison_response(comparison)


@router.post("/optimize", response_model=OptimizationComparisonResponse, status_code=status.HTTP_200_OK)
def optimize(payload: OptimizeRouteRequest) -> OptimizationComparisonResponse:
    """Propose a shorter stop order for the supplied route. Nothing is persisted."""
    return _propose(_definition(payload), payload.skip_routing, payload.profile)


@router.post("/stats", response_model=RouteStatsResponse, status_code=status.HTTP_200_OK)
def route_stats(payload: RouteStatsRequest) -> RouteStatsResponse:
    try:
        stats = RouteOptimizer().route_stats(
            payload.order,
            [_waypoint(stop) for stop in payload.stops],
            _waypoint(payload.start),
            _waypoint(payload.end),
            payload.round_trip,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return RouteStatsResponse(distance_miles=stats.distance_miles, time_minutes=stats.time_minutes)


@router.post("/export")
def export(
    payload: ExportRouteRequest,
    fmt: ExportFormatParam = Query(default="gpx", alias="format", description="Export file format"),
) -> Response:
    geometry = RouteGeometry(coordinates=payload.geometry) if payload.geometry else None
    result = export_route(_definition(payload), fmt, geometry)
    return Response(
        content=result.content,
        media_type=result.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )


@router.post("/{route_id}/optimize", response_model=OptimizationComparisonResponse, status_code=status.HTTP_200_OK)
def optimize_stored(route_id: str, payload: OptimizeStoredRouteRequest | None = None) -> OptimizationComparisonResponse:
    """Load a saved route from the route store and propose a new order."""
    payload = payload or OptimizeStoredRouteRequest()
    store = get_route_store()
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Route store not configured. Set SPOKEROUTE_SUPABASE_URL and SPOKEROUTE_SUPABASE_KEY.",
        )
    try:
        route = store.get_route(route_id)
    except RouteStoreError as exc:
        logger.error(f"Failed to load route {route_id}: {exc}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    if route is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Route {route_id} not found")
    return _propose(route, payload.skip_routing, payload.profile)


@router.post("/{route_id}/apply", response_model=ApplyOptimizationResponse, status_code=status.HTTP_200_OK)
def apply(route_id: str, payload: ApplyOptimizationRequest) -> ApplyOptimizationResponse:
    """Persist an accepted stop order."""
    store = get_route_store()
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Route store not configured. Set SPOKEROUTE_SUPABASE_URL and SPOKEROUTE_SUPABASE_KEY.",
        )
    try:
        apply_optimization(route_id, payload.optimized_order, payload.distances_from_start, store)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RouteStoreError as exc:
        logger.error(f"Failed to apply optimization to route {route_id}: {exc}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return ApplyOptimizationResponse(success=True, route_id=route_id, stop_count=len(payload.optimized_order))
