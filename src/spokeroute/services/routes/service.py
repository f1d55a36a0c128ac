"""Route optimization orchestration: propose a new stop order, commit on request."""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from ...models.domain import RouteDefinition, RouteRequest, Waypoint
from ...persistence.routes import RouteStore
from ..optimization.models import ExcludedStop, OptimizationComparison, RouteState
from ..optimization.tsp_solver import RouteOptimizer
from ..routing.service import RoutingClient

logger = logging.getLogger(__name__)

MISSING_COORDINATES = "Missing coordinates"


def _split_stops(route: RouteDefinition) -> tuple[list[Waypoint], list[ExcludedStop]]:
    usable: list[Waypoint] = []
    excluded: list[ExcludedStop] = []
    for stop in route.stops:
        if stop.has_coordinates:
            usable.append(stop.to_waypoint())
        else:
            excluded.append(ExcludedStop(id=stop.id, name=stop.name, reason=MISSING_COORDINATES))
    return usable, excluded


def _path_waypoints(route: RouteDefinition, order: list[str], stops: list[Waypoint]) -> list[tuple[float, float]]:
    by_id = {stop.id: stop for stop in stops}
    path = [route.start.as_lat_lng()]
    path.extend(by_id[stop_id].as_lat_lng() for stop_id in order)
    if route.round_trip:
        path.append(route.start.as_lat_lng())
    elif route.end is not None:
        path.append(route.end.as_lat_lng())
    return path


def propose_optimization(
    route: RouteDefinition,
    *,
    optimizer: RouteOptimizer | None = None,
    routing_client: RoutingClient | None = None,
    skip_routing: bool = False,
    profile: str | None = None,
) -> OptimizationComparison:
    """Compute a before/after comparison for ``route`` without changing anything.

    Stops lacking coordinates are left out and reported. Road geometry for the
    proposed order is best effort: when routing is unavailable the comparison
    still carries the straight-line ordering.
    """
    stops, excluded = _split_stops(route)
    if len(stops) < 2:
        raise ValueError("Need at least 2 stops with coordinates to optimize a route.")
    if excluded:
        logger.warning(f"Route {route.route_id}: {len(excluded)} stop(s) excluded for missing coordinates")

    optimizer = optimizer or RouteOptimizer()
    request = RouteRequest(start=route.start, stops=tuple(stops), end=route.end, round_trip=route.round_trip)
    result = optimizer.optimize(request)

    current_order = [stop.id for stop in stops]
    before = optimizer.route_stats(current_order, stops, route.start, route.end, route.round_trip)

    routing = None
    if not skip_routing:
        routing_client = routing_client or RoutingClient()
        routing = routing_client.route(
            _path_waypoints(route, result.optimized_order, stops), profile=profile
        )
        if routing is None:
            logger.info(f"Route {route.route_id}: no road geometry available, using straight-line estimate")

    return OptimizationComparison(
        route_id=route.route_id,
        before=RouteState(order=current_order, distance_miles=before.distance_miles, time_minutes=before.time_minutes),
        after=RouteState(
            order=list(result.optimized_order),
            distance_miles=result.total_distance_miles,
            time_minutes=result.estimated_time_minutes,
            distances_from_start=dict(result.distances_from_start),
        ),
        result=result,
        excluded_stops=excluded,
        routing=routing,
    )


def apply_optimization(
    route_id: str,
    optimized_order: Sequence[str],
    distances_from_start: Mapping[str, float],
    store: RouteStore,
) -> None:
    """Commit an accepted proposal through the route store."""
    if not optimized_order:
        raise ValueError("Optimized order is empty.")
    if len(set(optimized_order)) != len(optimized_order):
        raise ValueError("Optimized order contains duplicate stop ids.")
    logger.info(f"Applying route optimization to {route_id}")
    store.apply_order(route_id, list(optimized_order), dict(distances_from_start))
