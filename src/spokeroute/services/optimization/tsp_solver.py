"""Stop ordering for bicycle routes: nearest neighbour construction plus local search.

Routes hold tens of stops, so an exact solver is unnecessary. The tour is
built greedily from the fixed start point and then refined with 2-opt
segment reversals and Or-opt stop relocations until neither shortens it.
The start point, and a pinned end point on one-way routes, never move.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from ...config import settings
from ...models.domain import RouteRequest, Waypoint
from ..geospatial import InvalidCoordinatesError, RouteValidationError, haversine_miles
from .models import DistanceMatrix, MatrixPoint, OptimizationResult, RouteStats

DistanceMetric = Callable[[float, float, float, float], float]

# Improvements smaller than this are floating point noise.
IMPROVEMENT_EPSILON = 1e-9

START_ID = "__start__"
END_ID = "__end__"

logger = logging.getLogger(__name__)


def build_distance_matrix(points: Sequence[MatrixPoint], metric: DistanceMetric = haversine_miles) -> DistanceMatrix:
    """Symmetric N x N matrix where distances[i][j] is the metric from point i to point j."""

    n = len(points)
    distances = [[0.0] * n for _ in range(n)]
    for i in range(n):
        for j in range(i + 1, n):
            dist = metric(points[i].lat, points[i].lng, points[j].lat, points[j].lng)
            distances[i][j] = dist
            distances[j][i] = dist
    return DistanceMatrix(points=list(points), distances=distances)


def tour_distance(tour: Sequence[int], matrix: DistanceMatrix, closed: bool = False) -> float:
    total = 0.0
    for i in range(len(tour) - 1):
        total += matrix.distances[tour[i]][tour[i + 1]]
    if closed and len(tour) > 1:
        total += matrix.distances[tour[-1]][tour[0]]
    return total


def nearest_neighbor(matrix: DistanceMatrix, stop_indices: Sequence[int], end_index: int | None = None) -> list[int]:
    """Greedy tour from index 0 over ``stop_indices``.

    Ties go to the stop listed first in ``stop_indices``, so passing the stops
    in input order breaks ties by input position.
    """

    tour = [0]
    remaining = list(stop_indices)
    current = 0
    while remaining:
        nearest = remaining[0]
        nearest_dist = matrix.distances[current][nearest]
        for candidate in remaining[1:]:
            dist = matrix.distances[current][candidate]
            if dist < nearest_dist:
                nearest, nearest_dist = candidate, dist
        tour.append(nearest)
        remaining.remove(nearest)
        current = nearest
    if end_index is not None:
        tour.append(end_index)
    return tour


def two_opt(
    tour: Sequence[int],
    matrix: DistanceMatrix,
    *,
    closed: bool = False,
    pinned_end: bool = False,
    max_iterations: int = 1000,
) -> list[int]:
    """Reverse tour segments while doing so shortens the tour.

    Index 0 is the fixed start. With ``pinned_end`` the last element is fixed
    too. ``closed`` adds the edge from the last element back to the start.
    """

    current = list(tour)
    n = len(current)
    last_free = n - 2 if pinned_end else n - 1
    if last_free - 1 < 1:
        return current

    d = matrix.distances
    iterations = 0
    improved = True
    while improved and iterations < max_iterations:
        improved = False
        iterations += 1
        for i in range(1, last_free):
            for j in range(i + 1, last_free + 1):
                a, b, c = current[i - 1], current[i], current[j]
                if j + 1 < n:
                    nxt = current[j + 1]
                elif closed:
                    nxt = current[0]
                else:
                    nxt = None
                delta = d[a][c] - d[a][b]
                if nxt is not None:
                    delta += d[b][nxt] - d[c][nxt]
                if delta < -IMPROVEMENT_EPSILON:
                    current[i : j + 1] = reversed(current[i : j + 1])
                    improved = True
    if improved:
        logger.warning(f"2-opt stopped at the iteration cap ({max_iterations}) before converging")
    return current


def _link(d: list[list[float]], a: int, b: int | None) -> float:
    return 0.0 if b is None else d[a][b]


def _or_opt_move(
    current: list[int], d: list[list[float]], closed: bool, pinned_end: bool, max_segment: int
) -> list[int] | None:
    """First relocation of a run of up to ``max_segment`` stops that shortens the tour."""

    n = len(current)
    last_free = n - 2 if pinned_end else n - 1
    for k in range(1, max_segment + 1):
        for i in range(1, last_free - k + 2):
            segment = current[i : i + k]
            prev = current[i - 1]
            if i + k < n:
                nxt = current[i + k]
            elif closed:
                nxt = current[0]
            else:
                nxt = None
            removal_gain = d[prev][segment[0]] + _link(d, segment[-1], nxt) - _link(d, prev, nxt)

            rest = current[:i] + current[i + k :]
            last_slot = len(rest) - 1 if pinned_end else len(rest)
            for p in range(1, last_slot + 1):
                a = rest[p - 1]
                if p < len(rest):
                    b = rest[p]
                elif closed:
                    b = rest[0]
                else:
                    b = None
                base = _link(d, a, b)
                options = [(d[a][segment[-1]] + _link(d, segment[0], b) - base, segment[::-1])]
                if p != i:
                    options.insert(0, (d[a][segment[0]] + _link(d, segment[-1], b) - base, segment))
                for insertion_cost, placed in options:
                    if k == 1 and p == i:
                        continue
                    if insertion_cost - removal_gain < -IMPROVEMENT_EPSILON:
                        return rest[:p] + placed + rest[p:]
    return None


def or_opt(
    tour: Sequence[int],
    matrix: DistanceMatrix,
    *,
    closed: bool = False,
    pinned_end: bool = False,
    max_iterations: int = 1000,
    max_segment: int = 3,
) -> list[int]:
    """Move single stops or short runs of stops to a cheaper place in the tour.

    Catches the improvements 2-opt misses, such as a stop stranded between two
    far-apart neighbours. Runs may be reinserted reversed. Fixed positions
    follow ``two_opt``.
    """

    current = list(tour)
    n = len(current)
    last_free = n - 2 if pinned_end else n - 1
    if last_free < 2:
        return current

    for _ in range(max_iterations):
        moved = _or_opt_move(current, matrix.distances, closed, pinned_end, max_segment)
        if moved is None:
            return current
        current = moved
    logger.warning(f"Or-opt stopped at the iteration cap ({max_iterations}) before converging")
    return current


def _stop_ids(stops: Sequence[Waypoint]) -> list[str]:
    ids = [stop.id if stop.id is not None else str(index) for index, stop in enumerate(stops)]
    if len(set(ids)) != len(ids):
        raise RouteValidationError("Stop identifiers must be unique.")
    return ids


def _validate(request: RouteRequest, max_stops: int) -> None:
    if len(request.stops) > max_stops:
        raise RouteValidationError(f"Too many stops to optimize: {len(request.stops)} > {max_stops}.")
    if request.stops:
        request.validate()
        return
    # No stops is a no-op, but the endpoints must still be real coordinates.
    endpoints = [("start", request.start)] + ([("end", request.end)] if request.end is not None else [])
    for label, waypoint in endpoints:
        if not waypoint.is_valid():
            raise InvalidCoordinatesError(f"Invalid {label} coordinate: ({waypoint.latitude}, {waypoint.longitude})")


def _minutes(distance_miles: float, speed_mph: float) -> int:
    return int(round(distance_miles / speed_mph * 60))


class RouteOptimizer:
    """Orders stops between a fixed start and optional fixed end to cut travel distance."""

    def __init__(
        self,
        metric: DistanceMetric = haversine_miles,
        max_iterations: int | None = None,
        speed_mph: float | None = None,
        max_stops: int | None = None,
    ) -> None:
        self.metric = metric
        self.max_iterations = max_iterations or settings.two_opt_max_iterations
        self.speed_mph = speed_mph or settings.avg_cycling_speed_mph
        self.max_stops = max_stops or settings.max_route_stops

    def optimize(self, request: RouteRequest) -> OptimizationResult:
        _validate(request, self.max_stops)
        ids = _stop_ids(request.stops)
        end = request.effective_end

        if not request.stops:
            return OptimizationResult(
                optimized_order=[],
                total_distance_miles=0.0,
                original_distance_miles=0.0,
                distance_savings_miles=0.0,
                distance_savings_percent=0.0,
                estimated_time_minutes=0,
                distances_from_start={},
            )

        if len(request.stops) == 1:
            stop = request.stops[0]
            to_stop = self.metric(request.start.latitude, request.start.longitude, stop.latitude, stop.longitude)
            from_stop = self.metric(stop.latitude, stop.longitude, end.latitude, end.longitude) if end is not None else 0.0
            total = to_stop + from_stop
            return OptimizationResult(
                optimized_order=[ids[0]],
                total_distance_miles=total,
                original_distance_miles=total,
                distance_savings_miles=0.0,
                distance_savings_percent=0.0,
                estimated_time_minutes=_minutes(total, self.speed_mph),
                distances_from_start={ids[0]: to_stop},
            )

        if len(request.stops) > settings.slow_optimization_warning_threshold:
            logger.warning(f"Optimizing {len(request.stops)} stops; this may be slow")

        points = [MatrixPoint(id=START_ID, lat=request.start.latitude, lng=request.start.longitude, is_start=True)]
        points.extend(
            MatrixPoint(id=stop_id, lat=stop.latitude, lng=stop.longitude) for stop_id, stop in zip(ids, request.stops)
        )
        pinned_end = not request.round_trip and request.end is not None
        end_index = None
        if pinned_end:
            end_index = len(points)
            points.append(MatrixPoint(id=END_ID, lat=request.end.latitude, lng=request.end.longitude, is_end=True))

        matrix = build_distance_matrix(points, self.metric)
        closed = request.round_trip
        stop_indices = list(range(1, len(request.stops) + 1))

        original_tour = [0, *stop_indices] + ([end_index] if pinned_end else [])
        original_distance = tour_distance(original_tour, matrix, closed=closed)

        # Restart from the best tour so far until a round finds nothing strictly
        # shorter. The result is then stable when fed back in as the input order.
        optimized_tour, optimized_distance = original_tour, original_distance
        for _ in range(self.max_iterations):
            stops_in_order = [idx for idx in optimized_tour if idx != 0 and idx != end_index]
            candidates = [
                self._local_search(nearest_neighbor(matrix, stops_in_order, end_index), matrix, closed, pinned_end),
                self._local_search(optimized_tour, matrix, closed, pinned_end),
            ]
            best = min(candidates, key=lambda tour: tour_distance(tour, matrix, closed=closed))
            best_distance = tour_distance(best, matrix, closed=closed)
            if best_distance >= optimized_distance - IMPROVEMENT_EPSILON:
                break
            optimized_tour, optimized_distance = best, best_distance

        distances_from_start: dict[str, float] = {}
        cumulative = 0.0
        for prev_idx, curr_idx in zip(optimized_tour, optimized_tour[1:]):
            cumulative += matrix.distances[prev_idx][curr_idx]
            point = points[curr_idx]
            if not point.is_start and not point.is_end:
                distances_from_start[point.id] = cumulative

        optimized_order = [points[idx].id for idx in optimized_tour if not points[idx].is_start and not points[idx].is_end]
        savings = max(0.0, original_distance - optimized_distance)
        percent = (savings / original_distance) * 100 if original_distance > 0 else 0.0

        logger.info(
            f"Optimized {len(optimized_order)} stops: {original_distance:.2f} mi -> {optimized_distance:.2f} mi"
        )
        return OptimizationResult(
            optimized_order=optimized_order,
            total_distance_miles=optimized_distance,
            original_distance_miles=original_distance,
            distance_savings_miles=savings,
            distance_savings_percent=percent,
            estimated_time_minutes=_minutes(optimized_distance, self.speed_mph),
            distances_from_start=distances_from_start,
        )

    def _local_search(self, tour: Sequence[int], matrix: DistanceMatrix, closed: bool, pinned_end: bool) -> list[int]:
        """Alternate 2-opt and Or-opt until neither shortens the tour."""

        best = two_opt(tour, matrix, closed=closed, pinned_end=pinned_end, max_iterations=self.max_iterations)
        best_distance = tour_distance(best, matrix, closed=closed)
        for _ in range(self.max_iterations):
            candidate = or_opt(best, matrix, closed=closed, pinned_end=pinned_end, max_iterations=self.max_iterations)
            candidate = two_opt(
                candidate, matrix, closed=closed, pinned_end=pinned_end, max_iterations=self.max_iterations
            )
            candidate_distance = tour_distance(candidate, matrix, closed=closed)
            if candidate_distance >= best_distance - IMPROVEMENT_EPSILON:
                break
            best, best_distance = candidate, candidate_distance
        return best

    def route_stats(
        self,
        order: Sequence[str],
        stops: Sequence[Waypoint],
        start: Waypoint,
        end: Waypoint | None = None,
        round_trip: bool = False,
    ) -> RouteStats:
        """Distance and riding time of ``order``; ids missing from ``stops`` are skipped."""

        if not order:
            return RouteStats(distance_miles=0.0, time_minutes=0)

        by_id = {stop_id: stop for stop_id, stop in zip(_stop_ids(stops), stops)}
        total = 0.0
        prev_lat, prev_lng = start.latitude, start.longitude
        for stop_id in order:
            stop = by_id.get(stop_id)
            if stop is None:
                continue
            total += self.metric(prev_lat, prev_lng, stop.latitude, stop.longitude)
            prev_lat, prev_lng = stop.latitude, stop.longitude

        finish = start if round_trip else end
        if finish is not None:
            total += self.metric(prev_lat, prev_lng, finish.latitude, finish.longitude)

        return RouteStats(distance_miles=total, time_minutes=_minutes(total, self.speed_mph))


def solve_route_optimization(request: RouteRequest, metric: DistanceMetric = haversine_miles) -> OptimizationResult:
    return RouteOptimizer(metric=metric).optimize(request)


def calculate_route_stats(
    order: Sequence[str],
    stops: Sequence[Waypoint],
    start: Waypoint,
    end: Waypoint | None = None,
    round_trip: bool = False,
) -> RouteStats:
    return RouteOptimizer().route_stats(order, stops, start, end, round_trip)
