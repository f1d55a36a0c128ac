import pytest

from spokeroute.models.domain import RouteDefinition, RouteStopInput, Waypoint
from spokeroute.services.routes import service as routes_service
from spokeroute.services.routes.service import MISSING_COORDINATES, apply_optimization, propose_optimization
from spokeroute.services.routing.models import RouteGeometry, RoutingResult


def _route(round_trip: bool = True, end: Waypoint | None = None) -> RouteDefinition:
    return RouteDefinition(
        route_id="route-1",
        name="Tuesday Loop",
        start=Waypoint(latitude=0.0, longitude=0.0, address="Shop"),
        end=end,
        round_trip=round_trip,
        stops=[
            RouteStopInput(id="a", name="Alpha", latitude=1.0, longitude=1.0),
            RouteStopInput(id="ghost", name="Not geocoded", address="Somewhere"),
            RouteStopInput(id="b", name="Bravo", latitude=0.0, longitude=1.0),
            RouteStopInput(id="c", name="Charlie", latitude=1.0, longitude=0.0),
        ],
    )


def _routing_result(waypoint_count: int) -> RoutingResult:
    return RoutingResult(
        geometry=RouteGeometry(coordinates=[[0.0, 0.0], [1.0, 0.0]]),
        distance_meters=500000.0,
        distance_miles=310.7,
        duration_seconds=90000.0,
        duration_minutes=1500,
        service="fallback",
        provider="osrm",
        waypoint_count=waypoint_count,
    )


class DummyRoutingClient:
    def __init__(self, result_factory=_routing_result):
        self.calls = []
        self.result_factory = result_factory

    def route(self, waypoints, *, profile=None, prefer_primary=True):
        self.calls.append((list(waypoints), profile))
        return self.result_factory(len(waypoints)) if self.result_factory else None


class DummyStore:
    def __init__(self):
        self.applied = []

    def get_route(self, route_id):
        return None

    def apply_order(self, route_id, ordered_ids, distances_from_start):
        self.applied.append((route_id, list(ordered_ids), dict(distances_from_start)))


def test_propose_excludes_stops_without_coordinates():
    client = DummyRoutingClient()

    comparison = propose_optimization(_route(), routing_client=client)

    assert [stop.id for stop in comparison.excluded_stops] == ["ghost"]
    assert comparison.excluded_stops[0].reason == MISSING_COORDINATES
    assert comparison.before.order == ["a", "b", "c"]
    assert sorted(comparison.after.order) == ["a", "b", "c"]
    assert "ghost" not in comparison.after.distances_from_start


def test_propose_reports_before_and_after():
    comparison = propose_optimization(_route(), routing_client=DummyRoutingClient())

    assert comparison.route_id == "route-1"
    assert comparison.after.order == ["b", "a", "c"]
    assert comparison.after.distance_miles < comparison.before.distance_miles
    assert comparison.before.distance_miles == pytest.approx(comparison.result.original_distance_miles)
    assert comparison.result.distance_savings_miles > 0


def test_propose_requests_geometry_for_closed_loop():
    client = DummyRoutingClient()

    comparison = propose_optimization(_route(), routing_client=client, profile="cycling-regular")

    waypoints, profile = client.calls[0]
    assert profile == "cycling-regular"
    assert waypoints[0] == (0.0, 0.0)
    assert waypoints[-1] == (0.0, 0.0)
    assert len(waypoints) == 5
    assert comparison.routing is not None
    assert comparison.routing.waypoint_count == 5


def test_propose_ends_geometry_at_pinned_end():
    client = DummyRoutingClient()
    end = Waypoint(latitude=2.0, longitude=2.0)

    propose_optimization(_route(round_trip=False, end=end), routing_client=client)

    waypoints, _ = client.calls[0]
    assert waypoints[-1] == (2.0, 2.0)
    assert len(waypoints) == 5


def test_propose_without_geometry_keeps_ordering():
    comparison = propose_optimization(_route(), routing_client=DummyRoutingClient(result_factory=None))

    assert comparison.routing is None
    assert comparison.after.order == ["b", "a", "c"]


def test_skip_routing_never_builds_a_client(monkeypatch):
    def _fail():
        raise AssertionError("routing client should not be created")

    monkeypatch.setattr(routes_service, "RoutingClient", _fail)

    comparison = propose_optimization(_route(), skip_routing=True)

    assert comparison.routing is None


def test_default_routing_client_is_created(monkeypatch):
    client = DummyRoutingClient()
    monkeypatch.setattr(routes_service, "RoutingClient", lambda: client)

    propose_optimization(_route())

    assert len(client.calls) == 1


def test_propose_needs_two_usable_stops():
    route = RouteDefinition(
        route_id="tiny",
        name="Tiny",
        start=Waypoint(latitude=0.0, longitude=0.0),
        stops=[
            RouteStopInput(id="a", name="Alpha", latitude=1.0, longitude=1.0),
            RouteStopInput(id="ghost", name="Ghost"),
        ],
    )

    with pytest.raises(ValueError):
        propose_optimization(route, skip_routing=True)


def test_apply_writes_through_store():
    store = DummyStore()

    apply_optimization("route-1", ["b", "a", "c"], {"b": 69.1, "a": 138.2, "c": 207.3}, store)

    assert store.applied == [("route-1", ["b", "a", "c"], {"b": 69.1, "a": 138.2, "c": 207.3})]


@pytest.mark.parametrize("order", [[], ["a", "a"]])
def test_apply_rejects_bad_order(order):
    store = DummyStore()

    with pytest.raises(ValueError):
        apply_optimization("route-1", order, {}, store)
    assert store.applied == []
