import json

import httpx
import pytest

from spokeroute.config import settings
from spokeroute.services.routing import ors_client as ors_module
from spokeroute.services.routing.ors_client import ORSClient, to_lng_lat
from spokeroute.services.routing.osrm_client import OSRMClient, check_health, format_coordinates
from spokeroute.services.routing.service import RoutingClient, estimate_cycling_time

WAYPOINTS = [(37.7749, -122.4194), (37.7849, -122.4094)]


def _ors_body(distance: float, duration: float) -> dict:
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "geometry": {"type": "LineString", "coordinates": [[-122.4194, 37.7749], [-122.4094, 37.7849]]},
                "properties": {"summary": {"distance": distance, "duration": duration}, "segments": [], "way_points": [0, 1]},
            }
        ],
    }


def _osrm_body(distance: float, duration: float) -> dict:
    return {
        "code": "Ok",
        "routes": [
            {
                "geometry": {"type": "LineString", "coordinates": [[-122.4194, 37.7749], [-122.4094, 37.7849]]},
                "distance": distance,
                "duration": duration,
                "legs": [],
            }
        ],
        "waypoints": [],
    }


class Recorder:
    """MockTransport handler that replays queued responses and records requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        # Fresh response per call; a single queued response may be served more than once.
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)

    @property
    def calls(self) -> int:
        return len(self.requests)


def _clients(ors_handler: Recorder, osrm_handler: Recorder, api_key: str = "test-key") -> RoutingClient:
    primary = ORSClient(api_key=api_key, backoff_seconds=0, transport=httpx.MockTransport(ors_handler))
    fallback = OSRMClient(transport=httpx.MockTransport(osrm_handler))
    return RoutingClient(primary=primary, fallback=fallback)


def test_to_lng_lat_swaps_axes():
    assert to_lng_lat([(10.0, 20.0), (-33.5, 151.2)]) == [[20.0, 10.0], [151.2, -33.5]]


def test_format_coordinates_puts_longitude_first():
    assert format_coordinates([(10.0, 20.0), (11.0, 21.0)]) == "20.0,10.0;21.0,11.0"


def test_primary_request_sends_lng_lat_body_and_key():
    ors = Recorder(httpx.Response(200, json=_ors_body(1019, 163)))
    osrm = Recorder(httpx.Response(500))
    client = _clients(ors, osrm)

    result = client.route(WAYPOINTS)

    assert result is not None
    request = ors.requests[0]
    assert request.method == "POST"
    assert request.url.path.endswith("/cycling-road/geojson")
    assert request.headers["Authorization"] == "test-key"
    body = json.loads(request.content)
    assert body["coordinates"] == [[-122.4194, 37.7749], [-122.4094, 37.7849]]
    assert osrm.calls == 0


def test_primary_result_converts_units():
    ors = Recorder(httpx.Response(200, json=_ors_body(1019, 163)))
    osrm = Recorder(httpx.Response(500))

    result = _clients(ors, osrm).route(WAYPOINTS)

    assert result.service == "primary"
    assert result.provider == "openrouteservice"
    assert result.distance_meters == 1019
    assert result.distance_miles == pytest.approx(0.63, abs=0.005)
    assert result.duration_seconds == 163
    assert result.duration_minutes == 3
    assert result.geometry.coordinate_order == "lng_lat"
    assert result.geometry.coordinates[0] == [-122.4194, 37.7749]
    assert result.waypoint_count == 2


def test_primary_rate_limited_once_then_succeeds(monkeypatch):
    sleeps = []
    monkeypatch.setattr(ors_module.time, "sleep", lambda seconds: sleeps.append(seconds))
    ors = Recorder(httpx.Response(429), httpx.Response(200, json=_ors_body(1019, 163)))
    osrm = Recorder(httpx.Response(500))

    result = _clients(ors, osrm).route(WAYPOINTS)

    assert result is not None
    assert result.service == "primary"
    assert ors.calls == 2
    assert len(sleeps) == 1
    assert osrm.calls == 0


def test_primary_rate_limited_twice_falls_back():
    ors = Recorder(httpx.Response(429))
    osrm = Recorder(httpx.Response(200, json=_osrm_body(24000, 5400)))

    result = _clients(ors, osrm).route(WAYPOINTS)

    assert ors.calls == 2
    assert osrm.calls == 1
    assert result.service == "fallback"


def test_primary_failure_falls_back_to_osrm():
    ors = Recorder(httpx.Response(500, json={"error": {"code": 2099, "message": "boom"}}))
    osrm = Recorder(httpx.Response(200, json=_osrm_body(24000, 5400)))

    result = _clients(ors, osrm).route(WAYPOINTS)

    assert ors.calls == 1
    assert result.service == "fallback"
    assert result.provider == "osrm"
    assert result.distance_miles == pytest.approx(14.9, abs=0.05)
    assert result.duration_minutes == 90


def test_fallback_request_uses_lng_lat_path():
    ors = Recorder(httpx.Response(500))
    osrm = Recorder(httpx.Response(200, json=_osrm_body(24000, 5400)))

    _clients(ors, osrm).route(WAYPOINTS)

    request = osrm.requests[0]
    assert request.method == "GET"
    assert request.url.path.endswith("/-122.4194,37.7749;-122.4094,37.7849")
    assert request.url.params["geometries"] == "geojson"
    assert request.url.params["overview"] == "full"


@pytest.mark.parametrize(
    "failure",
    [
        httpx.ReadTimeout("timed out"),
        httpx.ConnectError("dns failure"),
        httpx.Response(200, content=b"<html>not json</html>"),
        httpx.Response(200, json={"type": "FeatureCollection", "features": []}),
        httpx.Response(200, json={"features": [{"geometry": None, "properties": {}}]}),
    ],
)
def test_primary_errors_never_escape(failure):
    ors = Recorder(failure)
    osrm = Recorder(httpx.Response(200, json=_osrm_body(24000, 5400)))

    result = _clients(ors, osrm).route(WAYPOINTS)

    assert result is not None
    assert result.service == "fallback"


def test_both_providers_failing_returns_none():
    ors = Recorder(httpx.Response(503))
    osrm = Recorder(httpx.ConnectError("unreachable"))

    assert _clients(ors, osrm).route(WAYPOINTS) is None


def test_osrm_error_code_is_unavailable():
    ors = Recorder(httpx.Response(503))
    osrm = Recorder(httpx.Response(200, json={"code": "NoRoute", "routes": []}))

    assert _clients(ors, osrm).route(WAYPOINTS) is None


def test_missing_api_key_goes_straight_to_fallback():
    ors = Recorder(httpx.Response(200, json=_ors_body(1019, 163)))
    osrm = Recorder(httpx.Response(200, json=_osrm_body(24000, 5400)))

    result = _clients(ors, osrm, api_key="").route(WAYPOINTS)

    assert ors.calls == 0
    assert result.service == "fallback"


def test_prefer_primary_false_skips_primary():
    ors = Recorder(httpx.Response(200, json=_ors_body(1019, 163)))
    osrm = Recorder(httpx.Response(200, json=_osrm_body(24000, 5400)))

    result = _clients(ors, osrm).route(WAYPOINTS, prefer_primary=False)

    assert ors.calls == 0
    assert osrm.calls == 1
    assert result.service == "fallback"


@pytest.mark.parametrize(
    "waypoints",
    [
        [],
        [(37.7, -122.4)],
        [(37.7 + i * 0.001, -122.4) for i in range(51)],
        [(91.0, -122.4), (37.7, -122.4)],
        [(37.7, -181.0), (37.7, -122.4)],
        [(float("nan"), -122.4), (37.7, -122.4)],
    ],
)
def test_invalid_waypoints_make_no_network_call(waypoints):
    ors = Recorder(httpx.Response(200, json=_ors_body(1019, 163)))
    osrm = Recorder(httpx.Response(200, json=_osrm_body(24000, 5400)))

    assert _clients(ors, osrm).route(waypoints) is None
    assert ors.calls == 0
    assert osrm.calls == 0


def test_fifty_waypoints_is_allowed():
    ors = Recorder(httpx.Response(200, json=_ors_body(1019, 163)))
    osrm = Recorder(httpx.Response(500))

    result = _clients(ors, osrm).route([(37.7 + i * 0.001, -122.4) for i in range(50)])

    assert result is not None
    assert ors.calls == 1


def test_profile_is_forwarded_and_unknown_profile_rejected():
    ors = Recorder(httpx.Response(200, json=_ors_body(1019, 163)))
    osrm = Recorder(httpx.Response(500))
    client = _clients(ors, osrm)

    client.route(WAYPOINTS, profile="cycling-mountain")
    assert ors.requests[0].url.path.endswith("/cycling-mountain/geojson")

    assert client.route(WAYPOINTS, profile="driving-car") is None
    assert ors.calls == 1


def test_unknown_profile_is_ignored_when_primary_is_skipped():
    ors = Recorder(httpx.Response(200, json=_ors_body(1019, 163)))
    osrm = Recorder(httpx.Response(200, json=_osrm_body(24000, 5400)))

    result = _clients(ors, osrm).route(WAYPOINTS, profile="driving-car", prefer_primary=False)

    assert result is not None
    assert result.service == "fallback"
    assert ors.calls == 0
    assert osrm.calls == 1


def test_unknown_profile_is_ignored_without_api_key():
    ors = Recorder(httpx.Response(200, json=_ors_body(1019, 163)))
    osrm = Recorder(httpx.Response(200, json=_osrm_body(24000, 5400)))

    result = _clients(ors, osrm, api_key="").route(WAYPOINTS, profile="driving-car")

    assert result.service == "fallback"
    assert ors.calls == 0


def test_check_health():
    ok = httpx.MockTransport(lambda request: httpx.Response(200, json={"code": "Ok", "routes": []}))
    down = httpx.MockTransport(lambda request: httpx.Response(502))

    assert check_health(base_url="http://osrm.test/route/v1/bike", transport=ok) is True
    assert check_health(base_url="http://osrm.test/route/v1/bike", transport=down) is False


def test_check_health_uses_configured_timeouts():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.extensions["timeout"])
        return httpx.Response(200, json={"code": "Ok", "routes": []})

    assert check_health(base_url="http://osrm.test/route/v1/bike", transport=httpx.MockTransport(handler)) is True
    assert seen[0]["connect"] == settings.routing_connect_timeout_seconds
    assert seen[0]["read"] == settings.routing_timeout_seconds


def test_estimate_cycling_time():
    assert estimate_cycling_time(12.0) == 60
    assert estimate_cycling_time(3.0) == 15


def test_get_bicycle_route_uses_default_client(monkeypatch):
    from spokeroute.services.routing import service as routing_service

    calls = []

    class DummyClient:
        def route(self, waypoints, *, profile=None, prefer_primary=True):
            calls.append((waypoints, profile, prefer_primary))
            return None

    monkeypatch.setattr(routing_service, "RoutingClient", DummyClient)

    assert routing_service.get_bicycle_route(WAYPOINTS, prefer_primary=False) is None
    assert calls == [(WAYPOINTS, None, False)]
