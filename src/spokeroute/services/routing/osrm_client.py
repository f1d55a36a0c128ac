"""HTTP client for the free OSRM bicycle routing server (fallback provider)."""

from __future__ import annotations

import logging
from typing import Sequence

import httpx

from ...config import settings
from .models import ProviderRoute, parse_linestring

PROVIDER_NAME = "osrm"

logger = logging.getLogger(__name__)


def format_coordinates(coordinates: Sequence[tuple[float, float]]) -> str:
    """Turn (lat, lon) pairs into OSRM's ``lon,lat;lon,lat`` path segment."""
    return ";".join(f"{lon},{lat}" for lat, lon in coordinates)


class OSRMClient:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        connect_timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.osrm_bike_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.routing_timeout_seconds
        self.connect_timeout = (
            connect_timeout if connect_timeout is not None else settings.routing_connect_timeout_seconds
        )
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
            transport=self._transport,
            headers={"Accept": "application/json"},
        )

    def route(self, coordinates: Sequence[tuple[float, float]]) -> ProviderRoute | None:
        """Get a bicycle route through (lat, lon) waypoints in visit order.

        Returns None when the server is unreachable, answers with an error
        status, or sends a body without a usable route.
        """
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM route.")

        url = f"{self.base_url}/{format_coordinates(coordinates)}"
        params = {
            "overview": "full",
            "geometries": "geojson",
            "steps": "false",
        }
        logger.info(f"Fetching bicycle route from OSRM ({len(coordinates)} waypoints)")

        client = self._get_client()
        try:
            response = client.get(url, params=params)
            if response.status_code != httpx.codes.OK:
                logger.error(f"OSRM request failed with status {response.status_code}")
                return None
            data = response.json()
            if data.get("code") != "Ok" or not data.get("routes"):
                logger.warning(f"OSRM returned no routes (code={data.get('code')})")
                return None
            route = data["routes"][0]
            return ProviderRoute(
                geometry=parse_linestring(route.get("geometry")),
                distance_meters=float(route["distance"]),
                duration_seconds=float(route["duration"]),
            )
        except httpx.TimeoutException as exc:
            logger.error(f"OSRM request timed out after {self.timeout}s: {exc}")
            return None
        except httpx.HTTPError as exc:
            logger.error(f"Failed to reach OSRM at {self.base_url}: {exc}")
            return None
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error(f"Malformed OSRM response: {exc}")
            return None
        finally:
            client.close()


def check_health(base_url: str | None = None, transport: httpx.BaseTransport | None = None) -> bool:
    """Check the OSRM bicycle server by routing between two fixed points.

    The public server has no /health endpoint, so a tiny route request stands in for one.
    """
    base = (base_url or settings.osrm_bike_url).rstrip("/")
    test_coords = "13.388860,52.517037;13.385983,52.496891"
    try:
        timeout = httpx.Timeout(settings.routing_timeout_seconds, connect=settings.routing_connect_timeout_seconds)
        with httpx.Client(timeout=timeout, transport=transport) as client:
            response = client.get(f"{base}/{test_coords}", params={"overview": "false"})
            response.raise_for_status()
            data = response.json()
        return data.get("code") == "Ok"
    except httpx.HTTPError:
        return False
    except (ValueError, AttributeError):
        return False
