"""Unified bicycle routing with provider fallback.

1. OpenRouteService (primary) when an API key is configured.
2. OSRM public bike server (fallback), always available.

Both failing is an expected outcome: callers receive None and carry on
without geometry.
"""

from __future__ import annotations

import logging
from typing import Sequence

from ...config import settings
from ..geospatial import is_valid_coordinate
from . import ors_client as ors_module
from . import osrm_client as osrm_module
from .models import RoutingResult
from .ors_client import ORSClient
from .osrm_client import OSRMClient

logger = logging.getLogger(__name__)


def estimate_cycling_time(distance_miles: float, speed_mph: float | None = None) -> int:
    """Minutes to ride a distance at the configured average cycling speed."""
    speed = speed_mph or settings.avg_cycling_speed_mph
    return int(round(distance_miles / speed * 60))


class RoutingClient:
    def __init__(
        self,
        primary: ORSClient | None = None,
        fallback: OSRMClient | None = None,
        max_waypoints: int | None = None,
    ) -> None:
        self.primary = primary or ORSClient()
        self.fallback = fallback or OSRMClient()
        self.max_waypoints = max_waypoints or settings.max_waypoints

    def _waypoints_routable(self, waypoints: Sequence[tuple[float, float]]) -> bool:
        if len(waypoints) < 2:
            logger.warning("Need at least 2 waypoints for routing")
            return False
        if len(waypoints) > self.max_waypoints:
            logger.warning(f"Waypoint limit exceeded: {len(waypoints)} > {self.max_waypoints}")
            return False
        for waypoint in waypoints:
            try:
                lat, lng = waypoint
            except (TypeError, ValueError):
                logger.error(f"Malformed waypoint {waypoint!r}")
                return False
            if not is_valid_coordinate(lat, lng):
                logger.error(f"Invalid coordinates in waypoints: ({lat}, {lng})")
                return False
        return True

    def route(
        self,
        waypoints: Sequence[tuple[float, float]],
        *,
        profile: str | None = None,
        prefer_primary: bool = True,
    ) -> RoutingResult | None:
        """Route (lat, lng) waypoints in visit order; None means routing is unavailable.

        ``profile`` only applies to the primary provider. An unknown profile
        returns None when the primary would be tried and is ignored otherwise.
        """
        if not self._waypoints_routable(waypoints):
            return None
        points = [(float(lat), float(lng)) for lat, lng in waypoints]
        profile = profile or settings.default_cycling_profile

        if prefer_primary and self.primary.available:
            if profile not in ors_module.ORS_PROFILES:
                logger.error(f"Unknown cycling profile '{profile}'")
                return None
            logger.info(f"Attempting route with OpenRouteService (profile={profile})")
            primary_route = self.primary.route(points, profile=profile)
            if primary_route is not None:
                result = RoutingResult.from_provider(
                    primary_route,
                    service="primary",
                    provider=ors_module.PROVIDER_NAME,
                    waypoint_count=len(points),
                )
                logger.info(f"Route generated via ORS: {result.distance_miles:.2f} mi")
                return result
            logger.warning("ORS routing failed, falling back to OSRM")
        elif prefer_primary:
            logger.debug("ORS not available (no API key), using OSRM")

        logger.info("Attempting route with OSRM")
        fallback_route = self.fallback.route(points)
        if fallback_route is not None:
            result = RoutingResult.from_provider(
                fallback_route,
                service="fallback",
                provider=osrm_module.PROVIDER_NAME,
                waypoint_count=len(points),
            )
            logger.info(f"Route generated via OSRM: {result.distance_miles:.2f} mi")
            return result

        logger.error("Both ORS and OSRM routing failed")
        return None


def get_bicycle_route(
    waypoints: Sequence[tuple[float, float]],
    *,
    profile: str | None = None,
    prefer_primary: bool = True,
) -> RoutingResult | None:
    """Module-level convenience around a default-configured RoutingClient."""
    return RoutingClient().route(waypoints, profile=profile, prefer_primary=prefer_primary)
