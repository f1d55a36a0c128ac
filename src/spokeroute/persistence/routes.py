"""Route storage adapter backed by Supabase tables.

Tables used:
    bicycle_routes   id, name, description, start_latitude, start_longitude, start_address,
                     end_latitude, end_longitude, end_address, is_round_trip, last_optimized_at
    route_companies  id, route_id, sequence_order, distance_from_start_miles,
                     company:companies(name, address, latitude, longitude)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol, Sequence

from ..db.supabase import get_supabase_client
from ..models.domain import RouteDefinition, RouteStopInput, Waypoint

logger = logging.getLogger(__name__)


class RouteStoreError(RuntimeError):
    """Raised when the route store rejects a read or write."""


class RouteStore(Protocol):
    def get_route(self, route_id: str) -> RouteDefinition | None: ...

    def apply_order(
        self, route_id: str, ordered_ids: Sequence[str], distances_from_start: Mapping[str, float]
    ) -> None: ...


def _waypoint(lat: Any, lng: Any, address: Any = None) -> Waypoint | None:
    if lat is None or lng is None:
        return None
    return Waypoint(latitude=float(lat), longitude=float(lng), address=address)


class SupabaseRouteStore:
    def __init__(self, client: Any) -> None:
        self.client = client

    def get_route(self, route_id: str) -> RouteDefinition | None:
        try:
            route_response = (
                self.client.table("bicycle_routes").select("*").eq("id", route_id).limit(1).execute()
            )
            rows = route_response.data or []
            if not rows:
                return None
            stops_response = (
                self.client.table("route_companies")
                .select("id, sequence_order, company:companies(name, address, latitude, longitude)")
                .eq("route_id", route_id)
                .order("sequence_order")
                .execute()
            )
        except Exception as exc:
            raise RouteStoreError(f"Failed to load route {route_id}: {exc}") from exc

        row = rows[0]
        start = _waypoint(row.get("start_latitude"), row.get("start_longitude"), row.get("start_address"))
        if start is None:
            raise RouteStoreError(f"Route {route_id} has no start location.")
        end = _waypoint(row.get("end_latitude"), row.get("end_longitude"), row.get("end_address"))

        stops: list[RouteStopInput] = []
        for stop_row in stops_response.data or []:
            company = stop_row.get("company") or {}
            stops.append(
                RouteStopInput(
                    id=str(stop_row["id"]),
                    name=company.get("name") or str(stop_row["id"]),
                    latitude=company.get("latitude"),
                    longitude=company.get("longitude"),
                    address=company.get("address"),
                )
            )

        return RouteDefinition(
            route_id=route_id,
            name=row.get("name") or route_id,
            description=row.get("description"),
            start=start,
            end=end,
            stops=stops,
            round_trip=bool(row.get("is_round_trip", True)),
        )

    def apply_order(
        self, route_id: str, ordered_ids: Sequence[str], distances_from_start: Mapping[str, float]
    ) -> None:
        """Write sequence positions and cumulative distances, then stamp the route."""
        try:
            for index, route_company_id in enumerate(ordered_ids):
                (
                    self.client.table("route_companies")
                    .update(
                        {
                            "sequence_order": index,
                            "distance_from_start_miles": distances_from_start.get(route_company_id),
                        }
                    )
                    .eq("id", route_company_id)
                    .eq("route_id", route_id)
                    .execute()
                )
            (
                self.client.table("bicycle_routes")
                .update({"last_optimized_at": datetime.now(timezone.utc).isoformat()})
                .eq("id", route_id)
                .execute()
            )
        except Exception as exc:
            raise RouteStoreError(f"Failed to apply optimized order to route {route_id}: {exc}") from exc
        logger.info(f"Applied optimized order to route {route_id} ({len(ordered_ids)} stops)")


def get_route_store() -> SupabaseRouteStore | None:
    client = get_supabase_client()
    if client is None:
        return None
    return SupabaseRouteStore(client)
