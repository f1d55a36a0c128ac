"""Bicycle routing endpoints."""

from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, HTTPException, status

from ...schemas.routing import BicycleRouteRequest, BicycleRouteResponse, RoutingResultModel
from ...services.routing.service import RoutingClient

router = APIRouter(prefix="/routing", tags=["routing"])

logger = logging.getLogger(__name__)


@router.post("/bicycle", response_model=BicycleRouteResponse, status_code=status.HTTP_200_OK)
def bicycle_route(payload: BicycleRouteRequest) -> BicycleRouteResponse:
    """Road geometry for waypoints in visit order; ``available`` is False when no provider could route."""
    try:
        result = RoutingClient().route(
            payload.waypoints,
            profile=payload.profile,
            prefer_primary=payload.prefer_primary,
        )
    except Exception as exc:
        logger.exception(f"Error computing bicycle route: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to compute bicycle route: {str(exc)}",
        ) from exc
    if result is None:
        return BicycleRouteResponse(available=False, route=None)
    return BicycleRouteResponse(available=True, route=RoutingResultModel.model_validate(asdict(result)))
