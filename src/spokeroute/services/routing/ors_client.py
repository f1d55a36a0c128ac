"""HTTP client for OpenRouteService bicycle directions (primary provider).

ORS gives better residential-road coverage than the public OSRM server but
needs an API key and enforces rate limits, so a 429 gets one backoff-and-retry
before the caller moves on to the fallback provider.
"""

from __future__ import annotations

import logging
import time
from typing import Sequence

import httpx

from ...config import settings
from .models import ProviderRoute, parse_linestring

PROVIDER_NAME = "openrouteservice"

ORS_PROFILES = ("cycling-regular", "cycling-road", "cycling-mountain", "cycling-electric")

logger = logging.getLogger(__name__)


def to_lng_lat(coordinates: Sequence[tuple[float, float]]) -> list[list[float]]:
    """Swap (lat, lng) waypoints into the GeoJSON [lng, lat] order ORS expects."""
    return [[lng, lat] for lat, lng in coordinates]


class ORSClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        connect_timeout: float | None = None,
        max_rate_limit_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.ors_api_key
        self.base_url = (base_url or settings.ors_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.routing_timeout_seconds
        self.connect_timeout = (
            connect_timeout if connect_timeout is not None else settings.routing_connect_timeout_seconds
        )
        self.max_rate_limit_retries = (
            max_rate_limit_retries if max_rate_limit_retries is not None else settings.ors_rate_limit_retries
        )
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.rate_limit_backoff_seconds
        self._transport = transport

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
            transport=self._transport,
        )

    def route(
        self, coordinates: Sequence[tuple[float, float]], profile: str | None = None
    ) -> ProviderRoute | None:
        """Get a bicycle route through (lat, lng) waypoints in visit order.

        Returns None when no key is configured or the request fails for any reason.
        """
        if not self.api_key:
            logger.debug("ORS API key not configured")
            return None
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for ORS route.")

        profile = profile or settings.default_cycling_profile
        if profile not in ORS_PROFILES:
            raise ValueError(f"Unknown ORS cycling profile '{profile}'.")

        url = f"{self.base_url}/{profile}/geojson"
        headers = {
            "Authorization": self.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        body = {"coordinates": to_lng_lat(coordinates)}
        logger.info(f"Fetching bicycle route from ORS ({len(coordinates)} waypoints, profile={profile})")

        client = self._get_client()
        try:
            attempt = 0
            while True:
                response = client.post(url, json=body, headers=headers)
                if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
                    attempt += 1
                    if attempt > self.max_rate_limit_retries:
                        logger.error(f"ORS still rate limited after {self.max_rate_limit_retries} retries")
                        return None
                    wait_time = self.backoff_seconds * attempt
                    logger.warning(f"ORS rate limited, retrying in {wait_time:.1f}s (attempt {attempt})")
                    time.sleep(wait_time)
                    continue
                if not response.is_success:
                    logger.error(f"ORS request failed with status {response.status_code}: {_error_message(response)}")
                    return None
                return _parse_directions(response.json())
        except httpx.TimeoutException as exc:
            logger.error(f"ORS request timed out after {self.timeout}s: {exc}")
            return None
        except httpx.HTTPError as exc:
            logger.error(f"ORS request error: {exc}")
            return None
        except (ValueError, KeyError, TypeError, IndexError, AttributeError) as exc:
            logger.error(f"Malformed ORS response: {exc}")
            return None
        finally:
            client.close()


def _parse_directions(data: dict) -> ProviderRoute | None:
    features = data.get("features")
    if not features:
        logger.warning("ORS returned no features")
        return None
    feature = features[0]
    summary = feature["properties"]["summary"]
    return ProviderRoute(
        geometry=parse_linestring(feature.get("geometry")),
        distance_meters=float(summary["distance"]),
        duration_seconds=float(summary["duration"]),
    )


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.reason_phrase
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return str(error.get("message", response.reason_phrase))
    return str(error or response.reason_phrase)
