"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="SPOKEROUTE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "SpokeRoute Bicycle Routing API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root logger level applied by create_app().")

    # Primary provider (OpenRouteService). Routing falls back to OSRM when the key is absent.
    ors_api_key: Optional[str] = Field(
        default=None,
        description="OpenRouteService API key. Leave unset to always use the free OSRM server.",
    )
    ors_base_url: str = Field(
        default="https://api.openrouteservice.org/v2/directions",
        description="OpenRouteService directions endpoint (profile is appended).",
    )
    default_cycling_profile: Literal[
        "cycling-regular", "cycling-road", "cycling-mountain", "cycling-electric"
    ] = Field(default="cycling-road")
    ors_rate_limit_retries: int = Field(default=1, ge=0, le=3)
    rate_limit_backoff_seconds: float = Field(default=1.0, ge=0.0, le=5.0)

    # Fallback provider (public OSRM bicycle server maintained by OpenStreetMap Germany).
    osrm_bike_url: str = Field(
        default="https://routing.openstreetmap.de/routed-bike/route/v1/bike",
        description="Base URL for the OSRM bicycle route endpoint.",
    )

    routing_timeout_seconds: float = Field(default=8.0, gt=0.0, lt=10.0)
    routing_connect_timeout_seconds: float = Field(default=5.0, gt=0.0, lt=10.0)
    max_waypoints: int = Field(default=50, ge=2)

    # Route ordering
    avg_cycling_speed_mph: float = Field(default=12.0, gt=0.0)
    max_route_stops: int = Field(default=50, ge=1)
    slow_optimization_warning_threshold: int = Field(default=30, ge=1)
    two_opt_max_iterations: int = Field(default=1000, ge=1)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration (route storage collaborator)
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("ors_api_key", mode="before")
    @classmethod
    def _blank_key_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


settings = Settings()
