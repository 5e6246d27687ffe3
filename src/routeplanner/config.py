"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="ROUTEPLANNER_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Route Planner API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level for the service.")
    database_url: str = Field(
        default="sqlite:///./routeplanner.db",
        description="SQLAlchemy database URL for routes and waypoints.",
    )
    google_maps_api_key: Optional[str] = Field(
        default=None,
        description="API key for the Google Routes API (distance oracle).",
    )
    routes_api_url: str = Field(
        default="https://routes.googleapis.com/directions/v2:computeRoutes",
        description="computeRoutes endpoint of the distance oracle.",
    )
    routing_preference: Literal["TRAFFIC_UNAWARE", "TRAFFIC_AWARE", "TRAFFIC_AWARE_OPTIMAL"] = Field(
        default="TRAFFIC_AWARE",
        description="Routing preference sent with every computeRoutes request.",
    )
    oracle_timeout_seconds: float = Field(default=30.0, gt=0.0)
    oracle_max_retries: int = Field(default=2, ge=0)
    oracle_backoff_seconds: float = Field(default=1.0, ge=0.0)
    insertion_cost_mode: Literal["oracle", "haversine"] = Field(
        default="oracle",
        description=(
            "How candidate insertion positions are scored during incremental re-optimization. "
            "'haversine' scores locally when every stop already has coordinates."
        ),
    )
    auto_create_schema: bool = Field(
        default=True,
        description="Create missing tables on startup (disable when migrations manage the schema).",
    )
    default_stop_type: Literal["pickup", "delivery", "meeting", "visit", "other"] = "other"
    added_stop_type: Literal["pickup", "delivery", "meeting", "visit", "other"] = "visit"
    default_stop_color: str = "#3b82f6"
    gap_stop_color: str = "#9ca3af"
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
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
            # Try JSON first
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            # Try comma-separated
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        return str(value or "INFO").strip().upper()


settings = Settings()
