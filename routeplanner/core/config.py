"""Environment-driven configuration for the route planner.

The ``AppSettings`` class centralises every environment variable we rely on:
the Mapbox credentials and endpoints, the debounce windows that keep us under
third-party rate limits, and the knobs for alternative-route synthesis. Values
are read once, the first time ``get_settings`` is called.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Route Planner"
    LOG_LEVEL: str = "INFO"
    METRICS_ENABLED: bool = True

    # ---- API (headless) authentication
    # Empty means the API is open, which is what local development wants.
    API_KEY: str = Field(default="", validation_alias=AliasChoices("API_KEY", "API_TOKEN"))

    # ---- Mapbox services
    # The token is not validated locally; a missing one makes every upstream
    # call fail at the transport layer.
    MAPBOX_ACCESS_TOKEN: str = Field(
        default="",
        validation_alias=AliasChoices("MAPBOX_ACCESS_TOKEN", "MAPBOX_API_TOKEN"),
    )
    MAPBOX_GEOCODING_URL: str = "https://api.mapbox.com/geocoding/v5/mapbox.places"
    MAPBOX_DIRECTIONS_URL: str = "https://api.mapbox.com/directions/v5/mapbox/driving"
    MAPBOX_MATCHING_URL: str = "https://api.mapbox.com/matching/v5/mapbox/driving"
    HTTP_TIMEOUT_SECONDS: float = 6.0

    # ---- Geocoding
    GEOCODE_PRECISION: int = Field(default=5, ge=0, le=10)  # 5 decimals is roughly 1.1 m
    SEARCH_MIN_CHARS: int = Field(default=3, ge=1)
    SEARCH_LIMIT: int = Field(default=5, ge=1, le=10)
    SEARCH_DEBOUNCE_SECONDS: float = Field(default=0.3, ge=0)

    # ---- Drag-to-reshape
    SNAP_ENABLED: bool = True
    SNAP_DEBOUNCE_SECONDS: float = Field(default=0.5, ge=0)

    # ---- Alternative routes
    ALTERNATIVES_COUNT: int = Field(default=3, ge=1)
    ALTERNATIVES_MAX_ATTEMPTS: int = Field(default=10, ge=0)
    VIA_POINT_STEP_METERS: float = Field(default=100.0, gt=0)
    VIA_POINT_MAX_OFFSET_METERS: float = Field(default=400.0, gt=0)

    @field_validator("MAPBOX_GEOCODING_URL", "MAPBOX_DIRECTIONS_URL", "MAPBOX_MATCHING_URL")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        return (value or "INFO").strip().upper()


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return AppSettings()


settings = get_settings()
