"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_ROOT = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="RESCUE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Rescue Locator API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level applied by create_app().")
    catalog_file: Path = Field(
        default=PACKAGE_ROOT / "data" / "catalog.json",
        description="Static provider catalog (providers per city plus fallback contacts).",
    )

    cache_ttl_minutes: float = Field(default=30.0, gt=0.0)
    drift_threshold_km: float = Field(
        default=5.0,
        ge=0.0,
        description="Movement beyond this distance invalidates the cached recommendations.",
    )
    max_distance_km: float = Field(
        default=50.0,
        gt=0.0,
        description="Providers farther than this from the caller are excluded.",
    )

    position_timeout_seconds: float = Field(default=10.0, gt=0.0)
    position_max_age_seconds: float = Field(
        default=300.0,
        ge=0.0,
        description="Reported device fixes older than this are not reused.",
    )
    static_latitude: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    static_longitude: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    static_accuracy_m: float = Field(default=50.0, ge=0.0)
    default_region: str = Field(
        default="delhi",
        description="City whose centroid is used when a provider's city is not in the centroid table.",
    )

    reverse_geocode_url: Optional[str] = Field(
        default="https://api.bigdatacloud.net/data/reverse-geocode-client",
        description="Reverse geocoding endpoint; unset to keep addresses unlabeled.",
    )
    reverse_geocode_timeout_seconds: float = Field(default=5.0, gt=0.0)

    generator_backend: Literal["catalog", "chat_completion"] = Field(
        default="catalog",
        description="Source of raw provider candidates.",
    )
    chat_completion_base_url: str = Field(default="https://api.openai.com/v1")
    chat_completion_api_key: Optional[str] = Field(default=None)
    chat_completion_model: str = Field(default="gpt-4o-mini")
    chat_completion_timeout_seconds: float = Field(default=30.0, gt=0.0)
    candidate_count: int = Field(default=5, ge=1)

    default_specialization: str = Field(default="all")
    default_urgency: Literal["standard", "high", "critical"] = Field(default="high")

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("catalog_file", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

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

    @property
    def has_static_position(self) -> bool:
        return self.static_latitude is not None and self.static_longitude is not None


settings = Settings()
