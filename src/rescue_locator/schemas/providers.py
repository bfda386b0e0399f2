"""Pydantic models for raw provider records before normalization."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CoordinatesModel(BaseModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)

    @classmethod
    def coerce(cls, value: Any) -> Any:
        """Accept ``{lat, lng}``, ``{latitude, longitude}`` or a ``[lat, lng]`` pair."""
        if value is None or isinstance(value, CoordinatesModel):
            return value
        if isinstance(value, (list, tuple)):
            if len(value) != 2:
                raise ValueError("Coordinate pairs must have exactly two values.")
            return {"lat": value[0], "lng": value[1]}
        if isinstance(value, dict) and "latitude" in value:
            return {"lat": value.get("latitude"), "lng": value.get("longitude")}
        return value


def _coerce_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if not isinstance(value, (list, tuple, set, frozenset)):
        raise ValueError("Expected a list of strings.")
    return [str(item) for item in value if item is not None and str(item).strip()]


class CatalogProviderRecord(BaseModel):
    """A provider entry as stored in the static catalog file."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None
    coordinates: Optional[CoordinatesModel] = None
    specializations: list[str] = Field(default_factory=list)
    availability: str = ""
    is_24x7: Optional[bool] = Field(default=None, alias="is24x7")
    urgency_tier: str = "standard"
    rating: float = Field(default=0.0, ge=0.0, le=5.0)
    description: Optional[str] = None
    services: list[str] = Field(default_factory=list)

    @field_validator("coordinates", mode="before")
    @classmethod
    def _coerce_coordinates(cls, value: Any) -> Any:
        return CoordinatesModel.coerce(value)

    @field_validator("specializations", "services", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> list[str]:
        return _coerce_str_list(value)


class GeneratedContactRecord(BaseModel):
    """An emergency contact as returned by the recommendation generator."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    type: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    coordinates: Optional[CoordinatesModel] = None
    specialization: list[str] = Field(default_factory=list)
    availability: str = ""
    is_24x7: Optional[bool] = Field(default=None, alias="is24x7")
    urgency_level: Optional[str] = Field(default=None, alias="urgencyLevel")
    rating: Optional[float] = None
    description: Optional[str] = None
    services: list[str] = Field(default_factory=list)

    @field_validator("coordinates", mode="before")
    @classmethod
    def _coerce_coordinates(cls, value: Any) -> Any:
        return CoordinatesModel.coerce(value)

    @field_validator("specialization", "services", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> list[str]:
        return _coerce_str_list(value)

    @field_validator("phone", mode="before")
    @classmethod
    def _coerce_phone(cls, value: Any) -> Any:
        if isinstance(value, (int, float)):
            return str(int(value))
        return value
