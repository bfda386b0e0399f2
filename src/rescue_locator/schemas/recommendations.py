"""Pydantic request/response models for recommendation endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ..models.domain import Position, Provider, RankedProvider, RecommendationSet
from ..services.location import describe_position


class CoordinatesOut(BaseModel):
    lat: float
    lng: float


class AddressOut(BaseModel):
    formatted: str
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class PositionModel(BaseModel):
    coordinates: Optional[CoordinatesOut] = None
    address: AddressOut
    accuracy_m: Optional[float] = None
    source: Literal["gps", "cached", "manual", "estimated"]
    captured_at: datetime
    display: str

    @classmethod
    def from_domain(cls, position: Position) -> "PositionModel":
        coordinates = position.coordinates
        return cls(
            coordinates=CoordinatesOut(lat=coordinates.lat, lng=coordinates.lng) if coordinates else None,
            address=AddressOut(
                formatted=position.address.formatted,
                city=position.address.city,
                state=position.address.state,
                country=position.address.country,
            ),
            accuracy_m=position.accuracy_m,
            source=position.source.value,
            captured_at=position.captured_at,
            display=describe_position(position),
        )


class ProviderModel(BaseModel):
    id: str
    name: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    coordinates: Optional[CoordinatesOut] = None
    specializations: list[str]
    availability: str
    is_24x7: bool
    urgency_tier: str
    rating: float
    origin: str
    description: Optional[str] = None
    services: list[str] = Field(default_factory=list)
    distance_km: Optional[float] = None
    distance_label: Optional[str] = None
    distance_estimated: bool = False

    @classmethod
    def from_provider(cls, provider: Provider, ranked: RankedProvider | None = None) -> "ProviderModel":
        coordinates = provider.coordinates
        return cls(
            id=provider.id,
            name=provider.name,
            phone=provider.phone,
            email=provider.email,
            address=provider.address,
            city=provider.city,
            coordinates=CoordinatesOut(lat=coordinates.lat, lng=coordinates.lng) if coordinates else None,
            specializations=sorted(provider.specializations),
            availability=provider.availability_window,
            is_24x7=provider.is_24x7,
            urgency_tier=provider.urgency_tier.value,
            rating=provider.rating,
            origin=provider.origin.value,
            description=provider.description,
            services=list(provider.services),
            distance_km=round(ranked.distance_km, 3) if ranked and ranked.distance_km is not None else None,
            distance_label=ranked.distance_label if ranked else None,
            distance_estimated=ranked.distance_estimated if ranked else False,
        )

    @classmethod
    def from_ranked(cls, ranked: RankedProvider) -> "ProviderModel":
        return cls.from_provider(ranked.provider, ranked)


class RecommendationSetModel(BaseModel):
    position: PositionModel
    providers: list[ProviderModel]
    generated_at: datetime
    fallback_used: bool
    specialization: str
    urgency: str
    guidance: list[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, recommendation_set: RecommendationSet) -> "RecommendationSetModel":
        return cls(
            position=PositionModel.from_domain(recommendation_set.position),
            providers=[ProviderModel.from_ranked(item) for item in recommendation_set.providers],
            generated_at=recommendation_set.generated_at,
            fallback_used=recommendation_set.fallback_used,
            specialization=recommendation_set.criteria.specialization,
            urgency=recommendation_set.criteria.urgency_tier.value,
            guidance=list(recommendation_set.guidance),
        )


class ManualLocationRequest(BaseModel):
    location: str = Field(..., description="Free-text location typed by the user, e.g. 'Bandra, Mumbai'.")
    specialization: Optional[str] = Field(default=None, description="Animal type or service to match.")
    urgency: Optional[str] = Field(default=None, description="Urgency tier (standard, high, critical).")

    @field_validator("location")
    @classmethod
    def validate_location(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("location must not be empty")
        return value.strip()


class DeviceFixRequest(BaseModel):
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    accuracy: float = Field(..., ge=0.0, description="Reported accuracy radius in metres.")


class DeviceErrorRequest(BaseModel):
    kind: Literal["permission_denied", "unavailable", "timeout"]


class CoveredCityModel(BaseModel):
    city: str
    provider_count: int
    display_name: str


class LocationMatchResponse(BaseModel):
    found: bool
    city: Optional[str] = None
    providers: list[ProviderModel]
    fallback: Optional[ProviderModel] = None
    message: str
