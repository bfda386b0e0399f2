"""Normalization of catalog and generated provider records into ``Provider``."""

from __future__ import annotations

import re
from typing import Iterable, Optional

from ..models.domain import Coordinates, Provider, ProviderOrigin, UrgencyTier
from ..schemas.providers import CatalogProviderRecord, CoordinatesModel, GeneratedContactRecord
from ..services.geospatial import extract_city, normalize_city

ALL_SPECIALIZATIONS = "all"
EMERGENCY = "emergency"

SPECIALIZATION_ALIASES: dict[str, str] = {
    "all animals": ALL_SPECIALIZATIONS,
    "all": ALL_SPECIALIZATIONS,
    "any": ALL_SPECIALIZATIONS,
    "dogs": "dog",
    "puppies": "dog",
    "cats": "cat",
    "kittens": "cat",
    "birds": "bird",
    "reptiles": "reptile",
    "snakes": "reptile",
    "cows": "cattle",
    "cow": "cattle",
    "large animals": "large animal",
    "emergency rescue": EMERGENCY,
    "emergencies": EMERGENCY,
    "medical": "medical",
}

_24X7_MARKERS = ("24/7", "24x7", "24 x 7", "24 hours", "round the clock")


def normalize_specialization(label: str) -> str:
    cleaned = " ".join(label.split()).lower()
    return SPECIALIZATION_ALIASES.get(cleaned, cleaned)


def normalize_specializations(labels: Iterable[str]) -> frozenset[str]:
    return frozenset(normalize_specialization(label) for label in labels if label and label.strip())


def is_round_the_clock(availability: str) -> bool:
    lowered = availability.lower()
    return any(marker in lowered for marker in _24X7_MARKERS)


def _coordinates(model: Optional[CoordinatesModel]) -> Optional[Coordinates]:
    if model is None:
        return None
    return Coordinates(lat=model.lat, lng=model.lng)


def _tier(label: Optional[str]) -> UrgencyTier:
    try:
        return UrgencyTier.parse(label, default=UrgencyTier.STANDARD)
    except ValueError:
        return UrgencyTier.STANDARD


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-") or "provider"


def normalize_catalog_record(
    record: CatalogProviderRecord,
    *,
    city: Optional[str],
    origin: ProviderOrigin = ProviderOrigin.CATALOG,
) -> Provider:
    availability = record.availability.strip() or "Unknown"
    is_24x7 = record.is_24x7 if record.is_24x7 is not None else is_round_the_clock(availability)
    return Provider(
        id=record.id,
        name=record.name.strip(),
        phone=record.phone.strip(),
        email=record.email,
        address=record.address,
        city=normalize_city(city),
        coordinates=_coordinates(record.coordinates),
        specializations=normalize_specializations(record.specializations),
        availability_window=availability,
        is_24x7=is_24x7,
        urgency_tier=_tier(record.urgency_tier),
        rating=record.rating,
        origin=origin,
        description=record.description,
        services=tuple(record.services),
    )


def normalize_generated_record(record: GeneratedContactRecord, index: int) -> Provider:
    availability = record.availability.strip() or "Unknown"
    is_24x7 = record.is_24x7 if record.is_24x7 is not None else is_round_the_clock(availability)
    rating = min(max(record.rating or 0.0, 0.0), 5.0)
    city = normalize_city(record.city) if record.city else extract_city(record.address)
    return Provider(
        id=f"gen-{index}-{_slug(record.name)}",
        name=record.name.strip(),
        phone=record.phone.strip(),
        email=record.email,
        address=record.address,
        city=city,
        coordinates=_coordinates(record.coordinates),
        specializations=normalize_specializations(record.specialization),
        availability_window=availability,
        is_24x7=is_24x7,
        urgency_tier=_tier(record.urgency_level),
        rating=rating,
        origin=ProviderOrigin.GENERATED,
        description=record.description,
        services=tuple(record.services),
    )
