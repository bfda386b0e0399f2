"""Static provider catalog loader and lookups."""

from __future__ import annotations

import functools
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from ..config import settings
from ..models.domain import (
    MatchCriteria,
    Position,
    Provider,
    ProviderOrigin,
    RankedProvider,
    RecommendationSet,
    UrgencyTier,
)
from ..schemas.providers import CatalogProviderRecord
from ..services.geospatial import extract_city, normalize_city
from ..services.matching.matcher import match
from .normalization import normalize_catalog_record

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProviderCatalog:
    providers_by_city: dict[str, tuple[Provider, ...]]
    fallback: Provider
    fallback_contacts: tuple[Provider, ...]
    fallback_guidance: tuple[str, ...]

    def providers_for_city(self, city: Optional[str]) -> tuple[Provider, ...]:
        key = normalize_city(city)
        if key is None:
            return ()
        return self.providers_by_city.get(key, ())

    def fallback_provider(self) -> Provider:
        return self.fallback

    def all_providers(self) -> tuple[Provider, ...]:
        return tuple(provider for providers in self.providers_by_city.values() for provider in providers)

    def covers(self, city: Optional[str]) -> bool:
        key = normalize_city(city)
        return key is not None and key in self.providers_by_city

    def covered_cities(self) -> list[dict[str, Any]]:
        return [
            {"city": city, "provider_count": len(providers), "display_name": city.title()}
            for city, providers in self.providers_by_city.items()
        ]

    def builtin_fallback_set(
        self,
        position: Position,
        criteria: MatchCriteria,
        generated_at: datetime | None = None,
    ) -> RecommendationSet:
        """The set served when neither a position nor candidates are available."""
        contacts = (self.fallback, *self.fallback_contacts)
        return RecommendationSet(
            position=position,
            providers=tuple(RankedProvider(provider=contact) for contact in contacts),
            generated_at=generated_at or datetime.now(timezone.utc),
            fallback_used=True,
            criteria=criteria,
            guidance=self.fallback_guidance,
        )

    def match_location(
        self,
        location: str,
        specialization: str = "all",
        urgency: UrgencyTier | str = UrgencyTier.STANDARD,
    ) -> dict[str, Any]:
        """Match catalog providers for a free-text location, without a device position."""
        tier = UrgencyTier.parse(urgency, default=UrgencyTier.STANDARD)
        city = extract_city(location)
        if city is None or city not in self.providers_by_city:
            return {
                "found": False,
                "city": city,
                "providers": [],
                "fallback": self.fallback,
                "message": (
                    f"No local providers found for the location \"{location}\". "
                    f"Please contact the {self.fallback.name}."
                ),
            }

        result = match(
            self.providers_for_city(city),
            MatchCriteria(specialization=specialization, urgency_tier=tier),
            None,
            fallback=self.fallback,
        )
        display = city.title()
        if result.fallback_used:
            message = f"No specialized providers found in {display} for {specialization}. Showing general options."
            providers: list[RankedProvider] = []
        else:
            count = len(result.providers)
            message = f"Found {count} provider{'s' if count > 1 else ''} in {display}"
            providers = list(result.providers)
        return {
            "found": True,
            "city": city,
            "providers": providers,
            "fallback": self.fallback if result.fallback_used else None,
            "message": message,
        }


def _load_record(raw: dict[str, Any], city: Optional[str], origin: ProviderOrigin) -> Optional[Provider]:
    try:
        record = CatalogProviderRecord.model_validate(raw)
    except ValidationError as exc:
        logger.warning(f"Skipping invalid catalog record {raw.get('id') or raw.get('name')!r}: {exc}")
        return None
    return normalize_catalog_record(record, city=city, origin=origin)


@functools.lru_cache(maxsize=4)
def load_catalog(source: Optional[Path] = None) -> ProviderCatalog:
    """Load the provider catalog from the configured JSON file."""

    catalog_path = source or settings.catalog_file
    if not catalog_path.exists():
        raise FileNotFoundError(f"Provider catalog not found: {catalog_path}")

    with catalog_path.open(mode="r", encoding="utf-8") as handle:
        payload = json.load(handle)

    if "fallback_provider" not in payload:
        raise ValueError(f"Provider catalog '{catalog_path}' is missing 'fallback_provider'.")

    providers_by_city: dict[str, tuple[Provider, ...]] = {}
    for city_name, records in (payload.get("cities") or {}).items():
        city = normalize_city(city_name)
        if city is None:
            continue
        providers = [
            provider
            for provider in (_load_record(raw, city, ProviderOrigin.CATALOG) for raw in records)
            if provider is not None
        ]
        if providers:
            providers_by_city[city] = tuple(providers)

    fallback = _load_record(payload["fallback_provider"], None, ProviderOrigin.BUILTIN)
    if fallback is None:
        raise ValueError(f"Provider catalog '{catalog_path}' has an invalid fallback provider.")

    fallback_contacts = tuple(
        provider
        for provider in (
            _load_record(raw, None, ProviderOrigin.BUILTIN) for raw in payload.get("fallback_contacts") or []
        )
        if provider is not None
    )
    logger.info(
        f"Loaded provider catalog with {sum(len(p) for p in providers_by_city.values())} providers "
        f"across {len(providers_by_city)} cities"
    )
    return ProviderCatalog(
        providers_by_city=providers_by_city,
        fallback=fallback,
        fallback_contacts=fallback_contacts,
        fallback_guidance=tuple(str(item) for item in payload.get("fallback_guidance") or ()),
    )
