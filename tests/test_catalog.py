import json
from pathlib import Path

import pytest

from rescue_locator.data.catalog_repository import load_catalog
from rescue_locator.models.domain import MatchCriteria, Position, ProviderOrigin, UrgencyTier


def _write_catalog(path: Path, payload: dict) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


FALLBACK = {
    "id": "helpline",
    "name": "Test Helpline",
    "phone": "1962",
    "specializations": ["all animals", "emergency"],
    "availability": "24/7",
    "urgency_tier": "critical",
    "rating": 5.0,
}


def test_catalog_normalizes_provider_records(catalog):
    providers = {provider.id: provider for provider in catalog.providers_for_city("Bombay")}

    sentinel = providers["mum-sentinel-animal-hospital"]
    assert sentinel.specializations == frozenset({"all", "emergency", "medical"})
    assert sentinel.is_24x7 is True
    assert sentinel.urgency_tier is UrgencyTier.CRITICAL
    assert sentinel.origin is ProviderOrigin.CATALOG
    assert sentinel.city == "mumbai"
    assert sentinel.coordinates is not None

    harbour = providers["mum-harbour-strays-trust"]
    assert harbour.specializations == frozenset({"dog", "cat", "adoption"})
    assert harbour.is_24x7 is False

    assert providers["mum-coastal-wildlife-rescue"].coordinates is None


def test_catalog_fallback_provider(catalog):
    assert catalog.fallback_provider() is catalog.fallback
    assert catalog.fallback.id == "national-animal-welfare-helpline"
    assert catalog.fallback.phone == "1962"
    assert catalog.fallback.origin is ProviderOrigin.BUILTIN
    assert [contact.name for contact in catalog.fallback_contacts] == ["Local Animal Control"]


def test_covered_cities_and_lookups(catalog):
    cities = {item["city"]: item for item in catalog.covered_cities()}

    assert cities["mumbai"] == {"city": "mumbai", "provider_count": 3, "display_name": "Mumbai"}
    assert catalog.covers("Bengaluru") is True
    assert catalog.covers("Atlantis") is False
    assert catalog.providers_for_city(None) == ()
    assert len(catalog.all_providers()) == sum(item["provider_count"] for item in cities.values())


def test_builtin_fallback_set(catalog):
    criteria = MatchCriteria("dog", UrgencyTier.CRITICAL)

    recommendation_set = catalog.builtin_fallback_set(Position.unknown(), criteria)

    assert recommendation_set.fallback_used is True
    assert [item.id for item in recommendation_set.providers] == [
        "national-animal-welfare-helpline",
        "local-animal-control",
    ]
    assert recommendation_set.criteria == criteria
    assert "Ensure your safety first" in recommendation_set.guidance


def test_match_location_finds_city_providers(catalog):
    result = catalog.match_location("Andheri, Mumbai", "dogs", "high")

    assert result["found"] is True
    assert result["city"] == "mumbai"
    assert [item.id for item in result["providers"]] == [
        "mum-sentinel-animal-hospital",
        "mum-harbour-strays-trust",
    ]
    assert result["fallback"] is None
    assert result["message"] == "Found 2 providers in Mumbai"


def test_match_location_without_specialists_suggests_fallback(catalog):
    result = catalog.match_location("Banjara Hills, Hyderabad", "bird")

    assert result["found"] is True
    assert result["providers"] == []
    assert result["fallback"].id == "national-animal-welfare-helpline"
    assert result["message"].startswith("No specialized providers found in Hyderabad")


def test_match_location_for_uncovered_place(catalog):
    result = catalog.match_location("Somewhere in Atlantis")

    assert result["found"] is False
    assert result["city"] is None
    assert result["fallback"] is catalog.fallback
    assert "National Animal Welfare Helpline" in result["message"]


def test_load_catalog_skips_invalid_records(tmp_path: Path):
    path = _write_catalog(
        tmp_path / "catalog.json",
        {
            "cities": {
                "Pune": [
                    {"id": "ok", "name": "Valid Shelter", "phone": "123", "coordinates": [18.5, 73.8]},
                    {"id": "broken", "name": "Missing Phone"},
                    {"id": "bad-rating", "name": "Too Good", "phone": "456", "rating": 11},
                ]
            },
            "fallback_provider": FALLBACK,
        },
    )

    catalog = load_catalog(path)

    assert [provider.id for provider in catalog.providers_for_city("pune")] == ["ok"]
    assert catalog.providers_for_city("pune")[0].coordinates.lat == 18.5
    assert catalog.fallback_guidance == ()


def test_load_catalog_requires_fallback(tmp_path: Path):
    path = _write_catalog(tmp_path / "catalog.json", {"cities": {}})

    with pytest.raises(ValueError):
        load_catalog(path)


def test_load_catalog_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_catalog(tmp_path / "absent.json")
