"""Geospatial helper functions and city lookup tables."""

from __future__ import annotations

import math
import re
from typing import Optional

from ..models.domain import Coordinates

EARTH_RADIUS_KM = 6371.0

# Approximate city-centre coordinates, keyed by canonical city name.
CITY_CENTROIDS: dict[str, Coordinates] = {
    "mumbai": Coordinates(19.0760, 72.8777),
    "delhi": Coordinates(28.6139, 77.2090),
    "bangalore": Coordinates(12.9716, 77.5946),
    "chennai": Coordinates(13.0827, 80.2707),
    "hyderabad": Coordinates(17.3850, 78.4867),
    "pune": Coordinates(18.5204, 73.8567),
    "kolkata": Coordinates(22.5726, 88.3639),
    "jaipur": Coordinates(26.9124, 75.7873),
}

DEFAULT_REGION = "delhi"

# Free-text alias -> canonical city. Longer aliases are checked first so that
# "new delhi" wins over "delhi" and "navi mumbai" over "mumbai".
CITY_ALIASES: dict[str, str] = {
    "mumbai": "mumbai",
    "bombay": "mumbai",
    "navi mumbai": "mumbai",
    "thane": "mumbai",
    "delhi": "delhi",
    "new delhi": "delhi",
    "ncr": "delhi",
    "gurgaon": "delhi",
    "gurugram": "delhi",
    "noida": "delhi",
    "bangalore": "bangalore",
    "bengaluru": "bangalore",
    "mysore": "bangalore",
    "chennai": "chennai",
    "madras": "chennai",
    "hyderabad": "hyderabad",
    "secunderabad": "hyderabad",
    "pune": "pune",
    "kolkata": "kolkata",
    "calcutta": "kolkata",
    "jaipur": "jaipur",
}

_ALIAS_PATTERNS = [
    (re.compile(rf"\b{re.escape(alias)}\b"), city)
    for alias, city in sorted(CITY_ALIASES.items(), key=lambda item: len(item[0]), reverse=True)
]


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_km(a: Coordinates, b: Coordinates) -> float:
    return haversine_km(a.lat, a.lng, b.lat, b.lng)


def normalize_city(name: Optional[str]) -> Optional[str]:
    """Lower-case and strip a city name, resolving exact aliases (``Bengaluru`` -> ``bangalore``)."""
    if name is None:
        return None
    cleaned = " ".join(str(name).split()).lower()
    if not cleaned or cleaned == "unknown":
        return None
    return CITY_ALIASES.get(cleaned, cleaned)


def extract_city(text: Optional[str]) -> Optional[str]:
    """Find a known city mentioned anywhere in free text.

    Returns ``None`` when no alias fires; the caller decides what an
    unrecognised location means.
    """
    if not text or not isinstance(text, str):
        return None
    lowered = text.lower()
    for pattern, city in _ALIAS_PATTERNS:
        if pattern.search(lowered):
            return city
    return None


def lookup_centroid(region: Optional[str]) -> Optional[Coordinates]:
    city = normalize_city(region)
    if city is None:
        return None
    return CITY_CENTROIDS.get(city)


def estimate_centroid(region: Optional[str], default_region: str = DEFAULT_REGION) -> Coordinates:
    """Approximate centre of a city; unknown names resolve to ``default_region``."""
    centroid = lookup_centroid(region)
    if centroid is not None:
        return centroid
    return CITY_CENTROIDS[normalize_city(default_region) or DEFAULT_REGION]


def format_distance(distance: float) -> str:
    """Human label: metres below one kilometre, otherwise kilometres to one decimal."""
    if distance < 1:
        return f"{math.floor(distance * 1000 + 0.5)}m away"
    return f"{distance:.1f}km away"
