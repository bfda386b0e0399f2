"""Domain models for positions, providers and cached recommendation sets."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class PositionSource(str, Enum):
    GPS = "gps"
    CACHED = "cached"
    MANUAL = "manual"
    ESTIMATED = "estimated"


class UrgencyTier(str, Enum):
    STANDARD = "standard"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _URGENCY_RANK[self]

    @property
    def is_elevated(self) -> bool:
        return self in (UrgencyTier.HIGH, UrgencyTier.CRITICAL)

    @classmethod
    def parse(cls, value: "UrgencyTier | str | None", default: "UrgencyTier | None" = None) -> "UrgencyTier":
        """Parse a tier label, folding the legacy ``low``/``medium`` levels into ``standard``."""
        if isinstance(value, UrgencyTier):
            return value
        if value is None or not str(value).strip():
            if default is None:
                raise ValueError("Urgency tier is required.")
            return default
        label = str(value).strip().lower()
        if label in _LEGACY_URGENCY:
            return _LEGACY_URGENCY[label]
        try:
            return cls(label)
        except ValueError as exc:
            raise ValueError(f"Unknown urgency tier '{value}'.") from exc


_URGENCY_RANK = {
    UrgencyTier.STANDARD: 0,
    UrgencyTier.HIGH: 1,
    UrgencyTier.CRITICAL: 2,
}

_LEGACY_URGENCY = {
    "low": UrgencyTier.STANDARD,
    "medium": UrgencyTier.STANDARD,
}


class ProviderOrigin(str, Enum):
    CATALOG = "catalog"
    GENERATED = "generated"
    BUILTIN = "builtin"


@dataclass(frozen=True, slots=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class Address:
    formatted: str
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Position:
    """A single position acquisition result. Superseded, never mutated."""

    coordinates: Optional[Coordinates]
    address: Address
    accuracy_m: Optional[float]
    source: PositionSource
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.source is PositionSource.GPS:
            if self.coordinates is None:
                raise ValueError("GPS positions require coordinates.")
            if self.accuracy_m is None or self.accuracy_m < 0:
                raise ValueError("GPS positions require a non-negative accuracy.")

    @classmethod
    def unknown(cls) -> "Position":
        return cls(
            coordinates=None,
            address=Address(formatted="Unknown Location"),
            accuracy_m=None,
            source=PositionSource.ESTIMATED,
        )

    def as_cached(self) -> "Position":
        return replace(self, source=PositionSource.CACHED)


@dataclass(frozen=True, slots=True)
class Provider:
    """A rescue contact normalized from the static catalog or a generated payload."""

    id: str
    name: str
    phone: str
    specializations: frozenset[str]
    availability_window: str
    is_24x7: bool
    urgency_tier: UrgencyTier
    rating: float
    origin: ProviderOrigin
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    description: Optional[str] = None
    services: tuple[str, ...] = ()

    def declares(self, specialization: str) -> bool:
        return specialization in self.specializations


@dataclass(frozen=True, slots=True)
class RankedProvider:
    provider: Provider
    distance_km: Optional[float] = None
    distance_label: Optional[str] = None
    distance_estimated: bool = False

    @property
    def id(self) -> str:
        return self.provider.id

    @property
    def name(self) -> str:
        return self.provider.name


@dataclass(frozen=True, slots=True)
class MatchCriteria:
    specialization: str = "all"
    urgency_tier: UrgencyTier = UrgencyTier.HIGH


@dataclass(frozen=True, slots=True)
class RecommendationSet:
    position: Position
    providers: tuple[RankedProvider, ...]
    generated_at: datetime
    fallback_used: bool
    criteria: MatchCriteria = MatchCriteria()
    guidance: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CacheEntry:
    set: RecommendationSet
    fetched_at: datetime
    position_at_fetch: Position
