"""Filtering, ranking and distance annotation of candidate providers."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from ...data.normalization import ALL_SPECIALIZATIONS, EMERGENCY, normalize_specialization
from ...errors import NoCandidatesMatched
from ...models.domain import (
    Coordinates,
    MatchCriteria,
    Position,
    Provider,
    RankedProvider,
    UrgencyTier,
)
from ..geospatial import DEFAULT_REGION, distance_km, estimate_centroid, format_distance, lookup_centroid

DEFAULT_MAX_DISTANCE_KM = 50.0

# Criteria specializations that mean "do not filter by specialization".
_UNFILTERED = {"", ALL_SPECIALIZATIONS, "unknown", "any"}

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MatchResult:
    providers: tuple[RankedProvider, ...]
    fallback_used: bool

    def __len__(self) -> int:
        return len(self.providers)

    def __iter__(self):
        return iter(self.providers)


def _passes(provider: Provider, target: str, tier: UrgencyTier) -> bool:
    if target in _UNFILTERED:
        return True
    if provider.declares(target) or provider.declares(ALL_SPECIALIZATIONS):
        return True
    return tier is UrgencyTier.CRITICAL and provider.declares(EMERGENCY)


def _origin_for(position: Optional[Position]) -> tuple[Optional[Coordinates], bool]:
    """Resolve the caller's coordinates and whether they are a centroid estimate."""
    if position is None:
        return None, False
    if position.coordinates is not None:
        return position.coordinates, False
    centroid = lookup_centroid(position.address.city)
    return centroid, centroid is not None


def _annotate(
    provider: Provider,
    origin: Optional[Coordinates],
    origin_estimated: bool,
    default_region: str,
) -> RankedProvider:
    if origin is None:
        return RankedProvider(provider=provider)
    target = provider.coordinates
    estimated = origin_estimated
    if target is None:
        if not provider.city:
            return RankedProvider(provider=provider)
        target = estimate_centroid(provider.city, default_region)
        estimated = True
    distance = distance_km(origin, target)
    return RankedProvider(
        provider=provider,
        distance_km=distance,
        distance_label=format_distance(distance),
        distance_estimated=estimated,
    )


def _sort_key(ranked: RankedProvider, tier: UrgencyTier) -> tuple:
    provider = ranked.provider
    elevated = tier.is_elevated
    return (
        0 if not elevated or provider.is_24x7 else 1,
        0 if not elevated or provider.declares(EMERGENCY) else 1,
        ranked.distance_km if ranked.distance_km is not None else math.inf,
        -provider.rating,
    )


def _fallback_result(fallback: Optional[Provider], reason: str) -> MatchResult:
    if fallback is None:
        raise NoCandidatesMatched(reason)
    logger.info(f"No provider matched ({reason}); using fallback provider '{fallback.name}'")
    return MatchResult(providers=(RankedProvider(provider=fallback),), fallback_used=True)


def match(
    providers: Sequence[Provider],
    criteria: MatchCriteria,
    position: Optional[Position],
    *,
    fallback: Optional[Provider],
    max_distance_km: float = DEFAULT_MAX_DISTANCE_KM,
    default_region: str = DEFAULT_REGION,
) -> MatchResult:
    """Filter, annotate and rank providers for the given criteria and position.

    The result is never empty: when filtering or the distance bound removes
    every candidate, the single ``fallback`` provider is returned with
    ``fallback_used`` set. Without a fallback, ``NoCandidatesMatched`` is
    raised instead.
    """
    target = normalize_specialization(criteria.specialization or "")
    tier = criteria.urgency_tier
    candidates = [provider for provider in providers if _passes(provider, target, tier)]
    if not candidates:
        return _fallback_result(fallback, f"no provider declares '{target}'")

    origin, origin_estimated = _origin_for(position)
    annotated = [_annotate(provider, origin, origin_estimated, default_region) for provider in candidates]

    within_range = [
        ranked
        for ranked in annotated
        if ranked.distance_km is None or ranked.distance_km <= max_distance_km
    ]
    excluded = len(annotated) - len(within_range)
    if excluded:
        logger.debug(f"Excluded {excluded} provider(s) farther than {max_distance_km:.1f} km")
    if not within_range:
        return _fallback_result(fallback, f"every candidate is farther than {max_distance_km:.1f} km")

    ranked = sorted(within_range, key=lambda item: _sort_key(item, tier))
    return MatchResult(providers=tuple(ranked), fallback_used=False)
