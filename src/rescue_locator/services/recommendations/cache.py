"""Time- and distance-aware cache of the current recommendation set."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from ...config import Settings, settings as default_settings
from ...data.catalog_repository import ProviderCatalog, load_catalog
from ...data.normalization import ALL_SPECIALIZATIONS, normalize_specialization
from ...errors import CandidateFetchFailed, NoCandidatesMatched, PositionUnavailable
from ...models.domain import (
    CacheEntry,
    MatchCriteria,
    Position,
    PositionSource,
    RankedProvider,
    RecommendationSet,
    UrgencyTier,
)
from ..geospatial import distance_km, normalize_city
from ..location import (
    BigDataCloudGeocoder,
    GeoPositionProvider,
    PositionSourceProtocol,
    ReportedPositionSource,
    StaticPositionSource,
)
from ..matching.matcher import match
from .generator import CandidateBatch, RecommendationGenerator, build_generator

# Distances are compared at micrometre resolution so float noise on an exact
# threshold distance does not count as movement.
_DRIFT_PRECISION = 9

logger = logging.getLogger(__name__)


def make_criteria(
    specialization: Optional[str] = None,
    urgency: UrgencyTier | str | None = None,
    config: Settings | None = None,
) -> MatchCriteria:
    config = config or default_settings
    label = specialization if specialization and specialization.strip() else config.default_specialization
    return MatchCriteria(
        specialization=normalize_specialization(label),
        urgency_tier=UrgencyTier.parse(urgency, default=UrgencyTier.parse(config.default_urgency)),
    )


@dataclass(frozen=True, slots=True)
class ResolvedPosition:
    position: Position
    acquired: bool


class RecommendationCache:
    """Holds at most one recommendation set and refreshes it on demand.

    Refreshes are single-flight: concurrent ``get()`` calls share the one
    in-flight refresh task instead of starting their own. A refresh always
    completes with a usable set; degraded results carry ``fallback_used``.
    """

    def __init__(
        self,
        locator: GeoPositionProvider,
        generator: RecommendationGenerator,
        catalog: ProviderCatalog,
        *,
        ttl: timedelta = timedelta(minutes=30),
        drift_threshold_km: float = 5.0,
        max_distance_km: float = 50.0,
        default_criteria: MatchCriteria | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.locator = locator
        self.generator = generator
        self.catalog = catalog
        self.ttl = ttl
        self.drift_threshold_km = drift_threshold_km
        self.max_distance_km = max_distance_km
        self.default_criteria = default_criteria or MatchCriteria()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._entry: Optional[CacheEntry] = None
        self._entry_generation = 0
        self._generation = 0
        self._pending: Optional[tuple[asyncio.Task, MatchCriteria]] = None
        self._manual_position: Optional[Position] = None
        self.refresh_count = 0

    @property
    def state(self) -> str:
        if self._pending is not None:
            return "fetching"
        if self._entry is None:
            return "uninitialized"
        return "valid"

    @property
    def cached_set(self) -> Optional[RecommendationSet]:
        entry = self._entry
        return entry.set if entry is not None else None

    @property
    def manual_position(self) -> Optional[Position]:
        return self._manual_position

    def invalidate(self) -> None:
        """Force the next ``get()`` to refresh regardless of age or drift."""
        self._generation += 1

    def clear_cache(self) -> None:
        """Drop the cached set and any manual location override."""
        self._entry = None
        self._manual_position = None
        self._generation += 1
        logger.info("Recommendation cache cleared")

    async def get(self, criteria: MatchCriteria | None = None, force_refresh: bool = False) -> RecommendationSet:
        criteria = criteria or self.default_criteria
        while True:
            if self._pending is not None:
                task, task_criteria = self._pending
                result = await asyncio.shield(task)
                if task_criteria == criteria:
                    return result
                continue

            entry = self._entry
            if force_refresh or not self._is_fresh(entry, criteria):
                return await self._start_refresh(criteria)

            current = await self._resolve_position(wait=False)
            if self._pending is not None or self._entry is not entry:
                # Another caller refreshed while the position was being resolved.
                continue
            if not self._has_drifted(entry.position_at_fetch, current.position):
                logger.debug("Serving cached recommendations")
                return entry.set
            # Without a fix in hand the refresh does its own bounded wait.
            return await self._start_refresh(criteria, current if current.acquired else None)

    async def get_recommendations(
        self,
        criteria: MatchCriteria | None = None,
        force_refresh: bool = False,
    ) -> RecommendationSet:
        return await self.get(criteria, force_refresh=force_refresh)

    async def update_manual_location(
        self,
        text: str,
        criteria: MatchCriteria | None = None,
    ) -> RecommendationSet:
        """Pin a user-typed location and refresh recommendations for it."""
        position = self.locator.manual_position(text)
        logger.info(f"Manual location set to '{position.address.formatted}' (city={position.address.city})")
        self._manual_position = position
        self.invalidate()
        criteria = criteria or self.default_criteria
        while self._pending is not None:
            await asyncio.shield(self._pending[0])
        return await self._start_refresh(criteria, ResolvedPosition(position=position, acquired=True))

    def filter_cached(
        self,
        specialization: str = ALL_SPECIALIZATIONS,
        urgency: UrgencyTier | str = UrgencyTier.HIGH,
        limit: int = 3,
    ) -> RecommendationSet:
        """Narrow the cached set to a situation without any I/O.

        A provider fits when it handles the specialization and its own
        urgency tier is at least the requested one.
        """
        tier = UrgencyTier.parse(urgency, default=UrgencyTier.HIGH)
        target = normalize_specialization(specialization or ALL_SPECIALIZATIONS)
        criteria = MatchCriteria(specialization=target, urgency_tier=tier)
        entry = self._entry
        if entry is None:
            return self.catalog.builtin_fallback_set(Position.unknown(), criteria, self._clock())

        selected = [
            ranked
            for ranked in entry.set.providers
            if (
                target == ALL_SPECIALIZATIONS
                or ranked.provider.declares(target)
                or ranked.provider.declares(ALL_SPECIALIZATIONS)
            )
            and ranked.provider.urgency_tier.rank >= tier.rank
        ]
        if not selected:
            return replace(
                entry.set,
                providers=(RankedProvider(provider=self.catalog.fallback),),
                fallback_used=True,
                criteria=criteria,
            )
        return replace(entry.set, providers=tuple(selected[:limit]), criteria=criteria)

    def status(self) -> dict[str, Any]:
        entry = self._entry
        payload: dict[str, Any] = {
            "state": self.state,
            "refreshing": self._pending is not None,
            "refresh_count": self.refresh_count,
            "manual_override": self._manual_position is not None,
            "age_seconds": None,
            "expired": None,
            "position_source": None,
            "fallback_used": None,
        }
        if entry is not None:
            age = self._clock() - entry.fetched_at
            payload.update(
                age_seconds=round(age.total_seconds(), 3),
                expired=not self._is_fresh(entry, entry.set.criteria),
                position_source=entry.position_at_fetch.source.value,
                fallback_used=entry.set.fallback_used,
            )
        return payload

    def _is_fresh(self, entry: Optional[CacheEntry], criteria: MatchCriteria) -> bool:
        if entry is None:
            return False
        if self._entry_generation != self._generation:
            return False
        if entry.set.criteria != criteria:
            return False
        return self._clock() - entry.fetched_at < self.ttl

    def _has_drifted(self, cached: Position, current: Position) -> bool:
        if cached.coordinates is not None and current.coordinates is not None:
            moved = distance_km(cached.coordinates, current.coordinates)
            logger.debug(f"Position moved {moved:.3f} km since last fetch")
            return round(moved, _DRIFT_PRECISION) > self.drift_threshold_km

        cached_city = normalize_city(cached.address.city)
        current_city = normalize_city(current.address.city)
        if cached_city is not None and current_city is not None:
            return cached_city != current_city
        if cached.source is PositionSource.MANUAL and current.source is PositionSource.MANUAL:
            return cached.address.formatted.casefold() != current.address.formatted.casefold()
        return True

    def _last_known_position(self) -> Optional[Position]:
        entry = self._entry
        if entry is None or entry.position_at_fetch.coordinates is None:
            return None
        return entry.position_at_fetch.as_cached()

    async def _resolve_position(self, wait: bool = True) -> ResolvedPosition:
        """Manual override, then the device, then the last known coordinates.

        Validity checks pass ``wait=False`` so a cache hit never blocks on
        the device.
        """
        if self._manual_position is not None:
            return ResolvedPosition(position=self._manual_position, acquired=True)
        try:
            position = await self.locator.acquire(wait=wait)
        except PositionUnavailable as exc:
            last_known = self._last_known_position()
            if last_known is not None:
                logger.info(f"Using last known position after acquisition failure ({exc.reason})")
                return ResolvedPosition(position=last_known, acquired=False)
            return ResolvedPosition(position=Position.unknown(), acquired=False)
        return ResolvedPosition(position=position, acquired=True)

    def _start_refresh(self, criteria: MatchCriteria, resolved: ResolvedPosition | None = None) -> asyncio.Future:
        task = asyncio.ensure_future(self._refresh(criteria, resolved))
        self._pending = (task, criteria)
        return asyncio.shield(task)

    async def _fetch_candidates(self, position: Position, criteria: MatchCriteria) -> Optional[CandidateBatch]:
        lookup = position
        if position.coordinates is None and normalize_city(position.address.city) is None:
            lookup = position if position.source is PositionSource.MANUAL else None
        try:
            return await self.generator.fetch_candidates(lookup, criteria)
        except CandidateFetchFailed as exc:
            logger.warning(f"Candidate fetch failed: {exc}")
        except Exception:
            logger.exception("Recommendation generator raised an unexpected error")
        return None

    async def _refresh(self, criteria: MatchCriteria, resolved: ResolvedPosition | None) -> RecommendationSet:
        generation = self._generation
        try:
            self.refresh_count += 1
            logger.info(
                f"Refreshing recommendations (specialization={criteria.specialization}, "
                f"urgency={criteria.urgency_tier.value})"
            )
            resolved = resolved or await self._resolve_position()
            position = resolved.position
            batch = await self._fetch_candidates(position, criteria)
            now = self._clock()

            if batch is None and not resolved.acquired:
                logger.warning("Position and candidates both unavailable; serving built-in fallback contacts")
                recommendation_set = self.catalog.builtin_fallback_set(position, criteria, now)
            else:
                recommendation_set = self._rank(batch, position, criteria, now)

            self._entry = CacheEntry(set=recommendation_set, fetched_at=now, position_at_fetch=position)
            self._entry_generation = generation
            logger.info(
                f"Cached {len(recommendation_set.providers)} recommendation(s) "
                f"(source={position.source.value}, fallback={recommendation_set.fallback_used})"
            )
            return recommendation_set
        finally:
            if self._pending is not None and self._pending[0] is asyncio.current_task():
                self._pending = None

    def _rank(
        self,
        batch: Optional[CandidateBatch],
        position: Position,
        criteria: MatchCriteria,
        now: datetime,
    ) -> RecommendationSet:
        providers = batch.providers if batch is not None else ()
        try:
            result = match(
                providers,
                criteria,
                position,
                fallback=self.catalog.fallback,
                max_distance_km=self.max_distance_km,
                default_region=self.locator.default_region,
            )
        except NoCandidatesMatched as exc:
            logger.warning(f"Matcher produced no candidates: {exc}")
            return self.catalog.builtin_fallback_set(position, criteria, now)

        guidance = batch.guidance if batch is not None else ()
        if not guidance and result.fallback_used:
            guidance = self.catalog.fallback_guidance
        return RecommendationSet(
            position=position,
            providers=result.providers,
            generated_at=now,
            fallback_used=result.fallback_used,
            criteria=criteria,
            guidance=guidance,
        )


def build_position_source(config: Settings | None = None) -> PositionSourceProtocol:
    config = config or default_settings
    if config.has_static_position:
        return StaticPositionSource(
            latitude=config.static_latitude,
            longitude=config.static_longitude,
            accuracy=config.static_accuracy_m,
        )
    return ReportedPositionSource(max_age_seconds=config.position_max_age_seconds)


def build_recommendation_cache(
    config: Settings | None = None,
    *,
    source: PositionSourceProtocol | None = None,
    generator: RecommendationGenerator | None = None,
    catalog: ProviderCatalog | None = None,
) -> RecommendationCache:
    """Wire a cache from configuration; explicit collaborators take precedence."""
    config = config or default_settings
    catalog = catalog or load_catalog(config.catalog_file)
    geocoder = BigDataCloudGeocoder(
        base_url=config.reverse_geocode_url,
        timeout_seconds=config.reverse_geocode_timeout_seconds,
    ) if config.reverse_geocode_url else None
    locator = GeoPositionProvider(
        source=source or build_position_source(config),
        geocoder=geocoder,
        timeout_seconds=config.position_timeout_seconds,
        default_region=config.default_region,
    )
    return RecommendationCache(
        locator=locator,
        generator=generator or build_generator(catalog, config),
        catalog=catalog,
        ttl=timedelta(minutes=config.cache_ttl_minutes),
        drift_threshold_km=config.drift_threshold_km,
        max_distance_km=config.max_distance_km,
        default_criteria=make_criteria(config=config),
    )
