"""Position acquisition, reverse geocoding and distance helpers."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ...config import settings
from ...errors import GeocodeUnavailable, LocationUnavailable, PositionTimeout, PositionUnavailable
from ...models.domain import Address, Coordinates, Position, PositionSource
from ..geospatial import distance_km, estimate_centroid, extract_city
from .geocoder import ReverseGeocoder
from .sources import PositionSourceProtocol, UnconfiguredPositionSource

UNLABELED_ADDRESS = "Current Location"

logger = logging.getLogger(__name__)


class GeoPositionProvider:
    """Acquire the caller's position and turn it into a labelled ``Position``."""

    def __init__(
        self,
        source: PositionSourceProtocol | None = None,
        geocoder: ReverseGeocoder | None = None,
        *,
        timeout_seconds: float | None = None,
        default_region: str | None = None,
    ) -> None:
        self.source = source or UnconfiguredPositionSource()
        self.geocoder = geocoder
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.position_timeout_seconds
        self.default_region = default_region or settings.default_region

    async def acquire(self, wait: bool = True) -> Position:
        """Read a device fix and label it.

        Raises ``PositionUnavailable`` (permission denied, unavailable or
        timeout); unexpected source errors surface as ``LocationUnavailable``.
        With ``wait=False`` only a fix that is already available is used.
        A failed reverse geocode never fails the acquisition.
        """
        try:
            if wait:
                fix = await asyncio.wait_for(self.source.read(), timeout=self.timeout_seconds)
            else:
                fix = self.source.peek()
        except asyncio.TimeoutError as exc:
            logger.warning(f"Position request timed out after {self.timeout_seconds:.1f}s")
            raise PositionTimeout() from exc
        except PositionUnavailable as exc:
            logger.warning(f"Position acquisition failed ({exc.reason}): {exc}")
            raise
        except Exception as exc:
            logger.exception("Position source failed unexpectedly")
            raise LocationUnavailable(f"Position source error: {exc}") from exc

        coordinates = Coordinates(lat=fix.latitude, lng=fix.longitude)
        try:
            address = await self.reverse_geocode(coordinates)
        except GeocodeUnavailable as exc:
            logger.warning(f"Reverse geocoding failed, keeping unlabeled coordinates: {exc}")
            address = Address(formatted=UNLABELED_ADDRESS)
        except Exception:
            logger.exception("Reverse geocoder raised an unexpected error")
            address = Address(formatted=UNLABELED_ADDRESS)

        return Position(
            coordinates=coordinates,
            address=address,
            accuracy_m=fix.accuracy,
            source=PositionSource.GPS,
            captured_at=fix.timestamp,
        )

    async def reverse_geocode(self, coordinates: Coordinates) -> Address:
        if self.geocoder is None:
            raise GeocodeUnavailable("No reverse geocoder is configured")
        return await self.geocoder.reverse(coordinates)

    @staticmethod
    def distance_km(a: Coordinates, b: Coordinates) -> float:
        return distance_km(a, b)

    def estimate_centroid(self, region: Optional[str]) -> Coordinates:
        return estimate_centroid(region, self.default_region)

    def manual_position(self, text: str) -> Position:
        """Position from a free-text location typed by the user."""
        cleaned = " ".join(text.split())
        if not cleaned:
            raise ValueError("Manual location must not be empty.")
        return Position(
            coordinates=None,
            address=Address(formatted=cleaned, city=extract_city(cleaned)),
            accuracy_m=None,
            source=PositionSource.MANUAL,
        )


def describe_position(position: Optional[Position]) -> str:
    """One-line description of a position for display next to the recommendations."""
    if position is None:
        return "Location unavailable"
    if position.source is PositionSource.GPS:
        return f"{position.address.formatted} (GPS: {position.accuracy_m:.0f}m accuracy)"
    if position.source is PositionSource.CACHED:
        return f"{position.address.formatted} (last known location)"
    return position.address.formatted
