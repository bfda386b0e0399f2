import asyncio
import math
from datetime import datetime, timedelta, timezone

import pytest

from rescue_locator.data.catalog_repository import load_catalog
from rescue_locator.errors import POSITION_ERRORS, CandidateFetchFailed
from rescue_locator.models.domain import (
    Address,
    Coordinates,
    Provider,
    ProviderOrigin,
    UrgencyTier,
)
from rescue_locator.services.geospatial import EARTH_RADIUS_KM
from rescue_locator.services.location import DeviceFix
from rescue_locator.services.recommendations import CandidateBatch


def north_of(lat: float, lng: float, km: float) -> tuple[float, float]:
    return lat + math.degrees(km / EARTH_RADIUS_KM), lng


def make_provider(
    pid: str,
    *,
    specializations=("all",),
    is_24x7: bool = False,
    rating: float = 4.0,
    coordinates: Coordinates | None = None,
    city: str | None = None,
    urgency_tier: UrgencyTier = UrgencyTier.STANDARD,
) -> Provider:
    return Provider(
        id=pid,
        name=f"Provider {pid}",
        phone="+91-00-0000-0000",
        specializations=frozenset(specializations),
        availability_window="24/7" if is_24x7 else "9 AM - 5 PM",
        is_24x7=is_24x7,
        urgency_tier=urgency_tier,
        rating=rating,
        origin=ProviderOrigin.CATALOG,
        city=city,
        coordinates=coordinates,
    )


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class MovableSource:
    """Position source whose fix (or failure) the test controls."""

    def __init__(self, latitude: float = 28.6139, longitude: float = 77.2090) -> None:
        self.latitude = latitude
        self.longitude = longitude
        self.error: str | None = None
        self.reads = 0

    def move_to(self, latitude: float, longitude: float) -> None:
        self.latitude = latitude
        self.longitude = longitude

    def peek(self) -> DeviceFix:
        if self.error is not None:
            raise POSITION_ERRORS[self.error]()
        return DeviceFix(latitude=self.latitude, longitude=self.longitude, accuracy=15.0)

    async def read(self) -> DeviceFix:
        self.reads += 1
        return self.peek()


class FixedCityGeocoder:
    def __init__(self, city: str | None = "Delhi") -> None:
        self.city = city

    async def reverse(self, coordinates: Coordinates) -> Address:
        formatted = f"{self.city}, India" if self.city else "India"
        return Address(formatted=formatted, city=self.city, country="India")


class StubGenerator:
    """Returns a fixed batch and counts how often it was asked."""

    def __init__(self, providers=(), *, fail: bool = False, delay: float = 0.0) -> None:
        self.providers = tuple(providers)
        self.fail = fail
        self.delay = delay
        self.calls = 0
        self.positions = []

    async def fetch_candidates(self, position, criteria) -> CandidateBatch:
        self.calls += 1
        self.positions.append(position)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise CandidateFetchFailed("generator offline")
        return CandidateBatch(providers=self.providers)


@pytest.fixture
def catalog():
    return load_catalog()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
