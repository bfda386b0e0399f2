import asyncio

import httpx
import pytest

from conftest import FakeClock, FixedCityGeocoder
from rescue_locator.errors import (
    GeocodeUnavailable,
    LocationUnavailable,
    PermissionDenied,
    PositionTimeout,
    PositionUnavailable,
)
from rescue_locator.models.domain import Address, Coordinates, Position, PositionSource
from rescue_locator.services.location import (
    BigDataCloudGeocoder,
    GeoPositionProvider,
    ReportedPositionSource,
    StaticPositionSource,
    describe_position,
)


class FailingGeocoder:
    async def reverse(self, coordinates: Coordinates) -> Address:
        raise GeocodeUnavailable("service down")


@pytest.mark.asyncio
async def test_acquire_labels_gps_fix_with_reverse_geocoded_address():
    locator = GeoPositionProvider(
        source=StaticPositionSource(19.0760, 72.8777, accuracy=20.0),
        geocoder=FixedCityGeocoder("Mumbai"),
    )

    position = await locator.acquire()

    assert position.source is PositionSource.GPS
    assert position.coordinates == Coordinates(19.0760, 72.8777)
    assert position.accuracy_m == 20.0
    assert position.address.city == "Mumbai"


@pytest.mark.asyncio
async def test_geocode_failure_keeps_coordinates_without_label():
    locator = GeoPositionProvider(source=StaticPositionSource(19.0760, 72.8777), geocoder=FailingGeocoder())

    position = await locator.acquire()

    assert position.source is PositionSource.GPS
    assert position.coordinates is not None
    assert position.address.formatted == "Current Location"
    assert position.address.city is None


@pytest.mark.asyncio
async def test_permission_denied_is_raised_immediately():
    source = ReportedPositionSource()
    source.report_error("permission_denied")
    locator = GeoPositionProvider(source=source, timeout_seconds=5.0)

    with pytest.raises(PermissionDenied):
        await locator.acquire()
    assert source.permission_state == "denied"


@pytest.mark.asyncio
async def test_missing_fix_times_out():
    locator = GeoPositionProvider(source=ReportedPositionSource(), timeout_seconds=0.05)

    with pytest.raises(PositionTimeout) as excinfo:
        await locator.acquire()
    assert isinstance(excinfo.value, PositionUnavailable)
    assert excinfo.value.reason == "timeout"


@pytest.mark.asyncio
async def test_reported_fix_wakes_pending_reader():
    source = ReportedPositionSource()
    locator = GeoPositionProvider(source=source, geocoder=FixedCityGeocoder("Pune"), timeout_seconds=2.0)

    pending = asyncio.ensure_future(locator.acquire())
    await asyncio.sleep(0)
    source.report_fix(18.5204, 73.8567, 30.0)
    position = await pending

    assert position.coordinates == Coordinates(18.5204, 73.8567)
    assert source.permission_state == "granted"


@pytest.mark.asyncio
async def test_stale_fix_is_not_reused():
    clock = FakeClock()
    source = ReportedPositionSource(max_age_seconds=300, clock=clock)
    source.report_fix(18.5204, 73.8567, 30.0)
    clock.advance(seconds=301)
    locator = GeoPositionProvider(source=source, timeout_seconds=0.05)

    with pytest.raises(PositionTimeout):
        await locator.acquire()


@pytest.mark.asyncio
async def test_acquire_without_waiting_fails_fast_on_stale_fix():
    clock = FakeClock()
    source = ReportedPositionSource(max_age_seconds=300, clock=clock)
    source.report_fix(18.5204, 73.8567, 30.0)
    clock.advance(minutes=6)
    locator = GeoPositionProvider(source=source, timeout_seconds=5.0)

    with pytest.raises(LocationUnavailable):
        await asyncio.wait_for(locator.acquire(wait=False), timeout=0.5)

    source.report_fix(18.5300, 73.8600, 10.0)
    position = await locator.acquire(wait=False)
    assert position.coordinates == Coordinates(18.5300, 73.8600)


def test_peek_raises_reported_error():
    source = ReportedPositionSource()
    source.report_error("permission_denied")

    with pytest.raises(PermissionDenied):
        source.peek()


@pytest.mark.asyncio
async def test_unexpected_geocoder_error_keeps_coordinates_without_label():
    class ExplodingGeocoder:
        async def reverse(self, coordinates: Coordinates) -> Address:
            raise RuntimeError("unexpected payload")

    locator = GeoPositionProvider(source=StaticPositionSource(19.0760, 72.8777), geocoder=ExplodingGeocoder())

    position = await locator.acquire()

    assert position.source is PositionSource.GPS
    assert position.coordinates == Coordinates(19.0760, 72.8777)
    assert position.address.formatted == "Current Location"


@pytest.mark.asyncio
async def test_unexpected_source_error_becomes_location_unavailable():
    class BrokenSource:
        def peek(self):
            raise OSError("sensor bus error")

        async def read(self):
            raise OSError("sensor bus error")

    locator = GeoPositionProvider(source=BrokenSource(), timeout_seconds=0.5)

    with pytest.raises(LocationUnavailable) as excinfo:
        await locator.acquire()
    assert excinfo.value.reason == "unavailable"
    with pytest.raises(LocationUnavailable):
        await locator.acquire(wait=False)


def test_reported_fix_clears_previous_error():
    source = ReportedPositionSource()
    source.report_error("unavailable")
    source.report_fix(12.9716, 77.5946, 10.0)

    assert source.permission_state == "granted"
    assert source.latest_fix.latitude == 12.9716


def test_unknown_error_kind_is_rejected():
    with pytest.raises(ValueError):
        ReportedPositionSource().report_error("gremlins")


def test_manual_position_extracts_city():
    locator = GeoPositionProvider()

    position = locator.manual_position("  Bandra,   Bombay ")

    assert position.source is PositionSource.MANUAL
    assert position.coordinates is None
    assert position.address.formatted == "Bandra, Bombay"
    assert position.address.city == "mumbai"


def test_manual_position_rejects_blank_text():
    with pytest.raises(ValueError):
        GeoPositionProvider().manual_position("   ")


def test_gps_position_requires_coordinates():
    with pytest.raises(ValueError):
        Position(coordinates=None, address=Address("x"), accuracy_m=5.0, source=PositionSource.GPS)


def test_estimate_centroid_uses_configured_default_region():
    locator = GeoPositionProvider(default_region="jaipur")

    assert locator.estimate_centroid("Atlantis") == Coordinates(26.9124, 75.7873)


def test_describe_position():
    gps = Position(
        coordinates=Coordinates(19.0, 72.8),
        address=Address("Andheri, Mumbai", city="Mumbai"),
        accuracy_m=18.4,
        source=PositionSource.GPS,
    )

    assert describe_position(gps) == "Andheri, Mumbai (GPS: 18m accuracy)"
    assert describe_position(gps.as_cached()) == "Andheri, Mumbai (last known location)"
    assert describe_position(None) == "Location unavailable"


@pytest.mark.asyncio
async def test_bigdatacloud_geocoder_maps_payload_to_address():
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(
            status_code=200,
            json={
                "city": "Mumbai",
                "locality": "Andheri",
                "principalSubdivision": "Maharashtra",
                "countryName": "India",
            },
        )

    transport = httpx.MockTransport(handler)
    geocoder = BigDataCloudGeocoder(
        base_url="https://geocode.example.com/reverse",
        client_factory=lambda: httpx.AsyncClient(transport=transport, timeout=5.0),
    )

    address = await geocoder.reverse(Coordinates(19.1364, 72.8296))

    assert seen["latitude"] == "19.1364"
    assert seen["localityLanguage"] == "en"
    assert address.city == "Mumbai"
    assert address.state == "Maharashtra"
    assert address.formatted == "Andheri, Maharashtra, India"


@pytest.mark.asyncio
async def test_bigdatacloud_geocoder_wraps_http_errors():
    transport = httpx.MockTransport(lambda request: httpx.Response(status_code=503))
    geocoder = BigDataCloudGeocoder(
        base_url="https://geocode.example.com/reverse",
        client_factory=lambda: httpx.AsyncClient(transport=transport, timeout=5.0),
    )

    with pytest.raises(GeocodeUnavailable):
        await geocoder.reverse(Coordinates(19.1364, 72.8296))
