"""HTTP client for reverse geocoding coordinates into addresses."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

import httpx

from ...config import settings
from ...errors import GeocodeUnavailable
from ...models.domain import Address, Coordinates

logger = logging.getLogger(__name__)


class ReverseGeocoder(Protocol):
    async def reverse(self, coordinates: Coordinates) -> Address: ...


class BigDataCloudGeocoder:
    """Client for the BigDataCloud ``reverse-geocode-client`` endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
    ) -> None:
        self.base_url = base_url or settings.reverse_geocode_url
        if not self.base_url:
            raise ValueError("Reverse geocoding URL is not configured.")
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.reverse_geocode_timeout_seconds
        )
        self._client_factory = client_factory

    async def reverse(self, coordinates: Coordinates) -> Address:
        params = {
            "latitude": coordinates.lat,
            "longitude": coordinates.lng,
            "localityLanguage": "en",
        }
        try:
            factory = self._client_factory or (lambda: httpx.AsyncClient(timeout=self.timeout_seconds))
            async with factory() as client:
                response = await client.get(self.base_url, params=params)
                response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as exc:
            raise GeocodeUnavailable("Reverse geocoding timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise GeocodeUnavailable(
                f"Reverse geocoding returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise GeocodeUnavailable(f"Reverse geocoding request failed: {exc}") from exc
        except ValueError as exc:
            raise GeocodeUnavailable("Reverse geocoding returned invalid JSON") from exc

        if not isinstance(data, dict):
            raise GeocodeUnavailable("Reverse geocoding returned an unexpected payload")
        return _address_from_payload(data)


def _address_from_payload(data: dict) -> Address:
    city = data.get("city") or data.get("locality") or None
    state = data.get("principalSubdivision") or None
    country = data.get("countryName") or None
    parts = [part for part in (data.get("locality") or city, state, country) if part]
    formatted = ", ".join(parts) if parts else "Unknown Location"
    return Address(formatted=formatted, city=city, state=state, country=country)
