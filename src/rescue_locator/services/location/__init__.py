"""Position acquisition services."""

from .geocoder import BigDataCloudGeocoder, ReverseGeocoder
from .provider import GeoPositionProvider, describe_position
from .sources import (
    DeviceFix,
    PositionSourceProtocol,
    ReportedPositionSource,
    StaticPositionSource,
    UnconfiguredPositionSource,
)

__all__ = [
    "BigDataCloudGeocoder",
    "ReverseGeocoder",
    "GeoPositionProvider",
    "describe_position",
    "DeviceFix",
    "PositionSourceProtocol",
    "ReportedPositionSource",
    "StaticPositionSource",
    "UnconfiguredPositionSource",
]
