"""Error taxonomy for position, geocoding and candidate failures."""

from __future__ import annotations


class RescueLocatorError(Exception):
    """Base class for all recoverable errors raised by the engine."""


class PositionUnavailable(RescueLocatorError):
    """The device position could not be obtained.

    Downstream code treats every subclass the same way; the reason only
    shows up in logs.
    """

    reason = "unavailable"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or f"Position unavailable ({self.reason})")


class PermissionDenied(PositionUnavailable):
    reason = "permission_denied"


class LocationUnavailable(PositionUnavailable):
    reason = "unavailable"


class PositionTimeout(PositionUnavailable):
    reason = "timeout"


POSITION_ERRORS: dict[str, type[PositionUnavailable]] = {
    PermissionDenied.reason: PermissionDenied,
    LocationUnavailable.reason: LocationUnavailable,
    PositionTimeout.reason: PositionTimeout,
}


class GeocodeUnavailable(RescueLocatorError):
    """Reverse geocoding failed; only the address label degrades."""


class CandidateFetchFailed(RescueLocatorError):
    """The recommendation generator errored or returned an unusable payload."""


class NoCandidatesMatched(RescueLocatorError):
    """Filtering produced nothing and no fallback provider was available."""
