"""Device position sources.

The engine never talks to GPS hardware itself. A client device reports its
fixes (or the error it got from its own geolocation API) and the provider
reads the most recent usable one through a ``PositionSourceProtocol``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from ...errors import POSITION_ERRORS, LocationUnavailable, PermissionDenied, PositionUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DeviceFix:
    latitude: float
    longitude: float
    accuracy: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude out of range: {self.longitude}")
        if self.accuracy < 0:
            raise ValueError(f"Accuracy must be non-negative: {self.accuracy}")


class PositionSourceProtocol(Protocol):
    async def read(self) -> DeviceFix:
        """Return a current fix or raise ``PositionUnavailable``."""
        ...

    def peek(self) -> DeviceFix:
        """Return a current fix without waiting, or raise ``PositionUnavailable``."""
        ...


class StaticPositionSource:
    """Fixed coordinates, e.g. a kiosk or a dispatcher desk with a known address."""

    def __init__(self, latitude: float, longitude: float, accuracy: float = 0.0) -> None:
        self._fix = DeviceFix(latitude=latitude, longitude=longitude, accuracy=accuracy)

    def peek(self) -> DeviceFix:
        return DeviceFix(
            latitude=self._fix.latitude,
            longitude=self._fix.longitude,
            accuracy=self._fix.accuracy,
        )

    async def read(self) -> DeviceFix:
        return self.peek()


class ReportedPositionSource:
    """Latest fix relayed by the client device.

    ``read()`` returns a fix younger than ``max_age_seconds``. A reported
    ``permission_denied`` or ``unavailable`` error fails immediately until
    the next fix arrives; otherwise the reader waits for the next report and
    the caller's timeout bounds the wait. ``peek()`` never waits: with no
    fresh fix it raises the reported error or ``LocationUnavailable``.
    """

    def __init__(
        self,
        max_age_seconds: float = 300.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.max_age = timedelta(seconds=max_age_seconds)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._fix: Optional[DeviceFix] = None
        self._error: Optional[type[PositionUnavailable]] = None
        self._waiters: set[asyncio.Event] = set()

    @property
    def latest_fix(self) -> Optional[DeviceFix]:
        return self._fix

    @property
    def permission_state(self) -> str:
        if self._error is PermissionDenied:
            return "denied"
        if self._fix is not None:
            return "granted"
        return "prompt"

    def report_fix(self, latitude: float, longitude: float, accuracy: float) -> DeviceFix:
        fix = DeviceFix(latitude=latitude, longitude=longitude, accuracy=accuracy, timestamp=self._clock())
        self._fix = fix
        self._error = None
        self._wake()
        return fix

    def report_error(self, kind: str) -> None:
        error = POSITION_ERRORS.get(kind)
        if error is None:
            raise ValueError(f"Unknown position error kind '{kind}'.")
        logger.info(f"Device reported position error: {kind}")
        self._error = error
        self._wake()

    def _wake(self) -> None:
        for waiter in self._waiters:
            waiter.set()

    def _fresh_fix(self) -> Optional[DeviceFix]:
        if self._fix is None:
            return None
        if self._clock() - self._fix.timestamp > self.max_age:
            return None
        return self._fix

    def peek(self) -> DeviceFix:
        fix = self._fresh_fix()
        if fix is not None:
            return fix
        if self._error is not None:
            raise self._error()
        raise LocationUnavailable("No fresh device fix has been reported")

    async def read(self) -> DeviceFix:
        while True:
            fix = self._fresh_fix()
            if fix is not None:
                return fix
            if self._error is not None:
                raise self._error()
            waiter = asyncio.Event()
            self._waiters.add(waiter)
            try:
                await waiter.wait()
            finally:
                self._waiters.discard(waiter)


class UnconfiguredPositionSource:
    def peek(self) -> DeviceFix:
        raise LocationUnavailable("No position source is configured")

    async def read(self) -> DeviceFix:
        return self.peek()
