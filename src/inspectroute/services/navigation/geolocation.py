"""Position fixes and the device geolocation contract."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Hashable, Optional, Protocol


class GeolocationErrorKind(IntEnum):
    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3


ERROR_MESSAGES = {
    GeolocationErrorKind.PERMISSION_DENIED: "Location access denied. Enable location permissions in your browser settings.",
    GeolocationErrorKind.POSITION_UNAVAILABLE: "Location unavailable. Check that location services are enabled.",
    GeolocationErrorKind.TIMEOUT: "Location request timed out. Please try again.",
}


class GeolocationError(Exception):
    """Failure reported by the position source."""

    def __init__(self, kind: GeolocationErrorKind, detail: str | None = None) -> None:
        self.kind = GeolocationErrorKind(kind)
        self.detail = detail
        super().__init__(detail or self.user_message)

    @property
    def user_message(self) -> str:
        return ERROR_MESSAGES[self.kind]


@dataclass(slots=True, frozen=True)
class PositionFix:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    heading: Optional[float] = None
    speed: Optional[float] = None  # m/s
    timestamp: float = 0.0

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


FixCallback = Callable[[PositionFix], None]
ErrorCallback = Callable[[GeolocationError], None]


class GeolocationSource(Protocol):
    def get_current_position(self, on_fix: FixCallback, on_error: ErrorCallback) -> None: ...

    def watch_position(self, on_fix: FixCallback, on_error: ErrorCallback) -> Hashable: ...

    def clear_watch(self, handle: Hashable) -> None: ...
