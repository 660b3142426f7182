"""Location error taxonomy.

Every failure path of the location provider maps onto exactly one of the
classes below. Raw platform messages only survive inside ``Unknown``.
"""

from __future__ import annotations

from enum import Enum

from radar.domain.exceptions import RadarError


class LocationErrorKind(str, Enum):
    UNSUPPORTED = "unsupported"
    INSECURE_CONTEXT = "insecure_context"
    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class LocationError(RadarError):
    """Base class for location acquisition failures."""

    kind: LocationErrorKind = LocationErrorKind.UNKNOWN
    reason = LocationErrorKind.UNKNOWN.value
    user_message: str = "Failed to get your location. Unknown error occurred."

    @property
    def retryable(self) -> bool:
        return self.kind in (LocationErrorKind.UNAVAILABLE, LocationErrorKind.TIMEOUT, LocationErrorKind.UNKNOWN)


class Unsupported(LocationError):
    kind = LocationErrorKind.UNSUPPORTED
    reason = kind.value
    user_message = "Geolocation is not supported on this device."


class InsecureContext(LocationError):
    kind = LocationErrorKind.INSECURE_CONTEXT
    reason = kind.value
    user_message = "Location access requires a secure connection (HTTPS)."


class PermissionDenied(LocationError):
    kind = LocationErrorKind.PERMISSION_DENIED
    reason = kind.value
    user_message = (
        "Location access was denied. Please enable location permissions in your browser settings."
    )


class Unavailable(LocationError):
    kind = LocationErrorKind.UNAVAILABLE
    reason = kind.value
    user_message = "Location information is unavailable. Please check your device settings."


class Timeout(LocationError):
    kind = LocationErrorKind.TIMEOUT
    reason = kind.value
    user_message = "Location request timed out. Please try again."


class Unknown(LocationError):
    kind = LocationErrorKind.UNKNOWN
    reason = kind.value

    def __init__(self, message: str | None = None) -> None:
        super().__init__()
        self.message = message or "Unknown error occurred."

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return f"Failed to get your location. {self.message}"

    def __str__(self) -> str:
        return f"{self.reason}: {self.message}"
