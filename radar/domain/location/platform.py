"""Interface of the host positioning API.

Error codes follow the W3C Geolocation API so that a browser bridge can pass
them through untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol

PERMISSION_DENIED = 1
POSITION_UNAVAILABLE = 2
TIMEOUT = 3


@dataclass(frozen=True, slots=True)
class RawPosition:
    latitude: float
    longitude: float
    accuracy: Optional[float]
    timestamp_ms: int


class PositionError(Exception):
    """Failure reported by the platform, carrying its numeric code."""

    def __init__(self, code: int, message: str = "") -> None:
        super().__init__(message or f"position error {code}")
        self.code = code
        self.message = message


PositionCallback = Callable[[RawPosition], None]
PositionErrorCallback = Callable[[PositionError], None]


class GeolocationPlatform(Protocol):
    def is_supported(self) -> bool:
        ...

    def is_secure_context(self) -> bool:
        ...

    async def current_position(
        self, *, high_accuracy: bool, timeout_ms: int, maximum_age_ms: int
    ) -> RawPosition:
        ...

    def watch_position(
        self,
        on_position: PositionCallback,
        on_error: PositionErrorCallback,
        *,
        high_accuracy: bool,
        timeout_ms: int,
        maximum_age_ms: int,
    ) -> int:
        ...

    def clear_watch(self, watch_id: int) -> None:
        ...

    async def query_permission(self) -> Optional[str]:
        """Return "granted", "denied" or "prompt"; None when the platform has no query API."""
        ...
