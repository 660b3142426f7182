"""Single entry point for one-shot and continuous location acquisition."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from radar.domain.location import errors
from radar.domain.location.models import COORDINATE_PRECISION, Coordinate, now_ms
from radar.domain.location.platform import (
    PERMISSION_DENIED,
    POSITION_UNAVAILABLE,
    TIMEOUT,
    GeolocationPlatform,
    PositionError,
    RawPosition,
)
from radar.obs import metrics as obs_metrics
from radar.settings import settings

logger = logging.getLogger(__name__)

CoordinateCallback = Callable[[Coordinate], None]
LocationErrorCallback = Callable[[errors.LocationError], None]


def map_platform_error(exc: BaseException) -> errors.LocationError:
    """Translate anything the platform raised into the location error taxonomy."""
    if isinstance(exc, errors.LocationError):
        return exc
    if isinstance(exc, PositionError):
        if exc.code == PERMISSION_DENIED:
            return errors.PermissionDenied()
        if exc.code == POSITION_UNAVAILABLE:
            return errors.Unavailable()
        if exc.code == TIMEOUT:
            return errors.Timeout()
        return errors.Unknown(exc.message or str(exc))
    if isinstance(exc, asyncio.TimeoutError):
        return errors.Timeout()
    return errors.Unknown(str(exc) or exc.__class__.__name__)


@dataclass(frozen=True)
class Fix:
    coordinate: Coordinate
    # False when the answer came from the provider cache
    from_platform: bool


@dataclass
class WatchHandle:
    watch_id: int
    released: bool = False


class LocationProvider:
    def __init__(self, platform: GeolocationPlatform, *, high_accuracy: Optional[bool] = None) -> None:
        self._platform = platform
        self._high_accuracy = settings.high_accuracy if high_accuracy is None else high_accuracy
        self._last_fix: Optional[Coordinate] = None

    @property
    def last_fix(self) -> Optional[Coordinate]:
        return self._last_fix

    def _ensure_available(self) -> None:
        if not self._platform.is_supported():
            raise errors.Unsupported()
        if not self._platform.is_secure_context():
            raise errors.InsecureContext()

    def _to_coordinate(self, raw: RawPosition) -> Coordinate:
        # Precision is dropped here so that no caller ever sees the raw fix.
        return Coordinate(
            latitude=raw.latitude,
            longitude=raw.longitude,
            accuracy=raw.accuracy,
            captured_at_ms=raw.timestamp_ms,
        ).rounded(COORDINATE_PRECISION)

    async def get_current_coordinate(
        self,
        timeout_ms: Optional[int] = None,
        max_age_ms: Optional[int] = None,
    ) -> Coordinate:
        """Return the current position, served from cache when it is fresh enough.

        Raises a ``LocationError`` subclass on every failure.
        """
        fix = await self.get_current_fix(timeout_ms, max_age_ms)
        return fix.coordinate

    async def get_current_fix(
        self,
        timeout_ms: Optional[int] = None,
        max_age_ms: Optional[int] = None,
    ) -> Fix:
        """Like ``get_current_coordinate`` but reports whether the platform answered."""
        timeout_ms = settings.location_timeout_ms if timeout_ms is None else timeout_ms
        max_age_ms = settings.location_max_age_ms if max_age_ms is None else max_age_ms
        try:
            self._ensure_available()
        except errors.LocationError as exc:
            obs_metrics.inc_location_error(exc.kind.value)
            raise

        cached = self._last_fix
        if cached is not None and max_age_ms > 0 and cached.age_ms() <= max_age_ms:
            return Fix(cached, from_platform=False)

        try:
            raw = await asyncio.wait_for(
                self._platform.current_position(
                    high_accuracy=self._high_accuracy,
                    timeout_ms=timeout_ms,
                    maximum_age_ms=max_age_ms,
                ),
                timeout=max(timeout_ms, 0) / 1000,
            )
            coordinate = self._to_coordinate(raw)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = map_platform_error(exc)
            obs_metrics.inc_location_error(error.kind.value)
            logger.warning("location request failed kind=%s", error.kind.value)
            if error is exc:
                raise
            raise error from exc

        obs_metrics.inc_reading("oneshot")
        self._last_fix = coordinate
        return Fix(coordinate, from_platform=True)

    def watch(self, on_update: CoordinateCallback, on_error: LocationErrorCallback) -> WatchHandle:
        """Subscribe to every raw reading the platform delivers. Never blocks."""
        self._ensure_available()

        def _on_position(raw: RawPosition) -> None:
            try:
                coordinate = self._to_coordinate(raw)
            except ValueError as exc:
                _on_error(exc)
                return
            obs_metrics.inc_reading("watch")
            self._last_fix = coordinate
            on_update(coordinate)

        def _on_error(exc: BaseException) -> None:
            error = map_platform_error(exc)
            obs_metrics.inc_location_error(error.kind.value)
            on_error(error)

        watch_id = self._platform.watch_position(
            _on_position,
            _on_error,
            high_accuracy=self._high_accuracy,
            timeout_ms=settings.watch_timeout_ms,
            maximum_age_ms=settings.watch_max_age_ms,
        )
        obs_metrics.watch_started()
        logger.info("location watch started watch_id=%s", watch_id)
        return WatchHandle(watch_id=watch_id)

    def stop_watch(self, handle: Optional[WatchHandle]) -> None:
        if handle is None or handle.released:
            return
        handle.released = True
        self._platform.clear_watch(handle.watch_id)
        obs_metrics.watch_stopped()
        logger.info("location watch stopped watch_id=%s", handle.watch_id)
