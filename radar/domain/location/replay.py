"""Geolocation platform that replays a recorded track on the event loop."""

from __future__ import annotations

import asyncio
import itertools
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from radar.domain.location.models import now_ms
from radar.domain.location.platform import (
    PERMISSION_DENIED,
    POSITION_UNAVAILABLE,
    PositionCallback,
    PositionError,
    PositionErrorCallback,
    RawPosition,
)

logger = logging.getLogger(__name__)

_METERS_PER_RADIAN = 6_371_000


def displaced(latitude: float, longitude: float, *, east_m: float = 0.0, north_m: float = 0.0) -> tuple[float, float]:
    """Move a point by a local east/north offset in meters."""
    dlat = north_m / _METERS_PER_RADIAN
    dlon = east_m / (_METERS_PER_RADIAN * math.cos(math.radians(latitude)))
    return latitude + math.degrees(dlat), longitude + math.degrees(dlon)


@dataclass(frozen=True)
class TrackStep:
    offset_ms: int
    latitude: float = 0.0
    longitude: float = 0.0
    accuracy: Optional[float] = None
    # When set the step is delivered as a platform error instead of a position
    error_code: Optional[int] = None


class ReplayPlatform:
    """Feeds a fixed list of steps to watchers, relative to the moment they subscribe.

    One-shot requests answer with the first positional step.
    """

    def __init__(
        self,
        steps: Sequence[TrackStep],
        *,
        permission: Optional[str] = "granted",
        supported: bool = True,
        secure: bool = True,
    ) -> None:
        self.steps: List[TrackStep] = sorted(steps, key=lambda step: step.offset_ms)
        self.permission = permission
        self.supported = supported
        self.secure = secure
        self._ids = itertools.count(1)
        self._timers: Dict[int, List[asyncio.TimerHandle]] = {}

    @property
    def active_watches(self) -> int:
        return len(self._timers)

    def is_supported(self) -> bool:
        return self.supported

    def is_secure_context(self) -> bool:
        return self.secure

    async def query_permission(self) -> Optional[str]:
        return self.permission

    async def current_position(self, *, high_accuracy: bool, timeout_ms: int, maximum_age_ms: int) -> RawPosition:
        if self.permission == "denied":
            raise PositionError(PERMISSION_DENIED, "User denied Geolocation")
        for step in self.steps:
            if step.error_code is None:
                if self.permission == "prompt":
                    self.permission = "granted"
                return RawPosition(step.latitude, step.longitude, step.accuracy, now_ms())
        raise PositionError(POSITION_UNAVAILABLE, "track has no positions")

    def watch_position(
        self,
        on_position: PositionCallback,
        on_error: PositionErrorCallback,
        *,
        high_accuracy: bool,
        timeout_ms: int,
        maximum_age_ms: int,
    ) -> int:
        loop = asyncio.get_running_loop()
        watch_id = next(self._ids)
        timers: List[asyncio.TimerHandle] = []
        if self.permission == "denied":
            timers.append(loop.call_soon(on_error, PositionError(PERMISSION_DENIED, "User denied Geolocation")))
        else:
            for step in self.steps:
                timers.append(loop.call_later(step.offset_ms / 1000, self._deliver, step, on_position, on_error))
        self._timers[watch_id] = timers
        logger.debug("replay watch %s started steps=%s", watch_id, len(self.steps))
        return watch_id

    def clear_watch(self, watch_id: int) -> None:
        timers = self._timers.pop(watch_id, None)
        if not timers:
            return
        for timer in timers:
            timer.cancel()
        logger.debug("replay watch %s cleared", watch_id)

    @staticmethod
    def _deliver(step: TrackStep, on_position: PositionCallback, on_error: PositionErrorCallback) -> None:
        if step.error_code is not None:
            on_error(PositionError(step.error_code, "replayed error"))
            return
        on_position(RawPosition(step.latitude, step.longitude, step.accuracy, now_ms()))
