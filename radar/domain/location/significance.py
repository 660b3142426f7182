"""Significant-change filter and trailing-edge debounce."""

from __future__ import annotations

import asyncio
from typing import Callable, Generic, Optional, TypeVar

from radar.domain.location.models import Coordinate
from radar.domain.proximity.geo import distance_km
from radar.settings import settings

T = TypeVar("T")

DEFAULT_THRESHOLD_KM = 0.1


def accept(previous: Optional[Coordinate], candidate: Coordinate, threshold_km: float = DEFAULT_THRESHOLD_KM) -> bool:
    """Return True when ``candidate`` moved far enough from ``previous`` to act on it."""
    if previous is None:
        return True
    return distance_km(previous, candidate) >= threshold_km


class Debouncer(Generic[T]):
    """Runs ``callback`` with the latest argument once calls stop for ``delay_ms``.

    Must be used from inside a running event loop.
    """

    def __init__(self, callback: Callable[[T], None], delay_ms: int) -> None:
        self._callback = callback
        self._delay_s = max(0, delay_ms) / 1000
        self._handle: Optional[asyncio.TimerHandle] = None
        self._latest: Optional[T] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self, value: T) -> None:
        self.cancel()
        self._latest = value
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay_s, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._latest = None

    def _fire(self) -> None:
        value = self._latest
        self._handle = None
        self._latest = None
        self._callback(value)  # type: ignore[arg-type]


def debounce(callback: Callable[[T], None], delay_ms: Optional[int] = None) -> Debouncer[T]:
    return Debouncer(callback, settings.debounce_ms if delay_ms is None else delay_ms)
