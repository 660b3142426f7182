"""Events published by the radar orchestrator to its subscribers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union

from radar.domain.exceptions import PersistError
from radar.domain.location.errors import LocationError
from radar.domain.location.models import Coordinate, PermissionState
from radar.domain.proximity.models import TrackedUser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NearbyUsersChanged:
	users: Tuple[TrackedUser, ...]
	coordinate: Optional[Coordinate]
	# "match", "fallback" or "initial"
	source: str


@dataclass(frozen=True)
class LocationFailed:
	error: LocationError
	# True when the failure ended an active watch session
	tracking_stopped: bool = False


@dataclass(frozen=True)
class PersistFailed:
	error: PersistError
	coordinate: Coordinate


@dataclass(frozen=True)
class PermissionChanged:
	state: PermissionState


RadarEvent = Union[NearbyUsersChanged, LocationFailed, PersistFailed, PermissionChanged]
Listener = Callable[[RadarEvent], None]


class Subscription:
	def __init__(self, hub: "EventHub", listener: Listener) -> None:
		self._hub = hub
		self._listener = listener
		self.active = True

	def unsubscribe(self) -> None:
		if not self.active:
			return
		self.active = False
		self._hub._remove(self._listener)


class EventHub:
	"""Synchronous fan-out. A failing listener never blocks the others."""

	def __init__(self, log: Optional[logging.Logger] = None) -> None:
		self._listeners: List[Listener] = []
		self._log = log or logger

	def subscribe(self, listener: Listener) -> Subscription:
		self._listeners.append(listener)
		return Subscription(self, listener)

	def _remove(self, listener: Listener) -> None:
		try:
			self._listeners.remove(listener)
		except ValueError:
			pass

	def clear(self) -> None:
		self._listeners.clear()

	def publish(self, event: RadarEvent) -> None:
		for listener in list(self._listeners):
			try:
				listener(event)
			except Exception:
				self._log.exception("radar listener failed event=%s", type(event).__name__)
