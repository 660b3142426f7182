"""Distance and bucketing primitives."""

from __future__ import annotations

import math
from dataclasses import dataclass

from radar.domain.location.models import Coordinate, round_half_up

EARTH_RADIUS_KM = 6371.0

USER_BUCKET_PRECISION = 3
# Coarser bucket used by post discovery. Never used for matching users.
POST_BUCKET_PRECISION = 2


def distance_km(a: Coordinate, b: Coordinate) -> float:
	"""Return the haversine great-circle distance between two coordinates in km."""

	if a.latitude == b.latitude and a.longitude == b.longitude:
		return 0.0
	phi1, phi2 = math.radians(a.latitude), math.radians(b.latitude)
	dphi = math.radians(b.latitude - a.latitude)
	dlambda = math.radians(b.longitude - a.longitude)
	h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
	# Float error can push h a hair outside [0, 1] near antipodes.
	h = min(1.0, max(0.0, h))
	return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def display_distance_km(value: float | None) -> float | None:
	if value is None:
		return None
	return round_half_up(value, 1)


@dataclass(frozen=True, slots=True)
class MatchingBucket:
	"""A coordinate rounded to a fixed number of decimals, used as an equality key."""

	latitude: float
	longitude: float
	precision: int = USER_BUCKET_PRECISION

	@property
	def key(self) -> str:
		return f"{self.latitude:.{self.precision}f}:{self.longitude:.{self.precision}f}"

	@classmethod
	def from_key(cls, key: str, precision: int = USER_BUCKET_PRECISION) -> "MatchingBucket":
		lat_raw, lon_raw = key.split(":", 1)
		return cls(latitude=float(lat_raw), longitude=float(lon_raw), precision=precision)

	def to_coordinate(self, captured_at_ms: int | None = None) -> Coordinate:
		if captured_at_ms is None:
			return Coordinate(latitude=self.latitude, longitude=self.longitude)
		return Coordinate(latitude=self.latitude, longitude=self.longitude, captured_at_ms=captured_at_ms)


def bucket(coordinate: Coordinate | MatchingBucket, precision: int = USER_BUCKET_PRECISION) -> MatchingBucket:
	return MatchingBucket(
		latitude=round_half_up(coordinate.latitude, precision),
		longitude=round_half_up(coordinate.longitude, precision),
		precision=precision,
	)


def co_bucketed(a: Coordinate, b: Coordinate, precision: int = USER_BUCKET_PRECISION) -> bool:
	return bucket(a, precision) == bucket(b, precision)
