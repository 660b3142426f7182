"""Proximity radar: location tracking and co-located user matching."""

from radar.domain.exceptions import MatchError, PersistError, QueryFailed, RadarError, StoreError, Unauthenticated, WriteFailed
from radar.domain.location.errors import LocationError, LocationErrorKind
from radar.domain.location.models import Coordinate, PermissionState
from radar.domain.proximity.geo import MatchingBucket, bucket, distance_km
from radar.domain.proximity.models import TrackedUser
from radar.domain.radar.events import LocationFailed, NearbyUsersChanged, PermissionChanged, PersistFailed
from radar.domain.radar.orchestrator import RadarOrchestrator

__all__ = [
	"Coordinate",
	"LocationError",
	"LocationErrorKind",
	"LocationFailed",
	"MatchError",
	"MatchingBucket",
	"NearbyUsersChanged",
	"PermissionChanged",
	"PermissionState",
	"PersistError",
	"PersistFailed",
	"QueryFailed",
	"RadarError",
	"RadarOrchestrator",
	"StoreError",
	"TrackedUser",
	"Unauthenticated",
	"WriteFailed",
	"bucket",
	"distance_km",
]
