"""Bucket-equality proximity matching."""

from __future__ import annotations

import logging
import time
from typing import List, Optional

from radar.domain.exceptions import QueryFailed, StoreError, Unauthenticated
from radar.domain.location.models import Coordinate
from radar.domain.proximity.geo import USER_BUCKET_PRECISION, bucket, distance_km
from radar.domain.proximity.models import TrackedUser
from radar.domain.proximity.schemas import UserRecord
from radar.domain.proximity.store import RecordStore
from radar.obs import metrics as obs_metrics
from radar.settings import settings

logger = logging.getLogger(__name__)


class ProximityMatcher:
	distance_km = staticmethod(distance_km)

	def __init__(self, store: RecordStore) -> None:
		self._store = store

	async def find_nearby(self, self_id: Optional[str], coordinate: Coordinate, limit: Optional[int] = None) -> List[TrackedUser]:
		"""Return users sharing the caller's bucket, ordered by display name.

		Co-bucketed users are reported at distance 0; bucket granularity is
		the only distance two strangers learn about each other.
		"""
		if not self_id:
			raise Unauthenticated()
		limit = settings.nearby_limit if limit is None else limit
		if limit <= 0:
			return []
		target = bucket(coordinate, USER_BUCKET_PRECISION)
		started = time.perf_counter()
		try:
			records = await self._store.query_users_by_bucket(target, self_id, limit)
		except StoreError as exc:
			obs_metrics.inc_match("query_failed")
			raise QueryFailed(str(exc)) from exc
		finally:
			obs_metrics.observe_match(time.perf_counter() - started)

		users = [
			TrackedUser(
				user_id=record.user_id,
				display_name=record.display_name,
				coordinate=target.to_coordinate(),
				distance_km=0.0,
				has_real_location=True,
				bio=record.bio,
				avatar_url=record.avatar_url,
			)
			for record in records
			if record.user_id != self_id
		]
		users.sort(key=TrackedUser.sort_key)
		obs_metrics.inc_match("ok")
		logger.debug("nearby bucket=%s candidates=%s", target.key, len(users))
		return users[:limit]

	async def list_all(self, self_id: Optional[str], limit: Optional[int] = None) -> List[TrackedUser]:
		"""Everyone the store knows about, without any distance information."""
		if not self_id:
			raise Unauthenticated()
		limit = settings.fallback_limit if limit is None else limit
		if limit <= 0:
			return []
		try:
			records = await self._store.query_all_users(self_id, limit)
		except StoreError as exc:
			obs_metrics.inc_match("fallback_failed")
			raise QueryFailed(str(exc)) from exc
		obs_metrics.inc_match("fallback")
		return [_without_location(record) for record in records if record.user_id != self_id][:limit]


def _without_location(record: UserRecord) -> TrackedUser:
	return TrackedUser(
		user_id=record.user_id,
		display_name=record.display_name,
		coordinate=None,
		distance_km=None,
		has_real_location=False,
		bio=record.bio,
		avatar_url=record.avatar_url,
	)
