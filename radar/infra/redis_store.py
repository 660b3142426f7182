"""Record store backed by redis hashes and per-bucket sets."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from redis.exceptions import RedisError

from radar.domain.exceptions import StoreError
from radar.domain.proximity.geo import USER_BUCKET_PRECISION, MatchingBucket
from radar.domain.proximity.schemas import UserRecord
from radar.infra.redis import redis_client

logger = logging.getLogger(__name__)

ALL_PROFILES_KEY = "profiles:all"


def _profile_key(user_id: str) -> str:
	return f"profile:{user_id}"


def _bucket_key(bucket_key: str) -> str:
	return f"bucket:users:{bucket_key}"


def _record_from_hash(user_id: str, raw: Dict[str, str]) -> UserRecord:
	return UserRecord(
		user_id=user_id,
		display_name=raw.get("display_name"),
		bio=raw.get("bio") or None,
		avatar_url=raw.get("avatar_url") or None,
		bucket_key=raw.get("bucket"),
		updated_at=raw.get("updated_at") or None,
	)


class RedisRecordStore:
	"""Stores each user's last bucket and indexes users by bucket.

	A user appears in at most one ``bucket:users:*`` set; moving to a new
	bucket removes them from the previous one. Writes are last-writer-wins.
	"""

	def __init__(self, client=redis_client) -> None:
		self._client = client

	async def register_profile(self, record: UserRecord) -> None:
		mapping = {
			"display_name": record.display_name,
			"bio": record.bio,
			"avatar_url": record.avatar_url,
		}
		try:
			await self._client.hset(_profile_key(record.user_id), mapping=mapping)
			await self._client.zadd(ALL_PROFILES_KEY, {record.user_id: time.time()}, nx=True)
		except RedisError as exc:
			raise StoreError("profile_write_failed") from exc
		if record.bucket is not None:
			await self.update_user_location(record.user_id, record.bucket)

	async def update_user_location(self, user_id: str, bucket: MatchingBucket) -> None:
		key = bucket.key
		try:
			previous = await self._client.hget(_profile_key(user_id), "bucket")
			if previous and previous != key:
				await self._client.srem(_bucket_key(previous), user_id)
			await self._client.sadd(_bucket_key(key), user_id)
			await self._client.hset(
				_profile_key(user_id),
				mapping={"bucket": key, "updated_at": datetime.now(timezone.utc).isoformat()},
			)
			await self._client.zadd(ALL_PROFILES_KEY, {user_id: time.time()}, nx=True)
		except RedisError as exc:
			raise StoreError("location_write_failed") from exc

	async def get_user_bucket(self, user_id: str) -> Optional[MatchingBucket]:
		try:
			raw = await self._client.hget(_profile_key(user_id), "bucket")
		except RedisError as exc:
			raise StoreError("location_read_failed") from exc
		if not raw:
			return None
		return MatchingBucket.from_key(raw, USER_BUCKET_PRECISION)

	async def query_users_by_bucket(self, bucket: MatchingBucket, exclude_user_id: str, limit: int) -> Sequence[UserRecord]:
		try:
			members = await self._client.smembers(_bucket_key(bucket.key))
			candidates = sorted(str(member) for member in members if str(member) != exclude_user_id)
			records = await self._load(candidates)
		except RedisError as exc:
			raise StoreError("bucket_query_failed") from exc
		# A concurrent move can leave a member behind for an instant; trust the hash.
		matching = [record for record in records if record.bucket_key == bucket.key]
		if len(matching) != len(records):
			logger.debug("redis bucket %s had %s stale members", bucket.key, len(records) - len(matching))
		matching.sort(key=lambda record: (record.display_name.casefold(), record.user_id))
		return matching[:limit]

	async def query_all_users(self, exclude_user_id: str, limit: int) -> Sequence[UserRecord]:
		try:
			# Newest first, one extra slot in case the caller is among them.
			members = await self._client.zrevrange(ALL_PROFILES_KEY, 0, limit)
			candidates = [str(member) for member in members if str(member) != exclude_user_id]
			records = await self._load(candidates[:limit])
		except RedisError as exc:
			raise StoreError("all_users_query_failed") from exc
		return records

	async def _load(self, user_ids: Sequence[str]) -> List[UserRecord]:
		records: List[UserRecord] = []
		for user_id in user_ids:
			raw = await self._client.hgetall(_profile_key(user_id))
			if not raw:
				continue
			records.append(_record_from_hash(user_id, raw))
		return records
