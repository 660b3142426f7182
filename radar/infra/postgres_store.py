"""Record store backed by the ``profiles`` table."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import asyncpg

from radar.domain.exceptions import StoreError
from radar.domain.proximity.geo import USER_BUCKET_PRECISION, MatchingBucket
from radar.domain.proximity.schemas import UserRecord
from radar.infra.postgres import get_pool

logger = logging.getLogger(__name__)

_PROFILE_COLUMNS = "id, name, bio, profile_photo_url, location_bucket, location_updated_at"


def _record_from_row(row) -> UserRecord:
	return UserRecord(
		user_id=row["id"],
		display_name=row["name"],
		bio=row["bio"],
		avatar_url=row["profile_photo_url"],
		bucket_key=row["location_bucket"],
		updated_at=row["location_updated_at"],
	)


class PostgresRecordStore:
	"""Keeps the bucket in ``location_bucket`` plus the rounded lat/lon columns."""

	def __init__(self, pool: Optional[asyncpg.pool.Pool] = None) -> None:
		self._pool = pool

	async def _get_pool(self):
		if self._pool is None:
			self._pool = await get_pool()
		return self._pool

	async def update_user_location(self, user_id: str, bucket: MatchingBucket) -> None:
		try:
			pool = await self._get_pool()
			status = await pool.execute(
				"""
				UPDATE profiles
				SET latitude = $2, longitude = $3, location_bucket = $4, location_updated_at = NOW()
				WHERE id::text = $1
				""",
				user_id,
				bucket.latitude,
				bucket.longitude,
				bucket.key,
			)
		except (asyncpg.PostgresError, OSError) as exc:
			raise StoreError("location_write_failed") from exc
		if status == "UPDATE 0":
			logger.warning("location write matched no profile user_id=%s", user_id)
			raise StoreError("profile_not_found")

	async def get_user_bucket(self, user_id: str) -> Optional[MatchingBucket]:
		try:
			pool = await self._get_pool()
			row = await pool.fetchrow("SELECT location_bucket FROM profiles WHERE id::text = $1", user_id)
		except (asyncpg.PostgresError, OSError) as exc:
			raise StoreError("location_read_failed") from exc
		if not row or not row["location_bucket"]:
			return None
		return MatchingBucket.from_key(row["location_bucket"], USER_BUCKET_PRECISION)

	async def query_users_by_bucket(self, bucket: MatchingBucket, exclude_user_id: str, limit: int) -> Sequence[UserRecord]:
		try:
			pool = await self._get_pool()
			rows = await pool.fetch(
				f"""
				SELECT {_PROFILE_COLUMNS}
				FROM profiles
				WHERE location_bucket = $1 AND id::text <> $2
				ORDER BY lower(name) ASC, id ASC
				LIMIT $3
				""",
				bucket.key,
				exclude_user_id,
				limit,
			)
		except (asyncpg.PostgresError, OSError) as exc:
			raise StoreError("bucket_query_failed") from exc
		return [_record_from_row(row) for row in rows]

	async def query_all_users(self, exclude_user_id: str, limit: int) -> Sequence[UserRecord]:
		try:
			pool = await self._get_pool()
			rows = await pool.fetch(
				f"""
				SELECT {_PROFILE_COLUMNS}
				FROM profiles
				WHERE id::text <> $1 AND name IS NOT NULL
				ORDER BY created_at DESC
				LIMIT $2
				""",
				exclude_user_id,
				limit,
			)
		except (asyncpg.PostgresError, OSError) as exc:
			raise StoreError("all_users_query_failed") from exc
		return [_record_from_row(row) for row in rows]
