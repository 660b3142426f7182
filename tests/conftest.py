import asyncio
from typing import Callable, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis

from radar.domain.exceptions import StoreError
from radar.domain.location.models import now_ms
from radar.domain.location.platform import PositionError, RawPosition
from radar.domain.proximity.geo import MatchingBucket
from radar.domain.proximity.schemas import UserRecord


@pytest_asyncio.fixture
async def fake_redis():
	from radar.infra.redis import redis_client, set_redis_client
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


class ManualPlatform:
	"""Geolocation platform driven by the test."""

	def __init__(self, *, supported: bool = True, secure: bool = True, permission: Optional[str] = "granted") -> None:
		self.supported = supported
		self.secure = secure
		self.permission = permission
		self.position: Optional[Tuple[float, float]] = (12.9716, 77.5946)
		self.current_error: Optional[int] = None
		self.never_resolve = False
		self.current_calls = 0
		self.watchers: Dict[int, Tuple[Callable, Callable]] = {}
		self.cleared: List[int] = []
		self._next_id = 0

	def is_supported(self) -> bool:
		return self.supported

	def is_secure_context(self) -> bool:
		return self.secure

	async def query_permission(self) -> Optional[str]:
		return self.permission

	async def current_position(self, *, high_accuracy: bool, timeout_ms: int, maximum_age_ms: int) -> RawPosition:
		self.current_calls += 1
		if self.never_resolve:
			await asyncio.Event().wait()
		if self.current_error is not None:
			raise PositionError(self.current_error, "platform said no")
		assert self.position is not None
		lat, lon = self.position
		return RawPosition(lat, lon, 12.0, now_ms())

	def watch_position(self, on_position, on_error, *, high_accuracy: bool, timeout_ms: int, maximum_age_ms: int) -> int:
		self._next_id += 1
		self.watchers[self._next_id] = (on_position, on_error)
		return self._next_id

	def clear_watch(self, watch_id: int) -> None:
		self.cleared.append(watch_id)
		self.watchers.pop(watch_id, None)

	def emit(self, latitude: float, longitude: float) -> None:
		for on_position, _ in list(self.watchers.values()):
			on_position(RawPosition(latitude, longitude, 8.0, now_ms()))

	def fail(self, code: int) -> None:
		for _, on_error in list(self.watchers.values()):
			on_error(PositionError(code, "watch failed"))


class FakeStore:
	"""In-memory record store with switchable failures."""

	def __init__(self) -> None:
		self.records: Dict[str, UserRecord] = {}
		self.writes: List[Tuple[str, MatchingBucket]] = []
		self.bucket_queries: List[MatchingBucket] = []
		self.all_queries = 0
		self.query_delays: List[float] = []
		self.fail_writes = False
		self.fail_bucket_queries = False
		self.fail_all_queries = False

	def add(self, user_id: str, display_name: str, bucket_key: Optional[str] = None) -> None:
		self.records[user_id] = UserRecord(user_id=user_id, display_name=display_name, bucket_key=bucket_key)

	async def update_user_location(self, user_id: str, bucket: MatchingBucket) -> None:
		if self.fail_writes:
			raise StoreError("write_refused")
		self.writes.append((user_id, bucket))
		existing = self.records.get(user_id)
		if existing is not None:
			self.records[user_id] = existing.model_copy(update={"bucket_key": bucket.key})

	async def query_users_by_bucket(self, bucket: MatchingBucket, exclude_user_id: str, limit: int):
		self.bucket_queries.append(bucket)
		if self.query_delays:
			await asyncio.sleep(self.query_delays.pop(0))
		if self.fail_bucket_queries:
			raise StoreError("bucket_query_refused")
		matching = [
			record
			for record in self.records.values()
			if record.bucket_key == bucket.key and record.user_id != exclude_user_id
		]
		matching.sort(key=lambda record: (record.display_name.casefold(), record.user_id))
		return matching[:limit]

	async def query_all_users(self, exclude_user_id: str, limit: int):
		self.all_queries += 1
		if self.fail_all_queries:
			raise StoreError("all_query_refused")
		return [record for record in self.records.values() if record.user_id != exclude_user_id][:limit]

	async def get_user_bucket(self, user_id: str) -> Optional[MatchingBucket]:
		record = self.records.get(user_id)
		return record.bucket if record is not None else None


class FakeIdentity:
	def __init__(self, user_id: Optional[str]) -> None:
		self.user_id = user_id

	async def get_current_user_id(self) -> Optional[str]:
		return self.user_id


@pytest.fixture
def platform() -> ManualPlatform:
	return ManualPlatform()


@pytest.fixture
def store() -> FakeStore:
	return FakeStore()


@pytest.fixture
def identity() -> FakeIdentity:
	return FakeIdentity("me")
