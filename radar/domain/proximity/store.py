"""Collaborator interfaces consumed by the radar.

Implementations raise ``StoreError`` on backend failures.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from radar.domain.proximity.geo import MatchingBucket
from radar.domain.proximity.schemas import UserRecord


class IdentityProvider(Protocol):
	async def get_current_user_id(self) -> Optional[str]:
		...


class RecordStore(Protocol):
	async def update_user_location(self, user_id: str, bucket: MatchingBucket) -> None:
		...

	async def query_users_by_bucket(
		self, bucket: MatchingBucket, exclude_user_id: str, limit: int
	) -> Sequence[UserRecord]:
		...

	async def query_all_users(self, exclude_user_id: str, limit: int) -> Sequence[UserRecord]:
		...

	async def get_user_bucket(self, user_id: str) -> Optional[MatchingBucket]:
		...
