"""Pydantic schemas for records exchanged with the user store."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from radar.domain.proximity.geo import USER_BUCKET_PRECISION, MatchingBucket


class UserRecord(BaseModel):
	"""Lite profile returned by the record store."""

	user_id: str = Field(..., min_length=1)
	display_name: str = ""
	bio: Optional[str] = None
	avatar_url: Optional[str] = None
	bucket_key: Optional[str] = None
	updated_at: Optional[datetime] = None

	@field_validator("user_id", mode="before")
	def _stringify_id(cls, value):  # type: ignore[override]
		return str(value) if value is not None else value

	@field_validator("display_name", mode="before")
	def _default_name(cls, value):  # type: ignore[override]
		return "" if value is None else str(value)

	@field_validator("bucket_key", mode="before")
	def _blank_bucket(cls, value):  # type: ignore[override]
		if value in (None, ""):
			return None
		return str(value)

	@property
	def bucket(self) -> Optional[MatchingBucket]:
		if not self.bucket_key:
			return None
		return MatchingBucket.from_key(self.bucket_key, USER_BUCKET_PRECISION)
