"""Domain-level exceptions shared by the radar components."""

from __future__ import annotations


class RadarError(Exception):
	"""Base class for radar feature errors."""

	reason: str = "unknown"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class StoreError(RadarError):
	"""Raised by record store adapters when the backing service fails."""

	reason = "store_failed"


class MatchError(RadarError):
	reason = "match_failed"


class QueryFailed(MatchError):
	reason = "query_failed"


class Unauthenticated(MatchError):
	reason = "unauthenticated"


class PersistError(RadarError):
	reason = "persist_failed"


class WriteFailed(PersistError):
	reason = "write_failed"
