"""Record store adapters and connection management."""

from __future__ import annotations

from radar.settings import settings


def build_record_store(backend: str | None = None):
	"""Return the record store configured by ``store_backend``."""
	backend = (backend or settings.store_backend).lower()
	if backend == "redis":
		from radar.infra.redis_store import RedisRecordStore

		return RedisRecordStore()
	if backend in ("postgres", "postgresql"):
		from radar.infra.postgres_store import PostgresRecordStore

		return PostgresRecordStore()
	raise ValueError(f"unknown store backend: {backend}")
