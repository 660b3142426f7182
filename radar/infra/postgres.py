"""Shared asyncpg pool for the postgres record store."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import asyncpg

from radar.settings import settings

logger = logging.getLogger(__name__)

_pool: Optional[asyncpg.pool.Pool] = None
_pool_lock = asyncio.Lock()


async def init_pool(dsn: Optional[str] = None) -> asyncpg.pool.Pool:
	"""Create the pool on first use. Concurrent callers share one pool."""
	global _pool
	async with _pool_lock:
		if _pool is None:
			_pool = await asyncpg.create_pool(
				dsn=dsn or settings.postgres_url,
				min_size=0,
				max_size=settings.postgres_max_pool_size,
				command_timeout=settings.postgres_command_timeout_s,
			)
			logger.info("postgres pool ready max_size=%s", settings.postgres_max_pool_size)
	return _pool


def set_pool(pool: Optional[asyncpg.pool.Pool]) -> None:
	global _pool
	_pool = pool


async def get_pool() -> asyncpg.pool.Pool:
	return _pool if _pool is not None else await init_pool()


async def close_pool() -> None:
	global _pool
	pool, _pool = _pool, None
	if pool is not None:
		await pool.close()
