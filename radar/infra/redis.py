"""Redis connection management.

Provides a stable proxy object so imports like `from radar.infra.redis import redis_client`
always reference the same proxy instance. The underlying client can be swapped at
runtime (e.g., to fakeredis in tests) without breaking previously imported references.

Also adds a small compatibility wrapper:
- HSET: drop None values from a mapping, which redis refuses to store
"""

from __future__ import annotations

import redis.asyncio as redis

from radar.settings import settings


class RedisProxy:
	"""Lightweight proxy that forwards attribute access to an underlying Redis client."""

	def __init__(self, client: redis.Redis):
		self._client: redis.Redis = client

	def set_client(self, client: redis.Redis) -> None:
		self._client = client

	async def hset(self, name, key=None, value=None, mapping=None, items=None):
		"""Skip None values instead of failing the whole write."""
		if mapping is not None:
			mapping = {k: v for k, v in mapping.items() if v is not None}
			if not mapping and key is None:
				return 0
		return await self._client.hset(name, key=key, value=value, mapping=mapping, items=items)

	# Fallback: delegate everything else to the underlying client
	def __getattr__(self, item):
		return getattr(self._client, item)


_real_client = redis.from_url(settings.redis_url, decode_responses=True)
redis_client: RedisProxy = RedisProxy(_real_client)


def set_redis_client(client: redis.Redis) -> None:
	redis_client.set_client(client)
