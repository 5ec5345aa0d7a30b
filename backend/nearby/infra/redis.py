"""Redis connection handle shared by the Signal Store, rate limiting and health checks.

Modules import the `redis_client` proxy once; the client behind it can be swapped
(fakeredis in tests) without re-importing anything.
"""

from __future__ import annotations

import redis.asyncio as redis

from nearby.settings import settings


class RedisProxy:
	"""Forwards attribute access to the current Redis client."""

	def __init__(self, client: redis.Redis):
		self._client: redis.Redis = client

	@property
	def client(self) -> redis.Redis:
		return self._client

	def set_client(self, client: redis.Redis) -> None:
		self._client = client

	def __getattr__(self, item):
		return getattr(self._client, item)


# from_url does not connect until the first command.
redis_client: RedisProxy = RedisProxy(redis.from_url(settings.redis_url, decode_responses=True))


def set_redis_client(client: redis.Redis) -> None:
	redis_client.set_client(client)
