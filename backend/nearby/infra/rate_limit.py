"""Fixed-window rate limits kept in Redis."""

from __future__ import annotations

import time
from typing import Awaitable, Callable, Optional

from nearby.infra.redis import redis_client
from nearby.infra.upstream import upstream_guard
from nearby.settings import settings

# (kind, actor_id, channel) -> allowed
RateLimitHook = Callable[[str, str, str], Awaitable[bool]]


class RateLimitExceeded(Exception):
	"""The caller spent its budget for the current window."""

	def __init__(self, reason: str = "rate_limit") -> None:
		super().__init__(reason)
		self.reason = reason


def _window_key(kind: str, actor_id: str, window: int, now: float) -> str:
	return f"nearby:rl:{kind}:{actor_id}:{window}:{int(now // window)}"


async def allow(
	kind: str,
	actor_id: str,
	*,
	limit: int,
	window_seconds: int = 60,
	now: Optional[float] = None,
) -> bool:
	"""Count one hit in the current window; False once the budget is spent."""
	if limit <= 0:
		return False
	window = max(1, int(window_seconds))
	key = _window_key(kind, actor_id, window, time.time() if now is None else now)
	async with upstream_guard("rate_limit"):
		async with redis_client.pipeline(transaction=True) as pipe:
			pipe.incr(key)
			pipe.expire(key, window)
			hits, _ = await pipe.execute()
	return int(hits) <= limit


async def channel_budget(kind: str, actor_id: str, channel: str) -> bool:
	"""Per-user, per-channel budget for signal writes ("signal") and discovery ("discover")."""
	if kind == "discover":
		limit = settings.discovery_rate_limit_per_minute
	else:
		limit = settings.signal_rate_limit_per_minute
	return await allow(f"{kind}:{channel}", actor_id, limit=limit, window_seconds=60)
