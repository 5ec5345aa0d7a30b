"""Liveness and readiness probes.

Readiness requires both backing stores: Redis holds the Signal Store, Postgres
serves the profile directory and relationship lookups.
"""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Awaitable, Callable, Dict, Tuple

from nearby.infra import postgres
from nearby.infra.redis import redis_client
from nearby.obs import metrics

LOGGER = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 0.3


async def _ping_redis() -> None:
	await redis_client.ping()


async def _ping_postgres() -> None:
	pool = await postgres.get_pool()
	async with pool.acquire() as conn:
		await conn.execute("SELECT 1")


_CHECKS: Dict[str, Tuple[Callable[[], Awaitable[None]], Callable[..., None]]] = {
	"redis": (_ping_redis, metrics.mark_redis),
	"postgres": (_ping_postgres, metrics.mark_postgres),
}


async def _probe(name: str) -> Dict[str, Any]:
	check, mark = _CHECKS[name]
	start = perf_counter()
	try:
		await asyncio.wait_for(check(), timeout=PROBE_TIMEOUT_SECONDS)
	except Exception:  # readiness reports any failure instead of raising
		mark(False)
		LOGGER.warning("readiness probe failed", extra={"check": name}, exc_info=True)
		return {"ok": False, "error": "unavailable"}
	latency = perf_counter() - start
	mark(True, latency_seconds=latency)
	return {"ok": True, "latency_ms": round(latency * 1000, 2)}


async def liveness() -> Dict[str, Any]:
	return {"status": "ok"}


async def readiness() -> Tuple[int, Dict[str, Any]]:
	names = list(_CHECKS)
	results = await asyncio.gather(*(_probe(name) for name in names))
	checks = dict(zip(names, results))
	ok = all(result["ok"] for result in results)
	return (200 if ok else 503), {"status": "ok" if ok else "degraded", "checks": checks}
