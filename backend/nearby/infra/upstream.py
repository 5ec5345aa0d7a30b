"""Translate storage driver failures into the domain's UpstreamError."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, TypeVar

import asyncpg
from redis.exceptions import RedisError

from nearby.domain.discovery.exceptions import UpstreamError
from nearby.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DRIVER_ERRORS = (RedisError, asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


@asynccontextmanager
async def upstream_guard(source: str) -> AsyncIterator[None]:
	try:
		yield
	except _DRIVER_ERRORS as exc:
		obs_metrics.inc_upstream_failure(source, "error")
		logger.warning("upstream failure source=%s error=%s", source, type(exc).__name__)
		raise UpstreamError("upstream_unavailable", source=source) from exc


async def with_deadline(awaitable: Awaitable[T], *, source: str, timeout: float) -> T:
	"""Await a store/oracle call, surfacing a timeout as UpstreamError."""
	try:
		return await asyncio.wait_for(awaitable, timeout=timeout)
	except asyncio.TimeoutError as exc:
		obs_metrics.inc_upstream_failure(source, "timeout")
		logger.warning("upstream deadline exceeded source=%s timeout=%s", source, timeout)
		raise UpstreamError("store_timeout", source=source) from exc
