"""Proximity discovery orchestration: channel selection through result assembly."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from nearby.domain.discovery import assembler
from nearby.domain.discovery.annotator import CandidateAnnotator
from nearby.domain.discovery.exceptions import DiscoveryError, NotFoundError, ValidationError
from nearby.domain.discovery.models import DiscoveryRequest, utcnow
from nearby.domain.discovery.profiles import ProfileDirectory
from nearby.domain.discovery.queries import (
	BluetoothCandidateQuery,
	CandidateQuery,
	GPSCandidateQuery,
	WiFiCandidateQuery,
)
from nearby.domain.discovery.relationships import RelationshipOracle
from nearby.domain.discovery.schemas import DiscoveryResult
from nearby.domain.discovery.store import SignalStore
from nearby.domain.discovery.validation import build_discovery_request
from nearby.infra.rate_limit import RateLimitExceeded, RateLimitHook
from nearby.infra.upstream import with_deadline
from nearby.obs import metrics as obs_metrics
from nearby.settings import settings

logger = logging.getLogger(__name__)


class DiscoveryService:
	"""Runs exactly one channel's query per request and packages the result.

	Requests are independent; the service holds no per-request state, so any
	number of discoveries may run concurrently against the same instance.
	"""

	def __init__(
		self,
		store: SignalStore,
		profiles: ProfileDirectory,
		relationships: RelationshipOracle,
		*,
		rate_limiter: Optional[RateLimitHook] = None,
		clock: Callable[[], datetime] = utcnow,
		result_cap: Optional[int] = None,
		deadline: Optional[float] = None,
	) -> None:
		self._profiles = profiles
		self._rate_limiter = rate_limiter
		self._clock = clock
		self._cap = result_cap or settings.discovery_result_cap
		self._deadline = deadline if deadline is not None else settings.store_deadline_seconds
		queries: list[CandidateQuery] = [
			GPSCandidateQuery(store, deadline=self._deadline),
			WiFiCandidateQuery(store, deadline=self._deadline),
			BluetoothCandidateQuery(store, deadline=self._deadline),
		]
		self._queries = {query.channel: query for query in queries}
		self._annotator = CandidateAnnotator(profiles, relationships, deadline=self._deadline)

	async def _within_budget(self, requester_id: str, channel: str) -> bool:
		if self._rate_limiter is None:
			return True
		return await with_deadline(
			self._rate_limiter("discover", requester_id, channel),
			source="rate_limit",
			timeout=self._deadline,
		)

	async def discover_channel(
		self,
		requester_id: str,
		channel: Any,
		*,
		radius: Any = None,
		body: Optional[Mapping[str, Any]] = None,
	) -> DiscoveryResult:
		"""Validate raw request parts, then discover."""
		try:
			request = build_discovery_request(requester_id, channel, radius=radius, body=body)
		except DiscoveryError as exc:
			obs_metrics.inc_discovery_reject(str(channel), exc.reason)
			raise
		return await self.discover(request)

	async def discover(self, request: DiscoveryRequest) -> DiscoveryResult:
		query = self._queries.get(request.channel)
		if query is None:
			raise ValidationError("unknown_channel")
		channel = query.channel
		requester_id = request.requester_id

		if not await self._within_budget(requester_id, channel.value):
			obs_metrics.inc_discovery_reject(channel.value, "rate_limit")
			raise RateLimitExceeded("discover_rate_limit")

		exists = await with_deadline(
			self._profiles.exists(requester_id),
			source="profile_directory",
			timeout=self._deadline,
		)
		if not exists:
			obs_metrics.inc_discovery_reject(channel.value, NotFoundError.reason)
			raise NotFoundError()

		now = self._clock()
		obs_metrics.inc_discovery_query(channel.value)
		outcome = await query.run(requester_id, request.params, now=now)
		if outcome.short_circuit:
			obs_metrics.inc_discovery_short_circuit(channel.value, outcome.short_circuit)

		annotated = await self._annotator.annotate(requester_id, outcome.candidates, now=now)
		users = assembler.rank(channel, annotated, cap=self._cap)
		result = assembler.package(
			channel,
			users,
			context=outcome.context,
			generated_at=now,
			message=outcome.message,
		)
		obs_metrics.observe_discovery_results(channel.value, result.total_found)
		logger.info(
			"discovery completed",
			extra={
				"event": "discovery",
				"channel": channel.value,
				"candidates": len(outcome.candidates),
				"returned": result.total_found,
				"short_circuit": outcome.short_circuit,
			},
		)
		return result
