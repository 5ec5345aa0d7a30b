"""Per-channel candidate queries.

Each query is a strategy over the Signal Store: it runs the channel's coarse index
lookup, then re-applies every predicate (self exclusion, discoverable, active,
adjacency, freshness) to the records it gets back. Index entries can lag behind
the records they point at, so the re-check is what guarantees the invariants.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from nearby.domain.discovery.geo import estimate_bluetooth_distance, haversine
from nearby.domain.discovery.models import (
	BluetoothParams,
	Channel,
	ChannelParams,
	GPSParams,
	Proximity,
	RawCandidate,
	SignalRecord,
	WiFiParams,
	freshness_window,
)
from nearby.domain.discovery.schemas import (
	BluetoothContext,
	CenterLocation,
	ChannelContext,
	GPSContext,
	WiFiContext,
)
from nearby.domain.discovery.store import SignalStore
from nearby.infra.upstream import with_deadline
from nearby.settings import settings

logger = logging.getLogger(__name__)

NO_GPS_MESSAGE = "No location available. Share your location to discover people nearby."
NO_WIFI_MESSAGE = "No WiFi network detected. Please connect to a WiFi network."
NO_BLUETOOTH_MESSAGE = "No Bluetooth devices detected in range."

# GEO index lookups use a slightly larger radius; exact containment is re-checked.
_GEO_SLACK_RATIO = 1.01
_GEO_SLACK_M = 1.0


@dataclass(slots=True)
class QueryOutcome:
	candidates: list[RawCandidate]
	context: ChannelContext
	message: Optional[str] = None
	short_circuit: Optional[str] = None


class CandidateQuery(Protocol):
	channel: Channel

	async def run(self, requester_id: str, params: ChannelParams, *, now: datetime) -> QueryOutcome:
		...


def is_fresh(updated_at: datetime, window, now: datetime) -> bool:
	if window is None:
		return True
	return now - updated_at <= window


class _StoreQuery:
	channel: Channel

	def __init__(self, store: SignalStore, *, scan_limit: int | None = None, deadline: float | None = None) -> None:
		self._store = store
		self._scan_limit = scan_limit or settings.candidate_scan_limit
		self._deadline = deadline if deadline is not None else settings.store_deadline_seconds

	async def _call(self, awaitable):
		return await with_deadline(awaitable, source="signal_store", timeout=self._deadline)

	def _candidate(self, record: SignalRecord, updated_at: datetime, proximity: Proximity) -> RawCandidate:
		return RawCandidate(
			user_id=record.user_id,
			signal_updated_at=updated_at,
			proximity=proximity,
			privacy=record.profile.privacy,
			last_seen=record.last_seen,
		)


class GPSCandidateQuery(_StoreQuery):
	"""Users whose stored coordinates lie within the requested radius."""

	channel = Channel.GPS

	async def run(self, requester_id: str, params: GPSParams, *, now: datetime) -> QueryOutcome:
		requester = await self._call(self._store.get_record(requester_id))
		if requester is None or requester.gps is None:
			return QueryOutcome(
				candidates=[],
				context=GPSContext(search_radius=params.radius_m),
				message=NO_GPS_MESSAGE,
				short_circuit="no_signal",
			)
		origin = requester.gps
		records = await self._call(
			self._store.find_near(
				origin.latitude,
				origin.longitude,
				params.radius_m * _GEO_SLACK_RATIO + _GEO_SLACK_M,
				limit=self._scan_limit,
			)
		)
		candidates: list[RawCandidate] = []
		for record in records:
			if not record.is_candidate_for(requester_id) or record.gps is None:
				continue
			distance = haversine(origin.latitude, origin.longitude, record.gps.latitude, record.gps.longitude)
			if distance > params.radius_m:
				continue
			candidates.append(
				self._candidate(record, record.gps.updated_at, Proximity(channel=self.channel, distance_m=distance))
			)
		return QueryOutcome(
			candidates=candidates,
			context=GPSContext(
				search_radius=params.radius_m,
				center_location=CenterLocation(latitude=origin.latitude, longitude=origin.longitude),
			),
		)


class WiFiCandidateQuery(_StoreQuery):
	"""Users whose fresh network identifier equals the requester's."""

	channel = Channel.WIFI

	async def run(self, requester_id: str, params: WiFiParams, *, now: datetime) -> QueryOutcome:
		requester = await self._call(self._store.get_record(requester_id))
		if requester is None or requester.wifi is None:
			return QueryOutcome(
				candidates=[],
				context=WiFiContext(),
				message=NO_WIFI_MESSAGE,
				short_circuit="no_signal",
			)
		network_id = requester.wifi.network_id
		window = freshness_window(self.channel)
		since = now - window if window is not None else None
		records = await self._call(self._store.find_on_network(network_id, since=since, limit=self._scan_limit))
		candidates: list[RawCandidate] = []
		for record in records:
			if not record.is_candidate_for(requester_id) or record.wifi is None:
				continue
			if record.wifi.network_id != network_id or not is_fresh(record.wifi.updated_at, window, now):
				continue
			candidates.append(self._candidate(record, record.wifi.updated_at, Proximity(channel=self.channel)))
		return QueryOutcome(candidates=candidates, context=WiFiContext(network_id=network_id))


class BluetoothCandidateQuery(_StoreQuery):
	"""Users whose fresh device identifier appears in the requester's scan."""

	channel = Channel.BLUETOOTH

	async def run(self, requester_id: str, params: BluetoothParams, *, now: datetime) -> QueryOutcome:
		observed = params.observed_device_ids
		if not observed:
			return QueryOutcome(
				candidates=[],
				context=BluetoothContext(scanned_device_count=0),
				message=NO_BLUETOOTH_MESSAGE,
				short_circuit="empty_scan",
			)
		window = freshness_window(self.channel)
		since = now - window if window is not None else None
		records = await self._call(self._store.find_devices(sorted(observed), since=since, limit=self._scan_limit))
		candidates: list[RawCandidate] = []
		for record in records:
			if not record.is_candidate_for(requester_id) or record.bluetooth is None:
				continue
			device_id = record.bluetooth.device_id
			if device_id not in observed or not is_fresh(record.bluetooth.updated_at, window, now):
				continue
			estimate = None
			rssi = params.signal_strengths.get(device_id)
			if rssi is not None:
				estimate = estimate_bluetooth_distance(rssi, tx_power=params.tx_power_dbm)
			candidates.append(
				self._candidate(
					record,
					record.bluetooth.updated_at,
					Proximity(channel=self.channel, estimated_distance_m=estimate),
				)
			)
		return QueryOutcome(candidates=candidates, context=BluetoothContext(scanned_device_count=len(observed)))
