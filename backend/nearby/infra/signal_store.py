"""Redis-backed Signal Store.

Layout:
	nearby:user:{id}        hash with discoverability settings and the latest signal per channel
	nearby:geo              GEO set of users with a GPS signal
	nearby:wifi:{network}   sorted set of users on a network, scored by update time (ms)
	nearby:bt:{device}      sorted set of users advertising a device id, scored by update time (ms)

The hash is the source of truth. Index sets may briefly point at stale entries
(a user who moved networks, or went dormant); readers re-check the hash.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from redis.asyncio import Redis

from nearby.domain.discovery.models import (
	DEFAULT_DISCOVERY_RANGE_M,
	BluetoothSignal,
	DiscoverabilityProfile,
	GPSSignal,
	PositionSignal,
	PrivacySettings,
	SignalRecord,
	WiFiSignal,
)
from nearby.domain.discovery.exceptions import UpstreamError
from nearby.domain.discovery.store import SignalStore
from nearby.infra.redis import RedisProxy, redis_client
from nearby.infra.upstream import upstream_guard
from nearby.settings import settings

logger = logging.getLogger(__name__)

USER_KEY = "nearby:user:{user_id}"
GEO_KEY = "nearby:geo"
WIFI_KEY = "nearby:wifi:{network_id}"
BLUETOOTH_KEY = "nearby:bt:{device_id}"

_DEFAULTS = {
	"is_discoverable": "1",
	"is_active": "1",
	"discovery_range_m": str(DEFAULT_DISCOVERY_RANGE_M),
	"privacy": json.dumps(PrivacySettings().to_dict()),
}


def _to_ms(value: datetime) -> int:
	return int(value.timestamp() * 1000)


def _from_ms(value: str | int | float) -> datetime:
	return datetime.fromtimestamp(int(float(value)) / 1000, tz=timezone.utc)


def _flag(value: Optional[str], default: bool = True) -> bool:
	if value is None:
		return default
	return value == "1"


def _load_privacy(raw: Optional[str]) -> PrivacySettings:
	if not raw:
		return PrivacySettings()
	try:
		data = json.loads(raw)
	except (TypeError, ValueError):
		return PrivacySettings()
	return PrivacySettings.from_mapping(data if isinstance(data, dict) else None)


def decode_record(user_id: str, raw: dict[str, str]) -> SignalRecord | None:
	if not raw:
		return None
	profile = DiscoverabilityProfile(
		is_discoverable=_flag(raw.get("is_discoverable")),
		is_active=_flag(raw.get("is_active")),
		discovery_range_m=int(raw.get("discovery_range_m") or DEFAULT_DISCOVERY_RANGE_M),
		privacy=_load_privacy(raw.get("privacy")),
	)
	gps = None
	if raw.get("gps_lat") and raw.get("gps_lon") and raw.get("gps_at"):
		gps = GPSSignal(
			latitude=float(raw["gps_lat"]),
			longitude=float(raw["gps_lon"]),
			updated_at=_from_ms(raw["gps_at"]),
		)
	wifi = None
	if raw.get("wifi_id") and raw.get("wifi_at"):
		wifi = WiFiSignal(network_id=raw["wifi_id"], updated_at=_from_ms(raw["wifi_at"]))
	bluetooth = None
	if raw.get("bt_id") and raw.get("bt_at"):
		bluetooth = BluetoothSignal(device_id=raw["bt_id"], updated_at=_from_ms(raw["bt_at"]))
	last_seen = _from_ms(raw["last_seen"]) if raw.get("last_seen") else None
	return SignalRecord(
		user_id=user_id,
		profile=profile,
		gps=gps,
		wifi=wifi,
		bluetooth=bluetooth,
		last_seen=last_seen,
	)


class RedisSignalStore(SignalStore):
	def __init__(self, redis: Redis | RedisProxy | None = None) -> None:
		self._redis = redis if redis is not None else redis_client

	@staticmethod
	def _user_key(user_id: str) -> str:
		return USER_KEY.format(user_id=user_id)

	async def _load(self, user_id: str) -> SignalRecord | None:
		raw = await self._redis.hgetall(self._user_key(user_id))
		return decode_record(user_id, raw)

	async def _reload(self, user_id: str) -> SignalRecord:
		record = await self._load(user_id)
		if record is None:
			# The hash vanished between the write and the read-back.
			raise UpstreamError("store_inconsistent", source="signal_store")
		return record

	async def _load_many(self, user_ids: Sequence[str]) -> list[SignalRecord]:
		ids = list(dict.fromkeys(str(uid) for uid in user_ids))
		if not ids:
			return []
		async with self._redis.pipeline(transaction=False) as pipe:
			for uid in ids:
				pipe.hgetall(self._user_key(uid))
			rows = await pipe.execute()
		records: list[SignalRecord] = []
		for uid, raw in zip(ids, rows):
			record = decode_record(uid, raw)
			if record is not None:
				records.append(record)
		return records

	async def get_record(self, user_id: str) -> SignalRecord | None:
		async with upstream_guard("signal_store"):
			return await self._load(user_id)

	async def write_signal(self, user_id: str, signal: PositionSignal) -> SignalRecord:
		key = self._user_key(user_id)
		updated_ms = _to_ms(signal.updated_at)
		async with upstream_guard("signal_store"):
			previous_wifi, previous_bt = await self._redis.hmget(key, ["wifi_id", "bt_id"])
			async with self._redis.pipeline(transaction=True) as pipe:
				for field, value in _DEFAULTS.items():
					pipe.hsetnx(key, field, value)
				if isinstance(signal, GPSSignal):
					pipe.hset(
						key,
						mapping={
							"gps_lat": repr(signal.latitude),
							"gps_lon": repr(signal.longitude),
							"gps_at": updated_ms,
							"last_seen": updated_ms,
						},
					)
					pipe.geoadd(GEO_KEY, [signal.longitude, signal.latitude, user_id])
				elif isinstance(signal, WiFiSignal):
					if previous_wifi and previous_wifi != signal.network_id:
						pipe.zrem(WIFI_KEY.format(network_id=previous_wifi), user_id)
					index_key = WIFI_KEY.format(network_id=signal.network_id)
					pipe.hset(key, mapping={"wifi_id": signal.network_id, "wifi_at": updated_ms, "last_seen": updated_ms})
					pipe.zadd(index_key, {user_id: updated_ms})
					self._trim_index(pipe, index_key, updated_ms, settings.wifi_freshness_seconds)
				else:
					if previous_bt and previous_bt != signal.device_id:
						pipe.zrem(BLUETOOTH_KEY.format(device_id=previous_bt), user_id)
					index_key = BLUETOOTH_KEY.format(device_id=signal.device_id)
					pipe.hset(key, mapping={"bt_id": signal.device_id, "bt_at": updated_ms, "last_seen": updated_ms})
					pipe.zadd(index_key, {user_id: updated_ms})
					self._trim_index(pipe, index_key, updated_ms, settings.bluetooth_freshness_seconds)
				await pipe.execute()
			return await self._reload(user_id)

	@staticmethod
	def _trim_index(pipe, index_key: str, now_ms: int, window_seconds: int) -> None:
		pipe.zremrangebyscore(index_key, "-inf", now_ms - window_seconds * 1000 - 1)
		pipe.expire(index_key, window_seconds)

	async def update_discoverability(
		self,
		user_id: str,
		*,
		is_discoverable: Optional[bool] = None,
		discovery_range_m: Optional[int] = None,
		privacy: Optional[PrivacySettings] = None,
	) -> SignalRecord:
		key = self._user_key(user_id)
		changes: dict[str, str] = {}
		if is_discoverable is not None:
			changes["is_discoverable"] = "1" if is_discoverable else "0"
		if discovery_range_m is not None:
			changes["discovery_range_m"] = str(int(discovery_range_m))
		if privacy is not None:
			changes["privacy"] = json.dumps(privacy.to_dict())
		async with upstream_guard("signal_store"):
			async with self._redis.pipeline(transaction=True) as pipe:
				for field, value in _DEFAULTS.items():
					pipe.hsetnx(key, field, value)
				if changes:
					pipe.hset(key, mapping=changes)
				await pipe.execute()
			return await self._reload(user_id)

	async def set_active(self, user_id: str, active: bool) -> SignalRecord:
		key = self._user_key(user_id)
		async with upstream_guard("signal_store"):
			async with self._redis.pipeline(transaction=True) as pipe:
				for field, value in _DEFAULTS.items():
					pipe.hsetnx(key, field, value)
				pipe.hset(key, "is_active", "1" if active else "0")
				await pipe.execute()
			return await self._reload(user_id)

	async def find_near(self, latitude: float, longitude: float, radius_m: float, *, limit: int) -> Sequence[SignalRecord]:
		async with upstream_guard("signal_store"):
			members = await self._redis.geosearch(
				GEO_KEY,
				longitude=longitude,
				latitude=latitude,
				radius=radius_m,
				unit="m",
				sort="ASC",
				count=limit,
			)
			return await self._load_many(members)

	async def find_on_network(self, network_id: str, *, since: Optional[datetime], limit: int) -> Sequence[SignalRecord]:
		low = _to_ms(since) if since is not None else "-inf"
		async with upstream_guard("signal_store"):
			members = await self._redis.zrevrangebyscore(
				WIFI_KEY.format(network_id=network_id),
				"+inf",
				low,
				start=0,
				num=limit,
			)
			return await self._load_many(members)

	async def find_devices(self, device_ids: Iterable[str], *, since: Optional[datetime], limit: int) -> Sequence[SignalRecord]:
		devices = list(dict.fromkeys(device_ids))
		if not devices:
			return []
		low = _to_ms(since) if since is not None else "-inf"
		async with upstream_guard("signal_store"):
			async with self._redis.pipeline(transaction=False) as pipe:
				for device_id in devices:
					pipe.zrevrangebyscore(
						BLUETOOTH_KEY.format(device_id=device_id),
						"+inf",
						low,
						start=0,
						num=limit,
						withscores=True,
					)
				batches = await pipe.execute()
			# Newest across all scanned devices, not per-device scan order.
			scored = sorted(
				(entry for batch in batches for entry in batch),
				key=lambda entry: (-float(entry[1]), entry[0]),
			)
			members = [member for member, _ in scored][:limit]
			return await self._load_many(members)
