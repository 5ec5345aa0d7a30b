"""Signal ingestion and discoverability settings."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from nearby.domain.discovery.exceptions import DiscoveryError, NotFoundError
from nearby.domain.discovery.models import PrivacySettings, SignalRecord, utcnow
from nearby.domain.discovery.profiles import ProfileDirectory
from nearby.domain.discovery.schemas import (
	BluetoothSignalView,
	DiscoverabilityView,
	GPSSignalView,
	PrivacySettingsView,
	SignalAck,
	SignalStatus,
	WiFiSignalView,
)
from nearby.domain.discovery.store import SignalStore
from nearby.domain.discovery.validation import parse_channel, parse_discoverability, parse_signal
from nearby.infra.rate_limit import RateLimitExceeded, RateLimitHook
from nearby.infra.upstream import with_deadline
from nearby.obs import metrics as obs_metrics
from nearby.settings import settings

logger = logging.getLogger(__name__)


def discoverability_view(record: SignalRecord) -> DiscoverabilityView:
	profile = record.profile
	return DiscoverabilityView(
		is_discoverable=profile.is_discoverable,
		is_active=profile.is_active,
		discovery_range_meters=profile.discovery_range_m,
		privacy_settings=PrivacySettingsView(**profile.privacy.to_dict()),
	)


def signal_status(record: SignalRecord) -> SignalStatus:
	status = SignalStatus(last_seen=record.last_seen, discoverability=discoverability_view(record))
	if record.gps is not None:
		status.gps = GPSSignalView(
			latitude=record.gps.latitude,
			longitude=record.gps.longitude,
			updated_at=record.gps.updated_at,
		)
	if record.wifi is not None:
		status.wifi = WiFiSignalView(network_id=record.wifi.network_id, updated_at=record.wifi.updated_at)
	if record.bluetooth is not None:
		status.bluetooth = BluetoothSignalView(
			device_id=record.bluetooth.device_id,
			updated_at=record.bluetooth.updated_at,
		)
	return status


class SignalIngestion:
	"""Validates and stores a user's latest positioning signal per channel."""

	def __init__(
		self,
		store: SignalStore,
		profiles: ProfileDirectory,
		*,
		rate_limiter: Optional[RateLimitHook] = None,
		clock: Callable[[], datetime] = utcnow,
		deadline: Optional[float] = None,
	) -> None:
		self._store = store
		self._profiles = profiles
		self._rate_limiter = rate_limiter
		self._clock = clock
		self._deadline = deadline if deadline is not None else settings.store_deadline_seconds

	async def _store_call(self, awaitable):
		return await with_deadline(awaitable, source="signal_store", timeout=self._deadline)

	async def _within_budget(self, user_id: str, channel: str) -> bool:
		if self._rate_limiter is None:
			return True
		return await with_deadline(
			self._rate_limiter("signal", user_id, channel),
			source="rate_limit",
			timeout=self._deadline,
		)

	async def _ensure_user(self, user_id: str) -> None:
		exists = await with_deadline(
			self._profiles.exists(user_id),
			source="profile_directory",
			timeout=self._deadline,
		)
		if not exists:
			raise NotFoundError()

	async def update_signal(self, user_id: str, channel: Any, payload: Mapping[str, Any] | None) -> SignalAck:
		"""Overwrite the user's signal for one channel.

		Repeating an update with the same payload leaves the stored identifier
		unchanged; only updatedAt and lastSeen move forward.
		"""
		channel = parse_channel(channel)
		try:
			signal = parse_signal(channel, payload, updated_at=self._clock())
		except DiscoveryError as exc:
			obs_metrics.inc_signal_reject(channel.value, exc.reason)
			raise
		if not await self._within_budget(user_id, channel.value):
			obs_metrics.inc_signal_reject(channel.value, "rate_limit")
			raise RateLimitExceeded("signal_rate_limit")
		await self._ensure_user(user_id)
		record = await self._store_call(self._store.write_signal(user_id, signal))
		obs_metrics.inc_signal_update(channel.value)
		logger.info("signal updated", extra={"event": "signal_update", "channel": channel.value})
		return SignalAck(
			accepted=True,
			channel=channel.value,
			updated_at=signal.updated_at,
			is_discoverable=record.profile.is_discoverable,
		)

	async def get_status(self, user_id: str) -> SignalStatus:
		await self._ensure_user(user_id)
		record = await self._store_call(self._store.get_record(user_id))
		if record is None:
			record = SignalRecord(user_id=user_id)
		return signal_status(record)

	async def update_discoverability(self, user_id: str, payload: Mapping[str, Any] | None) -> DiscoverabilityView:
		update = parse_discoverability(payload)
		await self._ensure_user(user_id)
		privacy: Optional[PrivacySettings] = None
		if update.privacy_settings is not None:
			current = await self._store_call(self._store.get_record(user_id))
			base = current.profile.privacy if current is not None else PrivacySettings()
			changes = update.privacy_settings.model_dump(exclude_none=True)
			privacy = PrivacySettings.from_mapping({**base.to_dict(), **changes})
		record = await self._store_call(
			self._store.update_discoverability(
				user_id,
				is_discoverable=update.is_discoverable,
				discovery_range_m=update.discovery_range_meters,
				privacy=privacy,
			)
		)
		logger.info("discoverability updated", extra={"event": "discoverability_update"})
		return discoverability_view(record)

	async def set_active(self, user_id: str, active: bool) -> DiscoverabilityView:
		"""Mirror the account's active flag; inactive users never appear as candidates."""
		await self._ensure_user(user_id)
		record = await self._store_call(self._store.set_active(user_id, active))
		logger.info("account activity changed", extra={"event": "set_active", "active": active})
		return discoverability_view(record)
