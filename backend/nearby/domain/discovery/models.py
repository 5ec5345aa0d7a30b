"""Domain models for positioning signals and discovery requests."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, ClassVar, Mapping, Optional, Union

from nearby.settings import settings


class Channel(str, Enum):
	"""Positioning channels; exactly one is evaluated per discovery request."""

	GPS = "gps"
	WIFI = "wifi"
	BLUETOOTH = "bluetooth"


DEFAULT_DISCOVERY_RANGE_M = 5000


def freshness_window(channel: Channel) -> Optional[timedelta]:
	"""Maximum signal age that still counts toward candidacy (None = no expiry)."""
	if channel is Channel.WIFI:
		return timedelta(seconds=settings.wifi_freshness_seconds)
	if channel is Channel.BLUETOOTH:
		return timedelta(seconds=settings.bluetooth_freshness_seconds)
	return None


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


@dataclass(slots=True, frozen=True)
class PrivacySettings:
	"""Field visibility chosen by the candidate; everything is shown unless set."""

	show_age: bool = True
	show_location: bool = True
	show_last_seen: bool = True

	@classmethod
	def from_mapping(cls, data: Mapping[str, Any] | None) -> "PrivacySettings":
		data = data or {}
		return cls(
			show_age=bool(data.get("show_age", True)),
			show_location=bool(data.get("show_location", True)),
			show_last_seen=bool(data.get("show_last_seen", True)),
		)

	def to_dict(self) -> dict[str, bool]:
		return {
			"show_age": self.show_age,
			"show_location": self.show_location,
			"show_last_seen": self.show_last_seen,
		}


@dataclass(slots=True, frozen=True)
class DiscoverabilityProfile:
	is_discoverable: bool = True
	is_active: bool = True
	discovery_range_m: int = DEFAULT_DISCOVERY_RANGE_M
	privacy: PrivacySettings = field(default_factory=PrivacySettings)


@dataclass(slots=True, frozen=True)
class GPSSignal:
	latitude: float
	longitude: float
	updated_at: datetime
	channel: ClassVar[Channel] = Channel.GPS


@dataclass(slots=True, frozen=True)
class WiFiSignal:
	network_id: str
	updated_at: datetime
	channel: ClassVar[Channel] = Channel.WIFI


@dataclass(slots=True, frozen=True)
class BluetoothSignal:
	device_id: str
	updated_at: datetime
	channel: ClassVar[Channel] = Channel.BLUETOOTH


PositionSignal = Union[GPSSignal, WiFiSignal, BluetoothSignal]


@dataclass(slots=True, frozen=True)
class SignalRecord:
	"""Latest per-channel signals plus discoverability settings for one user."""

	user_id: str
	profile: DiscoverabilityProfile = field(default_factory=DiscoverabilityProfile)
	gps: Optional[GPSSignal] = None
	wifi: Optional[WiFiSignal] = None
	bluetooth: Optional[BluetoothSignal] = None
	last_seen: Optional[datetime] = None

	def signal_for(self, channel: Channel) -> Optional[PositionSignal]:
		if channel is Channel.GPS:
			return self.gps
		if channel is Channel.WIFI:
			return self.wifi
		return self.bluetooth

	def with_signal(self, signal: PositionSignal) -> "SignalRecord":
		"""Return a copy with one channel overwritten and last_seen refreshed."""
		if isinstance(signal, GPSSignal):
			return replace(self, gps=signal, last_seen=signal.updated_at)
		if isinstance(signal, WiFiSignal):
			return replace(self, wifi=signal, last_seen=signal.updated_at)
		return replace(self, bluetooth=signal, last_seen=signal.updated_at)

	def is_candidate_for(self, requester_id: str) -> bool:
		return (
			self.user_id != requester_id
			and self.profile.is_discoverable
			and self.profile.is_active
		)


# Channel parameters: one variant per channel, dispatched on type.


@dataclass(slots=True, frozen=True)
class GPSParams:
	radius_m: int
	channel: ClassVar[Channel] = Channel.GPS


@dataclass(slots=True, frozen=True)
class WiFiParams:
	channel: ClassVar[Channel] = Channel.WIFI


@dataclass(slots=True, frozen=True)
class BluetoothParams:
	observed_device_ids: frozenset[str] = frozenset()
	signal_strengths: Mapping[str, float] = field(default_factory=dict)
	tx_power_dbm: Optional[float] = None
	channel: ClassVar[Channel] = Channel.BLUETOOTH


ChannelParams = Union[GPSParams, WiFiParams, BluetoothParams]


@dataclass(slots=True, frozen=True)
class DiscoveryRequest:
	requester_id: str
	params: ChannelParams

	@property
	def channel(self) -> Channel:
		return self.params.channel


@dataclass(slots=True, frozen=True)
class Proximity:
	"""Distance or adjacency descriptor attached to one candidate."""

	channel: Channel
	distance_m: Optional[float] = None
	estimated_distance_m: Optional[float] = None
	adjacent: bool = True


@dataclass(slots=True, frozen=True)
class RawCandidate:
	"""A user that passed a channel's predicates, before annotation."""

	user_id: str
	signal_updated_at: datetime
	proximity: Proximity
	privacy: PrivacySettings = field(default_factory=PrivacySettings)
	last_seen: Optional[datetime] = None
