"""Pydantic schemas for signal ingestion and discovery endpoints."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from nearby.settings import settings

PermissionState = Literal["granted", "denied", "prompt", "not_supported"]

_MAC_RE = re.compile(r"^([0-9A-Fa-f]{2}[:-]){5}([0-9A-Fa-f]{2})$")


def normalize_mac(value: str) -> str:
	"""Canonical MAC-style identifier: upper-case hex pairs joined by colons."""
	candidate = value.strip() if isinstance(value, str) else ""
	if not _MAC_RE.match(candidate):
		raise ValueError("identifier must be a MAC-style address (XX:XX:XX:XX:XX:XX)")
	return candidate.replace("-", ":").upper()


class _Payload(BaseModel):
	model_config = ConfigDict(populate_by_name=True, extra="ignore")

	permission_state: Optional[PermissionState] = Field(
		default=None,
		validation_alias=AliasChoices("permissionState", "permission_state"),
	)

	@field_validator("permission_state", mode="before")
	def normalize_permission(cls, value: object) -> object:
		if isinstance(value, str):
			return value.strip().lower().replace("-", "_")
		return value


class GPSSignalPayload(_Payload):
	"""Coordinates reported by the device's location service."""

	latitude: float = Field(..., ge=-90.0, le=90.0, allow_inf_nan=False)
	longitude: float = Field(..., ge=-180.0, le=180.0, allow_inf_nan=False)


class WiFiSignalPayload(_Payload):
	"""Identifier of the access point the device is associated with."""

	network_id: str = Field(..., validation_alias=AliasChoices("networkId", "network_id", "bssid"))

	@field_validator("network_id")
	def normalize_id(cls, value: str) -> str:
		return normalize_mac(value)


class BluetoothSignalPayload(_Payload):
	"""The device's own advertised radio identifier."""

	device_id: str = Field(..., validation_alias=AliasChoices("deviceId", "device_id", "bluetoothId"))

	@field_validator("device_id")
	def normalize_id(cls, value: str) -> str:
		return normalize_mac(value)


class BluetoothScanPayload(_Payload):
	"""Result of a local radio scan supplied with a Bluetooth discovery request."""

	observed_device_ids: list[str] = Field(
		default_factory=list,
		validation_alias=AliasChoices("observedDeviceIds", "observed_device_ids", "nearbyDevices"),
	)
	signal_strengths: dict[str, float] = Field(
		default_factory=dict,
		validation_alias=AliasChoices("signalStrengths", "signal_strengths"),
	)
	tx_power: Optional[float] = Field(
		default=None,
		ge=-100.0,
		le=20.0,
		validation_alias=AliasChoices("txPower", "tx_power"),
	)

	@field_validator("observed_device_ids")
	def normalize_ids(cls, value: list[str]) -> list[str]:
		if len(value) > settings.bluetooth_max_observed_devices:
			raise ValueError(f"at most {settings.bluetooth_max_observed_devices} devices per scan")
		seen: dict[str, None] = {}
		for item in value:
			seen.setdefault(normalize_mac(item), None)
		return list(seen)

	@field_validator("signal_strengths")
	def normalize_rssi(cls, value: dict[str, float]) -> dict[str, float]:
		normalized: dict[str, float] = {}
		for device_id, rssi in value.items():
			if not -127.0 <= rssi <= 20.0:
				raise ValueError("rssi must be between -127 and 20 dBm")
			normalized[normalize_mac(device_id)] = rssi
		return normalized


class PrivacySettingsPayload(BaseModel):
	model_config = ConfigDict(populate_by_name=True, extra="ignore")

	show_age: Optional[bool] = Field(default=None, validation_alias=AliasChoices("showAge", "show_age"))
	show_location: Optional[bool] = Field(default=None, validation_alias=AliasChoices("showLocation", "show_location"))
	show_last_seen: Optional[bool] = Field(default=None, validation_alias=AliasChoices("showLastSeen", "show_last_seen"))


class DiscoverabilityUpdatePayload(BaseModel):
	model_config = ConfigDict(populate_by_name=True, extra="ignore")

	is_discoverable: Optional[bool] = Field(
		default=None,
		validation_alias=AliasChoices("isDiscoverable", "is_discoverable"),
	)
	discovery_range_meters: Optional[int] = Field(
		default=None,
		validation_alias=AliasChoices("discoveryRangeMeters", "discovery_range_meters"),
	)
	privacy_settings: Optional[PrivacySettingsPayload] = Field(
		default=None,
		validation_alias=AliasChoices("privacySettings", "privacy_settings"),
	)

	@field_validator("discovery_range_meters")
	def check_range(cls, value: Optional[int]) -> Optional[int]:
		if value is None:
			return value
		if not settings.discovery_min_radius_m <= value <= settings.discovery_max_radius_m:
			raise ValueError(
				f"range must be between {settings.discovery_min_radius_m} and {settings.discovery_max_radius_m} meters"
			)
		return value


# Responses are serialized with camelCase aliases.


class CamelModel(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SignalAck(CamelModel):
	accepted: bool = True
	channel: str
	updated_at: datetime
	is_discoverable: bool


class PrivacySettingsView(CamelModel):
	show_age: bool = True
	show_location: bool = True
	show_last_seen: bool = True


class DiscoverabilityView(CamelModel):
	is_discoverable: bool
	is_active: bool
	discovery_range_meters: int
	privacy_settings: PrivacySettingsView


class GPSSignalView(CamelModel):
	latitude: float
	longitude: float
	updated_at: datetime


class WiFiSignalView(CamelModel):
	network_id: str
	updated_at: datetime


class BluetoothSignalView(CamelModel):
	device_id: str
	updated_at: datetime


class SignalStatus(CamelModel):
	"""The requester's own stored signals; never exposed to other users."""

	gps: Optional[GPSSignalView] = None
	wifi: Optional[WiFiSignalView] = None
	bluetooth: Optional[BluetoothSignalView] = None
	last_seen: Optional[datetime] = None
	discoverability: DiscoverabilityView


class CandidateUser(CamelModel):
	"""A discovered user projected through the candidate's privacy settings.

	Gated fields are left unset (and dropped from responses) rather than blanked.
	"""

	id: str
	username: Optional[str] = None
	first_name: Optional[str] = None
	last_name: Optional[str] = None
	profile_picture: Optional[str] = None
	bio: Optional[str] = None
	interests: list[str] = Field(default_factory=list)
	is_online: bool = False
	is_friend: bool = False
	has_pending_request: bool = False
	show_age: bool = True
	show_location: bool = True
	show_last_seen: bool = True
	age: Optional[int] = None
	last_seen: Optional[datetime] = None
	distance: Optional[int] = Field(default=None, ge=0)
	estimated_distance_m: Optional[float] = Field(default=None, alias="estimatedDistanceM")
	last_seen_wifi: Optional[datetime] = Field(default=None, alias="lastSeenWifi")
	bluetooth_last_update: Optional[datetime] = None


class CenterLocation(CamelModel):
	latitude: float
	longitude: float


class GPSContext(CamelModel):
	search_radius: int
	center_location: Optional[CenterLocation] = None


class WiFiContext(CamelModel):
	network_id: Optional[str] = None


class BluetoothContext(CamelModel):
	scanned_device_count: int = 0


ChannelContext = Union[GPSContext, WiFiContext, BluetoothContext]


class DiscoveryResult(CamelModel):
	success: bool = True
	channel: str
	users: list[CandidateUser] = Field(default_factory=list)
	total_found: int = 0
	channel_context: Optional[ChannelContext] = None
	timestamp: datetime
	message: Optional[str] = None
