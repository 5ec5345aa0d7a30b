"""Payload validation shared by signal ingestion and discovery requests."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from nearby.domain.discovery.exceptions import ChannelPermissionError, ValidationError
from nearby.domain.discovery.models import (
	BluetoothParams,
	BluetoothSignal,
	Channel,
	ChannelParams,
	DiscoveryRequest,
	GPSParams,
	GPSSignal,
	PositionSignal,
	WiFiParams,
	WiFiSignal,
)
from nearby.domain.discovery.schemas import (
	BluetoothScanPayload,
	BluetoothSignalPayload,
	DiscoverabilityUpdatePayload,
	GPSSignalPayload,
	WiFiSignalPayload,
)
from nearby.settings import settings

PayloadT = TypeVar("PayloadT", bound=BaseModel)

_DENIED_STATES = {"denied", "not_supported"}


def parse_channel(value: Any) -> Channel:
	if isinstance(value, Channel):
		return value
	try:
		return Channel(str(value).strip().lower())
	except ValueError as exc:
		raise ValidationError("unknown_channel") from exc


def check_permission_state(channel: Channel, payload: Mapping[str, Any] | None) -> None:
	"""Refuse requests whose device reported the capability as unavailable."""
	if not isinstance(payload, Mapping):
		return
	raw = payload.get("permissionState", payload.get("permission_state"))
	if not isinstance(raw, str):
		return
	state = raw.strip().lower().replace("-", "_")
	if state in _DENIED_STATES:
		raise ChannelPermissionError(channel.value, state)


def _parse(model: Type[PayloadT], payload: Mapping[str, Any] | None, reason: str) -> PayloadT:
	if payload is not None and not isinstance(payload, Mapping):
		raise ValidationError(reason, errors=[{"loc": ["body"], "msg": "expected an object", "type": "type_error"}])
	try:
		return model.model_validate(dict(payload or {}))
	except PydanticValidationError as exc:
		raise ValidationError(reason, errors=exc.errors(include_url=False, include_context=False, include_input=False)) from exc


def parse_signal(channel: Channel, payload: Mapping[str, Any] | None, *, updated_at: datetime) -> PositionSignal:
	check_permission_state(channel, payload)
	if channel is Channel.GPS:
		gps = _parse(GPSSignalPayload, payload, "invalid_coordinates")
		return GPSSignal(latitude=gps.latitude, longitude=gps.longitude, updated_at=updated_at)
	if channel is Channel.WIFI:
		wifi = _parse(WiFiSignalPayload, payload, "invalid_network_id")
		return WiFiSignal(network_id=wifi.network_id, updated_at=updated_at)
	bluetooth = _parse(BluetoothSignalPayload, payload, "invalid_device_id")
	return BluetoothSignal(device_id=bluetooth.device_id, updated_at=updated_at)


def parse_discoverability(payload: Mapping[str, Any] | None) -> DiscoverabilityUpdatePayload:
	return _parse(DiscoverabilityUpdatePayload, payload, "invalid_discoverability")


def validate_radius(radius: Any) -> int:
	"""Radius bounds are inclusive; out-of-range values are rejected, never clamped."""
	if radius is None:
		return settings.discovery_default_radius_m
	if isinstance(radius, bool):
		raise ValidationError("invalid_radius")
	try:
		value = int(radius)
	except (TypeError, ValueError, OverflowError) as exc:
		raise ValidationError("invalid_radius") from exc
	if isinstance(radius, float) and radius != value:
		raise ValidationError("invalid_radius")
	if not settings.discovery_min_radius_m <= value <= settings.discovery_max_radius_m:
		raise ValidationError("radius_out_of_range")
	return value


def build_params(channel: Channel, *, radius: Any = None, body: Optional[Mapping[str, Any]] = None) -> ChannelParams:
	if channel is Channel.GPS:
		return GPSParams(radius_m=validate_radius(radius))
	if channel is Channel.WIFI:
		return WiFiParams()
	check_permission_state(channel, body)
	scan = _parse(BluetoothScanPayload, body, "invalid_scan")
	return BluetoothParams(
		observed_device_ids=frozenset(scan.observed_device_ids),
		signal_strengths=scan.signal_strengths,
		tx_power_dbm=scan.tx_power,
	)


def build_discovery_request(
	requester_id: str,
	channel: Any,
	*,
	radius: Any = None,
	body: Optional[Mapping[str, Any]] = None,
) -> DiscoveryRequest:
	return DiscoveryRequest(
		requester_id=requester_id,
		params=build_params(parse_channel(channel), radius=radius, body=body),
	)
