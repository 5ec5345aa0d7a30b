from datetime import datetime, timezone

import pytest

from nearby.domain.discovery.exceptions import ChannelPermissionError, ValidationError
from nearby.domain.discovery.models import BluetoothParams, Channel, GPSParams, WiFiParams
from nearby.domain.discovery.validation import (
    build_discovery_request,
    build_params,
    parse_channel,
    parse_discoverability,
    parse_signal,
    validate_radius,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("radius", [99, 50001, 0, -5, "abc", 150.5, True])
def test_radius_outside_bounds_is_rejected(radius):
    with pytest.raises(ValidationError):
        validate_radius(radius)


@pytest.mark.parametrize("radius", [100, 50000, "2500", 5000.0])
def test_radius_bounds_are_inclusive(radius):
    assert validate_radius(radius) == int(float(radius))


def test_radius_defaults_when_missing():
    assert validate_radius(None) == 5000


def test_out_of_range_radius_reports_reason():
    with pytest.raises(ValidationError) as exc:
        validate_radius(99)
    assert exc.value.reason == "radius_out_of_range"


def test_unknown_channel_is_rejected():
    with pytest.raises(ValidationError) as exc:
        parse_channel("lora")
    assert exc.value.reason == "unknown_channel"
    assert parse_channel("WiFi") is Channel.WIFI


def test_gps_signal_coordinates_validated():
    signal = parse_signal(Channel.GPS, {"latitude": 40.7128, "longitude": -74.006}, updated_at=NOW)
    assert (signal.latitude, signal.longitude, signal.updated_at) == (40.7128, -74.006, NOW)
    with pytest.raises(ValidationError) as exc:
        parse_signal(Channel.GPS, {"latitude": 91, "longitude": 0}, updated_at=NOW)
    assert exc.value.reason == "invalid_coordinates"
    assert exc.value.errors
    with pytest.raises(ValidationError):
        parse_signal(Channel.GPS, {"latitude": 10}, updated_at=NOW)


def test_network_id_is_normalised_and_accepts_bssid_alias():
    signal = parse_signal(Channel.WIFI, {"bssid": "aa-bb-cc-dd-ee-0f"}, updated_at=NOW)
    assert signal.network_id == "AA:BB:CC:DD:EE:0F"
    signal = parse_signal(Channel.WIFI, {"networkId": "AA:BB:CC:DD:EE:0F"}, updated_at=NOW)
    assert signal.network_id == "AA:BB:CC:DD:EE:0F"


@pytest.mark.parametrize("value", ["", "not-a-mac", "AA:BB:CC:DD:EE", "GG:BB:CC:DD:EE:FF", "AABBCCDDEEFF"])
def test_malformed_identifiers_are_rejected(value):
    with pytest.raises(ValidationError) as exc:
        parse_signal(Channel.BLUETOOTH, {"deviceId": value}, updated_at=NOW)
    assert exc.value.reason == "invalid_device_id"


def test_device_id_accepts_bluetooth_alias():
    signal = parse_signal(Channel.BLUETOOTH, {"bluetoothId": "01:23:45:67:89:ab"}, updated_at=NOW)
    assert signal.device_id == "01:23:45:67:89:AB"


@pytest.mark.parametrize("state", ["denied", "not_supported", "not-supported"])
def test_denied_capability_is_reported_before_validation(state):
    with pytest.raises(ChannelPermissionError) as exc:
        parse_signal(Channel.GPS, {"permissionState": state, "latitude": 999}, updated_at=NOW)
    assert exc.value.channel == "gps"
    assert exc.value.reason == f"gps_{state.replace('-', '_')}"


def test_granted_capability_is_accepted():
    signal = parse_signal(Channel.WIFI, {"permissionState": "granted", "networkId": "AA:BB:CC:DD:EE:FF"}, updated_at=NOW)
    assert signal.network_id == "AA:BB:CC:DD:EE:FF"


def test_bluetooth_scan_dedupes_and_normalises():
    params = build_params(
        Channel.BLUETOOTH,
        body={"nearbyDevices": ["aa:bb:cc:dd:ee:ff", "AA-BB-CC-DD-EE-FF", "11:22:33:44:55:66"]},
    )
    assert isinstance(params, BluetoothParams)
    assert params.observed_device_ids == frozenset({"AA:BB:CC:DD:EE:FF", "11:22:33:44:55:66"})


def test_bluetooth_scan_is_capped():
    ids = [f"AA:BB:CC:DD:{i // 256:02X}:{i % 256:02X}" for i in range(51)]
    with pytest.raises(ValidationError) as exc:
        build_params(Channel.BLUETOOTH, body={"observedDeviceIds": ids})
    assert exc.value.reason == "invalid_scan"


def test_bluetooth_scan_signal_strengths_keyed_by_normalised_id():
    params = build_params(
        Channel.BLUETOOTH,
        body={
            "observedDeviceIds": ["aa:bb:cc:dd:ee:ff"],
            "signalStrengths": {"aa-bb-cc-dd-ee-ff": -60},
            "txPower": -59,
        },
    )
    assert params.signal_strengths == {"AA:BB:CC:DD:EE:FF": -60}
    assert params.tx_power_dbm == -59


def test_empty_bluetooth_scan_is_valid():
    params = build_params(Channel.BLUETOOTH, body=None)
    assert params.observed_device_ids == frozenset()


def test_discovery_request_dispatches_per_channel():
    assert isinstance(build_discovery_request("alice", "gps", radius="1000").params, GPSParams)
    assert isinstance(build_discovery_request("alice", "wifi").params, WiFiParams)
    assert build_discovery_request("alice", "bluetooth", body={}).channel is Channel.BLUETOOTH


def test_discoverability_range_is_validated():
    update = parse_discoverability({"discoveryRangeMeters": 100, "privacySettings": {"showAge": False}})
    assert update.discovery_range_meters == 100
    assert update.privacy_settings.show_age is False
    with pytest.raises(ValidationError):
        parse_discoverability({"discoveryRangeMeters": 50001})
