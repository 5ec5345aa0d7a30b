import pytest

from nearby.domain.discovery.geo import (
    BLUETOOTH_MAX_DISTANCE_M,
    BLUETOOTH_MIN_DISTANCE_M,
    estimate_bluetooth_distance,
    haversine,
)


def test_haversine_new_york_to_london():
    distance = haversine(40.7128, -74.0060, 51.5074, -0.1278)
    assert distance == pytest.approx(5_570_000, rel=0.01)


def test_haversine_is_symmetric_and_zero_for_same_point():
    assert haversine(40.7128, -74.0060, 40.7128, -74.0060) == 0
    forward = haversine(40.7128, -74.0060, 40.7300, -74.0000)
    backward = haversine(40.7300, -74.0000, 40.7128, -74.0060)
    assert forward == pytest.approx(backward)


def test_haversine_antipodal_points_do_not_fail():
    distance = haversine(0.0, 0.0, 0.0, 180.0)
    assert distance == pytest.approx(3.141592653589793 * 6_371_000, rel=1e-6)


def test_bluetooth_estimate_follows_path_loss_model():
    # txPower 0 dBm, exponent 2: -20 dBm is 10 m, -40 dBm is 100 m
    assert estimate_bluetooth_distance(-20, tx_power=0, path_loss_exponent=2) == pytest.approx(10.0)
    assert estimate_bluetooth_distance(-40, tx_power=0, path_loss_exponent=2) == pytest.approx(100.0)


def test_bluetooth_estimate_is_clamped():
    assert estimate_bluetooth_distance(-95, tx_power=0) == BLUETOOTH_MAX_DISTANCE_M
    assert estimate_bluetooth_distance(30, tx_power=0) == BLUETOOTH_MIN_DISTANCE_M
    assert estimate_bluetooth_distance(15, tx_power=0, path_loss_exponent=1) == BLUETOOTH_MIN_DISTANCE_M
