"""Distance helpers for GPS and Bluetooth proximity."""

from __future__ import annotations

import math
from typing import Optional

from nearby.settings import settings

EARTH_RADIUS_M = 6_371_000
BLUETOOTH_MIN_DISTANCE_M = 0.1
BLUETOOTH_MAX_DISTANCE_M = 100.0


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the great-circle distance between two points in meters."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # Rounding can push antipodal points just past 1.0
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def estimate_bluetooth_distance(
    rssi: float,
    *,
    tx_power: Optional[float] = None,
    path_loss_exponent: Optional[float] = None,
) -> float:
    """Log-distance path loss estimate, clamped to a plausible Bluetooth range.

    The estimate is advisory: RSSI varies with antennas, bodies and walls, so callers
    should present it as approximate rather than use it for filtering.
    """

    power = settings.bluetooth_tx_power_dbm if tx_power is None else tx_power
    exponent = path_loss_exponent or settings.bluetooth_path_loss_exponent
    distance = 10 ** ((power - rssi) / (10 * exponent))
    return round(min(BLUETOOTH_MAX_DISTANCE_M, max(BLUETOOTH_MIN_DISTANCE_M, distance)), 2)
