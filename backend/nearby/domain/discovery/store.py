"""Signal Store interface and the in-memory reference implementation."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Iterable, Optional, Protocol, Sequence

from nearby.domain.discovery.geo import haversine
from nearby.domain.discovery.models import (
    DiscoverabilityProfile,
    PositionSignal,
    PrivacySettings,
    SignalRecord,
)


class SignalStore(Protocol):
    """Latest per-channel signal and discoverability state, one record per user.

    Writes are single-record and atomic: a reader sees either the old or the new
    signal for a channel, never a mix. Lookup methods are coarse index scans;
    callers re-check every predicate against the returned records.
    """

    async def get_record(self, user_id: str) -> SignalRecord | None:
        ...

    async def write_signal(self, user_id: str, signal: PositionSignal) -> SignalRecord:
        """Overwrite one channel's signal and refresh last_seen, creating the record if needed."""
        ...

    async def update_discoverability(
        self,
        user_id: str,
        *,
        is_discoverable: Optional[bool] = None,
        discovery_range_m: Optional[int] = None,
        privacy: Optional[PrivacySettings] = None,
    ) -> SignalRecord:
        ...

    async def set_active(self, user_id: str, active: bool) -> SignalRecord:
        ...

    async def find_near(self, latitude: float, longitude: float, radius_m: float, *, limit: int) -> Sequence[SignalRecord]:
        ...

    async def find_on_network(self, network_id: str, *, since: Optional[datetime], limit: int) -> Sequence[SignalRecord]:
        ...

    async def find_devices(self, device_ids: Iterable[str], *, since: Optional[datetime], limit: int) -> Sequence[SignalRecord]:
        ...


class InMemorySignalStore(SignalStore):
    """Reference store used in tests and developer environments."""

    def __init__(self) -> None:
        self._records: dict[str, SignalRecord] = {}

    def _current(self, user_id: str) -> SignalRecord:
        return self._records.get(user_id) or SignalRecord(user_id=user_id, profile=DiscoverabilityProfile())

    async def get_record(self, user_id: str) -> SignalRecord | None:
        return self._records.get(user_id)

    async def write_signal(self, user_id: str, signal: PositionSignal) -> SignalRecord:
        record = self._current(user_id).with_signal(signal)
        self._records[user_id] = record
        return record

    async def update_discoverability(
        self,
        user_id: str,
        *,
        is_discoverable: Optional[bool] = None,
        discovery_range_m: Optional[int] = None,
        privacy: Optional[PrivacySettings] = None,
    ) -> SignalRecord:
        record = self._current(user_id)
        profile = record.profile
        if is_discoverable is not None:
            profile = replace(profile, is_discoverable=is_discoverable)
        if discovery_range_m is not None:
            profile = replace(profile, discovery_range_m=discovery_range_m)
        if privacy is not None:
            profile = replace(profile, privacy=privacy)
        record = replace(record, profile=profile)
        self._records[user_id] = record
        return record

    async def set_active(self, user_id: str, active: bool) -> SignalRecord:
        record = self._current(user_id)
        record = replace(record, profile=replace(record.profile, is_active=active))
        self._records[user_id] = record
        return record

    async def find_near(self, latitude: float, longitude: float, radius_m: float, *, limit: int) -> Sequence[SignalRecord]:
        hits: list[tuple[float, SignalRecord]] = []
        for record in self._records.values():
            if record.gps is None:
                continue
            distance = haversine(latitude, longitude, record.gps.latitude, record.gps.longitude)
            if distance <= radius_m:
                hits.append((distance, record))
        hits.sort(key=lambda item: item[0])
        return [record for _, record in hits[:limit]]

    async def find_on_network(self, network_id: str, *, since: Optional[datetime], limit: int) -> Sequence[SignalRecord]:
        matches = [
            record
            for record in self._records.values()
            if record.wifi is not None
            and record.wifi.network_id == network_id
            and (since is None or record.wifi.updated_at >= since)
        ]
        matches.sort(key=lambda record: record.wifi.updated_at, reverse=True)
        return matches[:limit]

    async def find_devices(self, device_ids: Iterable[str], *, since: Optional[datetime], limit: int) -> Sequence[SignalRecord]:
        wanted = set(device_ids)
        if not wanted:
            return []
        matches = [
            record
            for record in self._records.values()
            if record.bluetooth is not None
            and record.bluetooth.device_id in wanted
            and (since is None or record.bluetooth.updated_at >= since)
        ]
        matches.sort(key=lambda record: record.bluetooth.updated_at, reverse=True)
        return matches[:limit]
