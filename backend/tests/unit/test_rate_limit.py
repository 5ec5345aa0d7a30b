import asyncio

import pytest
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis

from nearby.domain.discovery.exceptions import UpstreamError
from nearby.domain.discovery.ingestion import SignalIngestion
from nearby.domain.discovery.models import DiscoveryRequest, WiFiParams
from nearby.domain.discovery.service import DiscoveryService
from nearby.domain.discovery.store import InMemorySignalStore
from nearby.infra.rate_limit import allow, channel_budget
from nearby.infra.redis import set_redis_client
from nearby.settings import settings


@pytest.mark.asyncio
async def test_rate_limit_allows_within_budget():
    assert await allow("signal:gps", "u5", limit=2, window_seconds=60)
    assert await allow("signal:gps", "u5", limit=2, window_seconds=60)


@pytest.mark.asyncio
async def test_rate_limit_blocks_when_budget_exhausted():
    await allow("discover:wifi", "u6", limit=1, window_seconds=60)
    assert not await allow("discover:wifi", "u6", limit=1, window_seconds=60)


@pytest.mark.asyncio
async def test_zero_limit_always_blocks():
    assert not await allow("discover:gps", "u7", limit=0)


@pytest.mark.asyncio
async def test_channel_budget_is_tracked_per_channel(monkeypatch):
    monkeypatch.setattr(settings, "discovery_rate_limit_per_minute", 1)
    assert await channel_budget("discover", "u8", "gps")
    assert not await channel_budget("discover", "u8", "gps")
    assert await channel_budget("discover", "u8", "wifi")


@pytest.mark.asyncio
async def test_signal_and_discovery_budgets_are_separate(monkeypatch):
    monkeypatch.setattr(settings, "discovery_rate_limit_per_minute", 1)
    monkeypatch.setattr(settings, "signal_rate_limit_per_minute", 2)
    assert await channel_budget("discover", "u9", "bluetooth")
    assert await channel_budget("signal", "u9", "bluetooth")
    assert await channel_budget("signal", "u9", "bluetooth")
    assert not await channel_budget("signal", "u9", "bluetooth")


@pytest.fixture
def unreachable_redis():
    server = FakeServer()
    server.connected = False
    set_redis_client(FakeRedis(server=server, decode_responses=True))


@pytest.mark.asyncio
async def test_unreachable_redis_is_an_upstream_error(unreachable_redis):
    with pytest.raises(UpstreamError) as exc:
        await allow("discover:gps", "u10", limit=5)
    assert exc.value.source == "rate_limit"
    assert exc.value.retryable is True


@pytest.mark.asyncio
async def test_discovery_budget_outage_is_an_upstream_error(unreachable_redis, profiles, relationships, clock):
    service = DiscoveryService(
        InMemorySignalStore(),
        profiles,
        relationships,
        clock=clock,
        rate_limiter=channel_budget,
    )
    with pytest.raises(UpstreamError) as exc:
        await service.discover(DiscoveryRequest("alice", WiFiParams()))
    assert exc.value.reason == "upstream_unavailable"


@pytest.mark.asyncio
async def test_signal_budget_outage_is_an_upstream_error(unreachable_redis, profiles, clock):
    store = InMemorySignalStore()
    ingestion = SignalIngestion(store, profiles, clock=clock, rate_limiter=channel_budget)
    with pytest.raises(UpstreamError):
        await ingestion.update_signal("alice", "wifi", {"networkId": "AA:BB:CC:DD:EE:FF"})
    assert await store.get_record("alice") is None


@pytest.mark.asyncio
async def test_slow_budget_check_is_bounded(profiles, relationships, clock):
    async def stalled(kind, actor_id, channel):
        await asyncio.sleep(1)
        return True

    service = DiscoveryService(
        InMemorySignalStore(),
        profiles,
        relationships,
        clock=clock,
        rate_limiter=stalled,
        deadline=0.01,
    )
    with pytest.raises(UpstreamError) as exc:
        await service.discover(DiscoveryRequest("alice", WiFiParams()))
    assert exc.value.reason == "store_timeout"
    assert exc.value.source == "rate_limit"
