import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from fakeredis.aioredis import FakeRedis

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-nearby-discovery")

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from nearby.domain.discovery import container
from nearby.domain.discovery.profiles import InMemoryProfileDirectory, UserProfile
from nearby.domain.discovery.relationships import InMemoryRelationshipOracle
from nearby.domain.discovery.store import InMemorySignalStore
from nearby.infra import postgres
from nearby.infra.signal_store import RedisSignalStore
from nearby.main import app
from nearby.settings import settings

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
	"""Settable clock injected into services."""

	def __init__(self, now: datetime = NOW) -> None:
		self.now = now

	def __call__(self) -> datetime:
		return self.now

	def advance(self, **kwargs) -> None:
		self.now = self.now + timedelta(**kwargs)


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from nearby.infra.redis import redis_client, set_redis_client
	original = redis_client.client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
	async def _noop():
		return None

	monkeypatch.setattr(postgres, "init_pool", _noop)
	monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def force_test_settings():
	"""API tests authenticate via X-User-Id, which is only accepted in dev mode."""
	original_env = settings.environment
	original_token = settings.obs_admin_token
	settings.environment = "dev"
	settings.obs_admin_token = "admin-test-token"
	try:
		yield
	finally:
		settings.environment = original_env
		settings.obs_admin_token = original_token


@pytest.fixture
def clock():
	return FrozenClock()


@pytest.fixture
def profiles():
	directory = InMemoryProfileDirectory()
	for user_id, username in (
		("alice", "alice"),
		("bob", "bob"),
		("carol", "carol"),
		("dave", "dave"),
		("erin", "erin"),
	):
		directory.add(UserProfile(user_id=user_id, username=username, first_name=username.title()))
	return directory


@pytest.fixture
def relationships():
	return InMemoryRelationshipOracle()


@pytest.fixture(params=["memory", "redis"])
def store(request, fake_redis):
	if request.param == "memory":
		return InMemorySignalStore()
	return RedisSignalStore(fake_redis)


@pytest.fixture(autouse=True)
def wired_container(fake_redis, profiles, relationships):
	"""Route API dependencies to in-memory directories and the fakeredis-backed store."""
	container.configure(
		store=RedisSignalStore(),
		profiles=profiles,
		relationships=relationships,
		rate_limiter=None,
	)
	yield container


@pytest_asyncio.fixture
async def api_client():
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client
