"""Service container for signal ingestion and discovery.

Defaults to the in-memory reference repositories; `configure_backends` swaps in
Redis and Postgres at application startup, and tests call `configure` directly.
"""

from __future__ import annotations

from typing import Optional

from nearby.domain.discovery.ingestion import SignalIngestion
from nearby.domain.discovery.profiles import InMemoryProfileDirectory, ProfileDirectory
from nearby.domain.discovery.relationships import InMemoryRelationshipOracle, RelationshipOracle
from nearby.domain.discovery.service import DiscoveryService
from nearby.domain.discovery.store import InMemorySignalStore, SignalStore
from nearby.infra.profile_repo import PostgresProfileDirectory
from nearby.infra.rate_limit import RateLimitHook, channel_budget
from nearby.infra.relationship_repo import PostgresRelationshipOracle
from nearby.infra.signal_store import RedisSignalStore
from nearby.settings import settings

_store: SignalStore = InMemorySignalStore()
_profiles: ProfileDirectory = InMemoryProfileDirectory()
_relationships: RelationshipOracle = InMemoryRelationshipOracle()
_rate_limiter: Optional[RateLimitHook] = None
_discovery_service = DiscoveryService(_store, _profiles, _relationships)
_signal_ingestion = SignalIngestion(_store, _profiles)


def configure(
    *,
    store: Optional[SignalStore] = None,
    profiles: Optional[ProfileDirectory] = None,
    relationships: Optional[RelationshipOracle] = None,
    rate_limiter: Optional[RateLimitHook] = None,
) -> None:
    global _store, _profiles, _relationships, _rate_limiter, _discovery_service, _signal_ingestion
    if store is not None:
        _store = store
    if profiles is not None:
        _profiles = profiles
    if relationships is not None:
        _relationships = relationships
    _rate_limiter = rate_limiter
    _discovery_service = DiscoveryService(_store, _profiles, _relationships, rate_limiter=_rate_limiter)
    _signal_ingestion = SignalIngestion(_store, _profiles, rate_limiter=_rate_limiter)


def configure_backends() -> None:
    """Wire the production backends selected by settings."""
    if settings.signal_store_backend == "memory":
        store: SignalStore = InMemorySignalStore()
    else:
        store = RedisSignalStore()
    configure(
        store=store,
        profiles=PostgresProfileDirectory(),
        relationships=PostgresRelationshipOracle(),
        rate_limiter=channel_budget,
    )


def get_signal_store() -> SignalStore:
    return _store


def get_discovery_service() -> DiscoveryService:
    return _discovery_service


def get_signal_ingestion() -> SignalIngestion:
    return _signal_ingestion
