"""Central registry for Prometheus metrics used across the service."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Summary

REQUEST_COUNTER = Counter(
	"nearby_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"nearby_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SIGNAL_UPDATES = Counter(
	"nearby_signal_updates_total",
	"Positioning signal updates accepted",
	["channel"],
)

SIGNAL_REJECTS = Counter(
	"nearby_signal_rejects_total",
	"Positioning signal updates rejected",
	["channel", "reason"],
)

DISCOVERY_QUERIES = Counter(
	"nearby_discovery_queries_total",
	"Discovery requests evaluated",
	["channel"],
)

DISCOVERY_SHORT_CIRCUITS = Counter(
	"nearby_discovery_short_circuit_total",
	"Discovery requests answered without a candidate query",
	["channel", "reason"],
)

DISCOVERY_REJECTS = Counter(
	"nearby_discovery_rejects_total",
	"Discovery requests rejected",
	["channel", "reason"],
)

DISCOVERY_RESULTS = Summary(
	"nearby_discovery_results",
	"Discovery result sizes",
	["channel"],
)

UPSTREAM_FAILURES = Counter(
	"nearby_upstream_failures_total",
	"Signal Store / Relationship Oracle failures",
	["source", "kind"],
)

REDIS_UP = Gauge("nearby_redis_up", "Redis readiness (1 = ok)")
REDIS_LATENCY = Histogram("nearby_redis_latency_seconds", "Redis readiness probe latency")
POSTGRES_UP = Gauge("nearby_postgres_up", "Postgres readiness (1 = ok)")
POSTGRES_LATENCY = Histogram("nearby_postgres_latency_seconds", "Postgres readiness probe latency")


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_signal_update(channel: str) -> None:
	SIGNAL_UPDATES.labels(channel=channel).inc()


def inc_signal_reject(channel: str, reason: str) -> None:
	SIGNAL_REJECTS.labels(channel=channel, reason=reason).inc()


def inc_discovery_query(channel: str) -> None:
	DISCOVERY_QUERIES.labels(channel=channel).inc()


def inc_discovery_short_circuit(channel: str, reason: str) -> None:
	DISCOVERY_SHORT_CIRCUITS.labels(channel=channel, reason=reason).inc()


def inc_discovery_reject(channel: str, reason: str) -> None:
	DISCOVERY_REJECTS.labels(channel=channel, reason=reason).inc()


def observe_discovery_results(channel: str, count: int) -> None:
	DISCOVERY_RESULTS.labels(channel=channel).observe(count)


def inc_upstream_failure(source: str, kind: str) -> None:
	UPSTREAM_FAILURES.labels(source=source, kind=kind).inc()


def mark_redis(ok: bool, *, latency_seconds: float | None = None) -> None:
	REDIS_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		REDIS_LATENCY.observe(latency_seconds)


def mark_postgres(ok: bool, *, latency_seconds: float | None = None) -> None:
	POSTGRES_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		POSTGRES_LATENCY.observe(latency_seconds)
