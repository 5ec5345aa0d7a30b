import pytest


ADMIN = {"X-Admin-Token": "admin-test-token"}


@pytest.mark.asyncio
async def test_liveness(api_client):
	response = await api_client.get("/health/live")
	assert response.status_code == 200
	assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_readiness_reports_missing_postgres(api_client):
	response = await api_client.get("/health/ready")
	assert response.status_code == 503
	body = response.json()
	assert body["checks"]["redis"]["ok"] is True
	assert body["checks"]["postgres"]["ok"] is False


@pytest.mark.asyncio
async def test_metrics_require_admin_token(api_client):
	response = await api_client.get("/metrics")
	assert response.status_code == 403

	response = await api_client.get("/metrics", headers=ADMIN)
	assert response.status_code == 200
	assert "text/plain" in response.headers["content-type"]


@pytest.mark.asyncio
async def test_metrics_count_discovery_queries(api_client):
	await api_client.get("/discover/wifi", headers={"X-User-Id": "alice"})
	response = await api_client.get("/metrics", headers=ADMIN)
	assert "discovery_queries_total" in response.text


@pytest.mark.asyncio
async def test_deactivated_user_leaves_discovery(api_client):
	for user_id in ("alice", "bob"):
		await api_client.put("/signal/wifi", json={"networkId": "AA:BB:CC:00:00:01"}, headers={"X-User-Id": user_id})

	response = await api_client.post("/ops/users/bob/active", json={"active": False}, headers=ADMIN)
	assert response.status_code == 200
	assert response.json()["isActive"] is False

	response = await api_client.get("/discover/wifi", headers={"X-User-Id": "alice"})
	assert response.json()["users"] == []

	await api_client.post("/ops/users/bob/active", json={"active": True}, headers=ADMIN)
	response = await api_client.get("/discover/wifi", headers={"X-User-Id": "alice"})
	assert [u["id"] for u in response.json()["users"]] == ["bob"]


@pytest.mark.asyncio
async def test_set_active_requires_admin(api_client):
	response = await api_client.post("/ops/users/bob/active", json={"active": False})
	assert response.status_code == 403
	assert response.json()["detail"] == "forbidden"
