import pytest

from nearby.domain.discovery.container import get_signal_store
from nearby.domain.discovery.models import PrivacySettings


def user(user_id):
	return {"X-User-Id": user_id}


async def put(api_client, user_id, channel, payload):
	response = await api_client.put(f"/signal/{channel}", json=payload, headers=user(user_id))
	assert response.status_code == 200, response.text


@pytest.mark.asyncio
async def test_gps_discovery_returns_camel_case_result(api_client):
	await put(api_client, "alice", "gps", {"latitude": 40.7128, "longitude": -74.0060})
	await put(api_client, "bob", "gps", {"latitude": 40.7300, "longitude": -74.0000})

	response = await api_client.get("/discover/gps", params={"radius": 5000}, headers=user("alice"))
	assert response.status_code == 200
	body = response.json()
	assert body["success"] is True
	assert body["channel"] == "gps"
	assert body["totalFound"] == 1
	assert body["channelContext"]["searchRadius"] == 5000
	assert body["channelContext"]["centerLocation"] == {"latitude": 40.7128, "longitude": -74.006}
	(bob,) = body["users"]
	assert bob["id"] == "bob"
	assert bob["firstName"] == "Bob"
	assert 1900 <= bob["distance"] <= 2200
	assert bob["isFriend"] is False
	assert bob["hasPendingRequest"] is False
	assert "X-Request-Id" in response.headers


@pytest.mark.asyncio
async def test_gps_defaults_radius(api_client):
	await put(api_client, "alice", "gps", {"latitude": 40.7128, "longitude": -74.0060})
	response = await api_client.get("/discover/gps", headers=user("alice"))
	assert response.status_code == 200
	assert response.json()["channelContext"]["searchRadius"] == 5000


@pytest.mark.asyncio
@pytest.mark.parametrize("radius,reason", [("99", "radius_out_of_range"), ("50001", "radius_out_of_range"), ("far", "invalid_radius")])
async def test_gps_radius_bounds(api_client, radius, reason):
	response = await api_client.get("/discover/gps", params={"radius": radius}, headers=user("alice"))
	assert response.status_code == 400
	assert response.json()["detail"] == reason


@pytest.mark.asyncio
async def test_gps_without_location_returns_message(api_client):
	response = await api_client.get("/discover/gps", headers=user("alice"))
	assert response.status_code == 200
	body = response.json()
	assert body["users"] == []
	assert body["totalFound"] == 0
	assert body["message"]


@pytest.mark.asyncio
async def test_wifi_discovery(api_client):
	await put(api_client, "alice", "wifi", {"networkId": "AA:BB:CC:00:00:01"})
	await put(api_client, "bob", "wifi", {"bssid": "aa:bb:cc:00:00:01"})
	await put(api_client, "carol", "wifi", {"networkId": "AA:BB:CC:00:00:02"})

	response = await api_client.get("/discover/wifi", headers=user("alice"))
	assert response.status_code == 200
	body = response.json()
	assert [u["id"] for u in body["users"]] == ["bob"]
	assert body["channelContext"] == {"networkId": "AA:BB:CC:00:00:01"}
	assert "lastSeenWifi" in body["users"][0]


@pytest.mark.asyncio
async def test_wifi_without_network_reports_message(api_client):
	response = await api_client.get("/discover/wifi", headers=user("alice"))
	body = response.json()
	assert response.status_code == 200
	assert body["users"] == []
	assert body["message"] == "No WiFi network detected. Please connect to a WiFi network."


@pytest.mark.asyncio
async def test_bluetooth_discovery_via_post(api_client):
	await put(api_client, "bob", "bluetooth", {"deviceId": "11:11:11:11:11:11"})
	await put(api_client, "carol", "bluetooth", {"deviceId": "22:22:22:22:22:22"})

	response = await api_client.post(
		"/discover/bluetooth",
		json={"observedDeviceIds": ["11-11-11-11-11-11"], "signalStrengths": {"11:11:11:11:11:11": -20}, "txPower": 0},
		headers=user("alice"),
	)
	assert response.status_code == 200
	body = response.json()
	assert [u["id"] for u in body["users"]] == ["bob"]
	assert body["channelContext"] == {"scannedDeviceCount": 1}
	assert body["users"][0]["estimatedDistanceM"] == 10.0
	assert "bluetoothLastUpdate" in body["users"][0]


@pytest.mark.asyncio
async def test_bluetooth_empty_scan(api_client):
	response = await api_client.post("/discover/bluetooth", json={"observedDeviceIds": []}, headers=user("alice"))
	assert response.status_code == 200
	body = response.json()
	assert body["users"] == []
	assert body["channelContext"] == {"scannedDeviceCount": 0}
	assert body["message"]


@pytest.mark.asyncio
async def test_bluetooth_rejects_oversized_scan(api_client):
	devices = [f"00:00:00:00:00:{i:02X}" for i in range(51)]
	response = await api_client.post("/discover/bluetooth", json={"observedDeviceIds": devices}, headers=user("alice"))
	assert response.status_code == 400
	assert response.json()["detail"] == "invalid_scan"


@pytest.mark.asyncio
async def test_invalid_json_body_is_rejected(api_client):
	response = await api_client.post(
		"/discover/bluetooth",
		content=b"{not json",
		headers={**user("alice"), "Content-Type": "application/json"},
	)
	assert response.status_code == 400
	assert response.json()["detail"] == "invalid_json"


@pytest.mark.asyncio
async def test_unknown_channel(api_client):
	response = await api_client.get("/discover/nfc", headers=user("alice"))
	assert response.status_code == 400
	assert response.json()["detail"] == "unknown_channel"


@pytest.mark.asyncio
async def test_unknown_requester(api_client):
	response = await api_client.get("/discover/wifi", headers=user("mallory"))
	assert response.status_code == 404


@pytest.mark.asyncio
async def test_hidden_fields_are_absent(api_client, profiles):
	await put(api_client, "alice", "gps", {"latitude": 40.7128, "longitude": -74.0060})
	await put(api_client, "bob", "gps", {"latitude": 40.7130, "longitude": -74.0060})
	await get_signal_store().update_discoverability(
		"bob",
		privacy=PrivacySettings(show_age=False, show_location=False, show_last_seen=False),
	)

	response = await api_client.get("/discover/gps", params={"radius": 1000}, headers=user("alice"))
	(bob,) = response.json()["users"]
	assert bob["showLocation"] is False
	for key in ("distance", "age", "lastSeen"):
		assert key not in bob


@pytest.mark.asyncio
async def test_hidden_users_are_not_returned(api_client):
	await put(api_client, "alice", "wifi", {"networkId": "AA:BB:CC:00:00:01"})
	await put(api_client, "bob", "wifi", {"networkId": "AA:BB:CC:00:00:01"})
	await api_client.patch("/discoverability", json={"isDiscoverable": False}, headers=user("bob"))

	response = await api_client.get("/discover/wifi", headers=user("alice"))
	assert response.json()["users"] == []


@pytest.mark.asyncio
async def test_friend_flag_is_reported(api_client, relationships):
	relationships.add_friendship("alice", "bob")
	await put(api_client, "alice", "wifi", {"networkId": "AA:BB:CC:00:00:01"})
	await put(api_client, "bob", "wifi", {"networkId": "AA:BB:CC:00:00:01"})

	response = await api_client.get("/discover/wifi", headers=user("alice"))
	(bob,) = response.json()["users"]
	assert bob["isFriend"] is True
