import pytest

from backend.app.utils.log_buffer import activity_logs


@pytest.mark.asyncio
async def test_health_ok(api_client):
    resp = await api_client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_info_endpoint(api_client):
    resp = await api_client.get("/api/v1/info")
    assert resp.status_code == 200
    data = resp.json()
    assert isinstance(data["name"], str) and isinstance(data["version"], str)
    assert data["selected_instance"] == "https://piped.test"


@pytest.mark.asyncio
async def test_api_root(api_client):
    resp = await api_client.get("/api")
    assert resp.status_code == 200
    assert "version" in resp.json()


@pytest.mark.asyncio
async def test_logs_endpoint_returns_and_clears(api_client):
    activity_logs.clear()
    activity_logs.append("INFO", "Search completed query='abba'")
    activity_logs.append("WARN", "Invalid content type")

    resp = await api_client.get("/api/v1/logs", params={"count": 1})
    assert resp.status_code == 200
    body = resp.json()
    assert body["max_lines"] == activity_logs.max_lines
    assert len(body["lines"]) == 1
    assert "Invalid content type" in body["lines"][0]

    resp = await api_client.delete("/api/v1/logs")
    assert resp.json() == {"success": True}
    assert len(activity_logs) == 0
