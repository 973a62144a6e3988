from __future__ import annotations

import pytest


@pytest.mark.integration
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


@pytest.mark.integration
async def test_cors_preflight_for_configured_origin(client):
    resp = await client.options(
        "/tasks/all",
        headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "GET"},
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"


@pytest.mark.integration
async def test_unknown_route_uses_error_envelope(client):
    resp = await client.get("/no-such-route")
    assert resp.status_code == 404
    assert resp.json() == {"error": "NOT_FOUND", "message": "Not Found"}


@pytest.mark.integration
async def test_wrong_method_uses_error_envelope(client, alice):
    resp = await client.put("/tasks/all", headers=alice["headers"])
    assert resp.status_code == 405
    body = resp.json()
    assert body["error"] == "METHOD_NOT_ALLOWED"
    assert body["message"] == "Method Not Allowed"
    assert "GET" in resp.headers["allow"]
