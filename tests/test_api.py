"""Tests for the FastAPI API endpoints."""

import pytest
from fastapi.testclient import TestClient

from conftest import OPERATOR_TOKEN, OWNER_ID
from lease_relay.api.app import create_app
from lease_relay.gateway.auth import TokenDirectory
from lease_relay.gateway.forwarder import WebhookForwarder

HEADERS = {"Authorization": f"Bearer {OPERATOR_TOKEN}"}


@pytest.fixture
def client(app_config, owner_store, engine, clock):
    """Create a test client wired to the fake engine."""
    app = create_app(
        app_config=app_config,
        owner_store=owner_store,
        token_directory=TokenDirectory(app_config.api_tokens),
        forwarder=WebhookForwarder(transport=engine.transport),
        clock=clock,
    )
    return TestClient(app)


class TestLeaseEndpoint:
    def test_lock_relays_engine_body(self, client, engine):
        response = client.post(
            "/lease", json={"sessionId": "+5215551234", "action": "lock"}, headers=HEADERS
        )
        assert response.status_code == 200
        assert response.json() == {"route": "inbox", "lock_until": "2025-01-01T10:00:00Z"}
        assert engine.posted()[0]["ttl_hours"] == 24

    def test_missing_credential(self, client, engine):
        response = client.post("/lease", json={"sessionId": "1", "action": "lock"})
        assert response.status_code == 401
        assert response.json()["ok"] is False
        assert engine.requests == []

    def test_invalid_ttl(self, client, engine):
        response = client.post(
            "/lease",
            json={"sessionId": "1", "action": "lock", "ttlHours": 49},
            headers=HEADERS,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "ttlHours must be between 1 and 48"
        assert engine.requests == []

    def test_malformed_json_is_invalid_argument(self, client):
        response = client.post(
            "/lease",
            content=b"{not json",
            headers={**HEADERS, "Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_upstream_failure(self, client, engine):
        engine.failure = (503, {"message": "maintenance"})
        response = client.post(
            "/lease", json={"sessionId": "1", "action": "lock"}, headers=HEADERS
        )
        assert response.status_code == 503
        assert response.json() == {
            "ok": False,
            "error": "Webhook error (HTTP 503)",
            "details": {"message": "maintenance"},
        }

    def test_cors_preflight(self, client):
        response = client.options(
            "/lease",
            headers={
                "Origin": "https://inbox.example",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "authorization, content-type",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"


class TestStatusEndpoint:
    def test_status_round_trip(self, client):
        client.post("/lease", json={"sessionId": "1", "action": "lock"}, headers=HEADERS)
        response = client.get("/lease/1", headers=HEADERS)
        assert response.status_code == 200
        assert response.json() == {
            "sessionId": "1",
            "route": "inbox",
            "lockUntil": "2025-01-01T10:00:00Z",
        }

    def test_status_requires_auth(self, client):
        assert client.get("/lease/1").status_code == 401

    def test_status_rejects_bad_session(self, client):
        response = client.get("/lease/abc", headers=HEADERS)
        assert response.status_code == 400
        assert response.json()["ok"] is False


class TestSettingsEndpoints:
    def test_defaults_before_save(self, client):
        response = client.get("/settings/live-chat", headers=HEADERS)
        assert response.status_code == 200
        data = response.json()
        assert data["ownerId"] == OWNER_ID
        assert data["defaultTTLHours"] == 24
        assert data["authToken"] is None

    def test_save_and_read_back(self, client):
        response = client.put(
            "/settings/live-chat",
            json={
                "webhookUrl": "https://engine.test/custom",
                "authToken": "engine-secret-9876",
                "defaultTTLHours": 8,
            },
            headers=HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["authToken"] == "***9876"

        data = client.get("/settings/live-chat", headers=HEADERS).json()
        assert data["webhookUrl"] == "https://engine.test/custom"
        assert data["defaultTTLHours"] == 8

    def test_saved_ttl_drives_forwarding(self, client, engine):
        client.put("/settings/live-chat", json={"defaultTTLHours": 2}, headers=HEADERS)
        client.post("/lease", json={"sessionId": "1", "action": "lock"}, headers=HEADERS)
        assert engine.posted()[0]["ttl_hours"] == 2

    def test_rejects_out_of_range_ttl(self, client):
        response = client.put(
            "/settings/live-chat", json={"defaultTTLHours": 0}, headers=HEADERS
        )
        assert response.status_code == 400

    def test_requires_auth(self, client):
        assert client.put("/settings/live-chat", json={}).status_code == 401


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}
