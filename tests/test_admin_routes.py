"""Tests for the rate limit administration endpoints."""

import pytest
from fastapi.testclient import TestClient

from authguard.core.config import settings
from authguard.main import app

BASE = "/v1/admin/rate-limit"


@pytest.fixture
def client() -> TestClient:
    """Create FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def valid_api_key_headers() -> dict[str, str]:
    """Create valid API key headers for authenticated requests."""
    return {"X-API-Key": "test-api-key-123"}


def test_requires_api_key(client: TestClient) -> None:
    resp = client.get(f"{BASE}/statistics")

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "missing_api_key"


def test_rejects_invalid_api_key(client: TestClient) -> None:
    resp = client.get(f"{BASE}/statistics", headers={"X-API-Key": "wrong"})

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "invalid_api_key"


def test_statistics_reflect_tracked_identifiers(client: TestClient, valid_api_key_headers) -> None:
    client.post(
        "/v1/auth/login/attempts",
        json={"email": "user@example.com", "success": False},
        headers={"X-Forwarded-For": "203.0.113.9"},
    )

    resp = client.get(f"{BASE}/statistics", headers=valid_api_key_headers)

    assert resp.status_code == 200
    assert resp.json() == {
        "total_tracked_identifiers": 2,
        "blocked_identifiers": 0,
        "average_attempts": 1.0,
    }


def test_block_then_status_then_reset(client: TestClient, valid_api_key_headers) -> None:
    resp = client.post(
        f"{BASE}/block",
        json={"identifier": "ip:203.0.113.9", "duration_seconds": 600},
        headers=valid_api_key_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["allowed"] is False
    assert 0 < resp.json()["wait_time"] <= 600

    login = client.post("/v1/auth/login/check", json={}, headers={"X-Forwarded-For": "203.0.113.9"})
    assert login.status_code == 429

    status = client.get(f"{BASE}/ip:203.0.113.9", headers=valid_api_key_headers)
    assert status.status_code == 200
    assert status.json()["identifier"] == "ip:203.0.113.9"
    assert status.json()["allowed"] is False

    deleted = client.delete(f"{BASE}/ip:203.0.113.9", headers=valid_api_key_headers)
    assert deleted.status_code == 204

    status = client.get(f"{BASE}/ip:203.0.113.9", headers=valid_api_key_headers)
    assert status.json()["allowed"] is True
    assert status.json()["remaining_attempts"] == settings.rate_limit.max_attempts


def test_block_rejects_non_positive_duration(client: TestClient, valid_api_key_headers) -> None:
    resp = client.post(
        f"{BASE}/block",
        json={"identifier": "ip:203.0.113.9", "duration_seconds": 0},
        headers=valid_api_key_headers,
    )

    assert resp.status_code == 422


def test_admin_open_when_auth_disabled(
    client: TestClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings.app, "api_key_required", False)

    resp = client.get(f"{BASE}/statistics")

    assert resp.status_code == 200
