"""Tests for health check route."""

from __future__ import annotations

from fastapi.testclient import TestClient


class TestHealthEndpoint:
    def test_health_returns_ok(self, client: TestClient) -> None:
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == "0.1.0"

    def test_health_env(self, client: TestClient) -> None:
        data = client.get("/api/health").json()
        assert data["environment"] == "test"

    def test_health_needs_no_token(self, client: TestClient) -> None:
        response = client.get("/api/health", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 200
