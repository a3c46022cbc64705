"""
Tests for health check endpoints.
"""

from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from fintrack.main import app
from fintrack.routes import health

client = TestClient(app)


def test_healthz_endpoint():
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_readyz_reports_database_failure(monkeypatch):
    monkeypatch.setattr(
        health,
        "db_health_check",
        AsyncMock(return_value={"healthy": False, "error": "Pool not initialized"}),
    )

    response = client.get("/readyz")

    assert response.status_code == 503
    assert response.json()["checks"]["database"]["error"] == "Pool not initialized"


def test_readyz_ok_without_redis(monkeypatch):
    monkeypatch.setattr(health, "db_health_check", AsyncMock(return_value={"healthy": True}))

    response = client.get("/readyz")

    assert response.status_code == 200
    assert "redis" not in response.json()["checks"]
