"""Tests for the /health and /system/health API endpoints."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_store
from api.main import app
from core.health import HealthStatus


@pytest.fixture
def store():
    return Mock()


@pytest.fixture
def client(store):
    """Create a test client with the store dependency overridden."""
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health_ok(client, store):
    store.health_check.return_value = HealthStatus(
        status="ok",
        latency_ms=1.2,
        message="Database connected",
        details={"row_count": 42},
    )

    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["database"]["row_count"] == 42


def test_health_database_down_returns_503(client, store):
    store.health_check.return_value = HealthStatus(status="error", message="Database error: StoreConnectionError")

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["status"] == "error"


def test_health_without_database_url_returns_503(monkeypatch):
    """Without DATABASE_URL the store cannot be built."""
    monkeypatch.delenv("DATABASE_URL", raising=False)
    app.dependency_overrides.clear()
    app.state.store = None

    response = TestClient(app).get("/health")

    assert response.status_code == 503
    data = response.json()
    assert data["success"] is False
    assert data["error"] == "Database unavailable"


def test_system_health_all_ok(client):
    """Test /system/health endpoint when all components are healthy."""
    with patch("core.health.checker.HealthChecker.check_all") as mock_check_all:
        mock_check_all.return_value = {
            "database": HealthStatus(status="ok", message="Connected", latency_ms=5.2),
            "ingestion": HealthStatus(
                status="ok",
                message="Ingestion active",
                details={"newest_timestamp": "2025-09-18T14:59:00+00:00", "age_seconds": 60},
            ),
        }

        response = client.get("/system/health")

        assert response.status_code == 200
        data = response.json()

        assert data["overall"]["status"] == "ok"
        assert data["api"]["status"] == "ok"
        assert data["api"]["uptime_seconds"] >= 0
        assert data["database"]["latency_ms"] == 5.2
        assert data["ingestion"]["details"]["age_seconds"] == 60


def test_system_health_reports_worst_status(client):
    with patch("core.health.checker.HealthChecker.check_all") as mock_check_all:
        mock_check_all.return_value = {
            "database": HealthStatus(status="error", message="Database error: OperationalError"),
            "ingestion": HealthStatus(status="degraded", message="Cannot check ingestion status without database"),
        }

        response = client.get("/system/health")

        assert response.status_code == 200
        assert response.json()["overall"]["status"] == "error"


def test_system_health_requires_no_api_key(client, monkeypatch):
    monkeypatch.delenv("OPTIONS_API_KEY", raising=False)
    with patch("core.health.checker.HealthChecker.check_all") as mock_check_all:
        mock_check_all.return_value = {
            "database": HealthStatus(status="ok", message="Connected"),
            "ingestion": HealthStatus(status="degraded", message="No options data stored yet"),
        }

        response = client.get("/system/health")

    assert response.status_code == 200
    assert response.json()["overall"]["status"] == "degraded"


async def test_lifespan_disposes_store_pool():
    from api.main import lifespan

    store = Mock()
    app.state.store = store
    try:
        async with lifespan(app):
            pass
    finally:
        app.state.store = None

    store.pool.dispose.assert_called_once()
