"""
Integration tests for the health check endpoints.

Verifies GET /health (liveness) and GET /health/ready (Redis readiness).
Version: 1.0.0
"""
import pytest
import redis
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from catalog_sync.container import get_redis


@pytest.fixture
def redis_client():
    return MagicMock()


@pytest.fixture
def client(redis_client):
    from catalog_sync.main import app

    app.dependency_overrides[get_redis] = lambda: redis_client
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.mark.integration
class TestHealthRoutes:
    """Integration tests for the /health endpoints."""

    def test_health_returns_status_healthy(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_health_wrong_method_not_allowed(self, client):
        """POST /health should return 405 Method Not Allowed."""
        response = client.post("/health")
        assert response.status_code == 405

    def test_ready_when_redis_answers(self, client, redis_client):
        response = client.get("/health/ready")
        assert response.status_code == 200
        assert response.json()["redis"] == "ok"
        redis_client.ping.assert_called_once()

    def test_not_ready_without_redis(self, client, redis_client):
        redis_client.ping.side_effect = redis.ConnectionError("refused")
        response = client.get("/health/ready")
        assert response.status_code == 503
        assert response.json()["status"] == "unavailable"
