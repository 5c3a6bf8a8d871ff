"""
Health, metrics and middleware tests
"""

from fastapi.testclient import TestClient

from paychain.infrastructure.settings import get_settings


def test_health_endpoint(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_ready_endpoint(client: TestClient, monkeypatch):
    monkeypatch.setattr("paychain.api.public.health.ping_redis", lambda: True)
    response = client.get("/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "connected", "redis": "connected"}


def test_ready_without_redis(client: TestClient, monkeypatch):
    monkeypatch.setattr("paychain.api.public.health.ping_redis", lambda: False)
    response = client.get("/ready")
    assert response.status_code == 503
    assert response.json()["redis"] == "disconnected"


def test_trace_id_in_error_response(client: TestClient):
    response = client.get("/nonexistent-endpoint")
    assert response.status_code == 404
    data = response.json()
    assert data["error"]["trace_id"] is not None
    assert response.headers["X-Trace-ID"] == data["error"]["trace_id"]


def test_incoming_trace_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Trace-ID"] == "req-123"


def test_security_headers(client: TestClient):
    response = client.get("/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


class TestMetricsEndpoint:
    def test_denied_without_token(self, client: TestClient):
        response = client.get("/metrics")
        assert response.status_code == 403

    def test_denied_with_wrong_token(self, client: TestClient):
        response = client.get("/metrics", headers={"X-Metrics-Token": "wrong"})
        assert response.status_code == 403

    def test_token_grants_access(self, client: TestClient, sandbox_account):
        client.post(
            "/api/v1/charge",
            json={"amount": 10000, "phone": "0712345678"},
            headers={"X-Api-Key": sandbox_account.sandbox_api_key},
        )

        response = client.get("/metrics", headers={"X-Metrics-Token": "test-metrics-token"})

        assert response.status_code == 200
        assert 'paychain_charges_total{mode="sandbox",outcome="accepted"}' in response.text
        assert "http_requests_total" in response.text

    def test_public_metrics(self, client: TestClient, monkeypatch):
        monkeypatch.setattr(get_settings(), "METRICS_PUBLIC", True)
        assert client.get("/metrics").status_code == 200
