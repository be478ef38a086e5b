from __future__ import annotations

from fastapi.testclient import TestClient


def test_health_without_backing_services(client: TestClient) -> None:
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {
        "status": "ok",
        "checks": {"database": "not_configured", "redis": "not_configured"},
        "notifications_queue_depth": 0,
    }


def test_ready_without_database(client: TestClient) -> None:
    assert client.get("/ready").status_code == 200


def test_metrics_endpoint_exposes_counters(client: TestClient) -> None:
    client.get("/health")

    resp = client.get("/metrics")

    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
