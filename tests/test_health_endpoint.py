from fastapi.testclient import TestClient

from conftest import StubLedger, make_context
from starknet_mcp.mcp import Dispatcher
from starknet_mcp.server import create_app


def make_client():
    return TestClient(create_app(Dispatcher(make_context(StubLedger()))))


def test_health_endpoint():
    client = make_client()
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json().get("status") == "ok"
    assert resp.headers.get("X-Request-ID")


def test_metrics_endpoint_counts_requests():
    client = make_client()
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    data = resp.json()
    # Two requests so far: /health and /metrics
    assert data.get("requests", 0) >= 2
    assert "error_kinds" in data
