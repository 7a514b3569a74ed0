"""Tests for Prometheus metrics endpoint and custom business metrics."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from campaign_automation.observability.metrics import (
    ACTIVE_RUNS,
    DISPATCH_OUTCOMES,
    RUNS_FINISHED,
    setup_metrics,
)


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Reset custom metric values between tests.

    Prometheus collectors are registered globally, so we reset values rather
    than re-creating them.
    """
    ACTIVE_RUNS.set(0)
    # Counters cannot be reset, so tests compare relative increments
    yield


@pytest.fixture()
def metrics_app() -> FastAPI:
    """Create a minimal FastAPI app with Prometheus instrumentation."""
    app = FastAPI()

    @app.get("/hello")
    async def hello():
        return {"msg": "hello"}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready():
        return {"status": "ready"}

    setup_metrics(app)
    return app


@pytest.fixture()
def metrics_client(metrics_app: FastAPI) -> TestClient:
    """TestClient for the metrics-enabled app."""
    return TestClient(metrics_app)


def test_metrics_endpoint_returns_prometheus_format(metrics_client: TestClient) -> None:
    """GET /metrics returns 200 with Prometheus-format text containing expected metrics."""
    metrics_client.get("/hello")
    resp = metrics_client.get("/metrics")
    assert resp.status_code == 200
    body = resp.text
    assert "http_request" in body
    assert "campaign_automation_active_runs" in body
    assert "campaign_automation_runs_finished_total" in body
    assert "campaign_automation_dispatch_items_total" in body


def test_excluded_handlers_not_in_metrics(metrics_client: TestClient) -> None:
    """/health and /ready do NOT appear as handler labels in metrics output."""
    metrics_client.get("/health")
    metrics_client.get("/ready")
    body = metrics_client.get("/metrics").text
    lines = [
        line
        for line in body.splitlines()
        if "http_request_duration" in line and 'handler="' in line
    ]
    for line in lines:
        assert '/health"' not in line, f"/health found in metrics: {line}"
        assert '/ready"' not in line, f"/ready found in metrics: {line}"


def test_active_runs_gauge_changes(metrics_client: TestClient) -> None:
    """ACTIVE_RUNS gauge is reflected in /metrics output."""
    ACTIVE_RUNS.set(2)
    assert "campaign_automation_active_runs 2.0" in metrics_client.get("/metrics").text

    ACTIVE_RUNS.dec()
    assert "campaign_automation_active_runs 1.0" in metrics_client.get("/metrics").text


def test_runs_finished_counter_increments(metrics_client: TestClient) -> None:
    """RUNS_FINISHED increments are reflected per status label."""
    name = 'campaign_automation_runs_finished_total{status="COMPLETED"}'
    initial = _extract_value(metrics_client.get("/metrics").text, name)

    RUNS_FINISHED.labels(status="COMPLETED").inc()

    assert _extract_value(metrics_client.get("/metrics").text, name) == initial + 1.0


def test_dispatch_outcomes_labelled(metrics_client: TestClient) -> None:
    DISPATCH_OUTCOMES.labels(stage="outreach", outcome="failed").inc()
    body = metrics_client.get("/metrics").text
    assert 'campaign_automation_dispatch_items_total{stage="outreach",outcome="failed"}' in body


def _extract_value(text: str, sample: str) -> float:
    """Extract the numeric value of a sample line from Prometheus text output.

    Returns 0.0 when the labelled sample has not been emitted yet.
    """
    for line in text.splitlines():
        if line.startswith(sample + " "):
            return float(line.split()[-1])
    return 0.0
