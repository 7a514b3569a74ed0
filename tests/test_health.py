"""Tests for /health and /ready observability endpoints.

Uses FastAPI TestClient with in-memory SQLite connections to verify
liveness and readiness probes without external dependencies.
"""

from __future__ import annotations

import sqlite3
from typing import Any

from fastapi import FastAPI
from fastapi.testclient import TestClient

from campaign_automation.capabilities.models import CapabilityName
from campaign_automation.capabilities.registry import CapabilityRegistry
from campaign_automation.health import register_health_routes

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_app(services: dict | None = None) -> FastAPI:
    """Create a minimal FastAPI app with health routes and given services."""
    app = FastAPI()
    app.state.services = services or {}
    register_health_routes(app)
    return app


async def _noop(request: Any) -> None:
    return None


def _full_registry() -> CapabilityRegistry:
    return CapabilityRegistry({name: _noop for name in CapabilityName})


# ---------------------------------------------------------------------------
# /health (liveness)
# ---------------------------------------------------------------------------

class TestHealthEndpoint:
    """GET /health liveness probe."""

    def test_health_returns_200(self) -> None:
        client = TestClient(_make_app())

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


# ---------------------------------------------------------------------------
# /ready (readiness)
# ---------------------------------------------------------------------------

class TestReadyEndpoint:
    """GET /ready readiness probe."""

    def test_ready_returns_200_when_services_ok(self) -> None:
        conn = sqlite3.connect(":memory:", check_same_thread=False)
        client = TestClient(_make_app({"db_conn": conn, "registry": _full_registry()}))

        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ready",
            "checks": {"database": "ok", "capabilities": "ok"},
        }

        conn.close()

    def test_ready_returns_503_when_db_missing(self) -> None:
        client = TestClient(_make_app({"db_conn": None, "registry": _full_registry()}))

        response = client.get("/ready")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "not_ready"
        assert body["checks"]["database"] == "fail"
        assert body["checks"]["capabilities"] == "ok"

    def test_ready_returns_503_when_capability_unwired(self) -> None:
        """A registry missing a handler is not ready."""
        conn = sqlite3.connect(":memory:", check_same_thread=False)
        registry = CapabilityRegistry({CapabilityName.SEARCH_CREATORS: _noop})
        client = TestClient(_make_app({"db_conn": conn, "registry": registry}))

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"] == {"database": "ok", "capabilities": "fail"}

        conn.close()

    def test_ready_returns_503_when_nothing_initialized(self) -> None:
        client = TestClient(_make_app())

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"] == {"database": "fail", "capabilities": "fail"}

    def test_ready_returns_503_when_db_connection_broken(self) -> None:
        """A closed connection that raises on execute -> database fails."""
        conn = sqlite3.connect(":memory:", check_same_thread=False)
        conn.close()  # close so execute raises ProgrammingError
        client = TestClient(_make_app({"db_conn": conn, "registry": _full_registry()}))

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["database"] == "fail"
