"""Tests for /health and /ready observability endpoints.

Uses FastAPI TestClient with in-memory SQLite connections to verify
liveness and readiness probes without external dependencies.
"""

from __future__ import annotations

import sqlite3
from typing import Any
from unittest.mock import MagicMock

import redis
from fastapi import FastAPI
from fastapi.testclient import TestClient

from responder.dedupe.store import SqliteDedupeStore
from responder.health import register_health_routes

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_app(services: dict[str, Any] | None = None) -> FastAPI:
    """Create a minimal FastAPI app with health routes and given services."""
    app = FastAPI()
    app.state.services = services or {}
    register_health_routes(app)
    return app


def _healthy_services() -> dict[str, Any]:
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    return {
        "db_conn": conn,
        "dedupe_store": SqliteDedupeStore(conn),
        "reply_generator": object(),
        "delivery_client": object(),
    }


# ---------------------------------------------------------------------------
# /health (liveness)
# ---------------------------------------------------------------------------


class TestHealthEndpoint:
    """GET /health liveness probe."""

    def test_health_returns_200(self) -> None:
        response = TestClient(_make_app()).get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


# ---------------------------------------------------------------------------
# /ready (readiness)
# ---------------------------------------------------------------------------


class TestReadyEndpoint:
    """GET /ready readiness probe."""

    def test_ready_when_everything_ok(self) -> None:
        response = TestClient(_make_app(_healthy_services())).get("/ready")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ready",
            "checks": {
                "database": "ok",
                "dedupe_store": "ok",
                "completion": "ok",
                "delivery": "ok",
            },
        }

    def test_not_ready_without_services(self) -> None:
        response = TestClient(_make_app()).get("/ready")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "not_ready"
        assert set(body["checks"].values()) == {"fail"}

    def test_closed_database(self) -> None:
        services = _healthy_services()
        services["db_conn"].close()

        response = TestClient(_make_app(services)).get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["database"] == "fail"

    def test_redis_down(self) -> None:
        services = _healthy_services()
        store = MagicMock()
        store.ping.side_effect = redis.ConnectionError("refused")
        services["dedupe_store"] = store

        response = TestClient(_make_app(services)).get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["dedupe_store"] == "fail"

    def test_redis_up(self) -> None:
        services = _healthy_services()
        store = MagicMock()
        store.ping.return_value = True
        services["dedupe_store"] = store

        response = TestClient(_make_app(services)).get("/ready")

        assert response.status_code == 200
