"""Tests for Request ID middleware."""

from __future__ import annotations

import re

import structlog
from fastapi import FastAPI
from fastapi.testclient import TestClient

from responder.observability.middleware import SERVICE_NAME, RequestIdMiddleware

UUID4_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def _make_app() -> FastAPI:
    """Create a minimal FastAPI app that reports its bound log context."""
    app = FastAPI()
    app.add_middleware(RequestIdMiddleware)

    @app.get("/context")
    async def context() -> dict[str, str]:
        return {k: str(v) for k, v in structlog.contextvars.get_contextvars().items()}

    return app


def test_response_has_auto_generated_request_id() -> None:
    """When no X-Request-ID header is sent, response has an auto-generated UUID."""
    resp = TestClient(_make_app()).get("/context")
    request_id = resp.headers.get("X-Request-ID", "")
    assert UUID4_PATTERN.match(request_id), f"Expected UUID4 format, got: {request_id}"


def test_response_echoes_client_request_id() -> None:
    resp = TestClient(_make_app()).get("/context", headers={"X-Request-ID": "test-123"})
    assert resp.headers["X-Request-ID"] == "test-123"


def test_request_id_bound_into_log_context() -> None:
    """Handlers see the request ID and service name in structlog contextvars."""
    resp = TestClient(_make_app()).get("/context", headers={"X-Request-ID": "abc"})
    assert resp.json() == {"request_id": "abc", "service": SERVICE_NAME}


def test_context_does_not_leak_between_requests() -> None:
    client = TestClient(_make_app())
    client.get("/context", headers={"X-Request-ID": "first"})
    resp = client.get("/context", headers={"X-Request-ID": "second"})
    assert resp.json()["request_id"] == "second"
