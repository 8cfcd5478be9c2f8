"""Health and readiness endpoints for container orchestration.

Provides two top-level routes:

- ``GET /health`` -- Liveness probe.  Returns 200 if the process is alive.
- ``GET /ready``  -- Readiness probe.  Returns 200 only when the database
  answers, the dedupe store answers, **and** both outbound clients are
  configured.  Returns 503 with per-check details otherwise.
"""

from __future__ import annotations

import asyncio
import sqlite3
from typing import Any

import redis
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


def register_health_routes(app: FastAPI) -> None:
    """Register ``/health`` and ``/ready`` endpoints on *app*.

    Args:
        app: The FastAPI application instance.
    """

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe -- always returns 200 if the process is running."""
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        """Readiness probe -- checks datastore, dedupe store and outbound clients."""
        services: dict[str, Any] = request.app.state.services
        checks: dict[str, str] = {}

        db_conn = services.get("db_conn")
        if db_conn is not None:
            try:
                await asyncio.to_thread(db_conn.execute, "SELECT 1")
                checks["database"] = "ok"
            except sqlite3.Error:
                checks["database"] = "fail"
        else:
            checks["database"] = "fail"

        dedupe_store = services.get("dedupe_store")
        if dedupe_store is None:
            checks["dedupe_store"] = "fail"
        elif hasattr(dedupe_store, "ping"):
            try:
                ok = await asyncio.to_thread(dedupe_store.ping)
                checks["dedupe_store"] = "ok" if ok else "fail"
            except redis.RedisError:
                checks["dedupe_store"] = "fail"
        else:
            checks["dedupe_store"] = "ok"

        checks["completion"] = "ok" if services.get("reply_generator") is not None else "fail"
        checks["delivery"] = "ok" if services.get("delivery_client") is not None else "fail"

        all_ok = all(v == "ok" for v in checks.values())
        status = "ready" if all_ok else "not_ready"
        code = 200 if all_ok else 503

        return JSONResponse(content={"status": status, "checks": checks}, status_code=code)
