"""Prometheus metrics instrumentation for the responder.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count.
- ``EMAILS_PROCESSED``: Counter of webhook requests by final outcome.
- ``UPSTREAM_RETRIES``: Counter of retry sleeps by upstream API.
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

EMAILS_PROCESSED: Counter = Counter(
    "responder_emails_total",
    "Inbound emails by outcome (replied, fallback, duplicate, rejected, failed)",
    ["outcome"],
)

UPSTREAM_RETRIES: Counter = Counter(
    "responder_upstream_retries_total",
    "Retries performed against an upstream API",
    ["api"],
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation to avoid
    noise in dashboards.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
