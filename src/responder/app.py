"""Application entry point for the inbound email responder.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error reporting when ``SENTRY_DSN`` is set
- **Services**: SQLite database, identity resolver, dedupe guard, shared retry
  executor, Anthropic reply generator, SendGrid delivery, email log
- **FastAPI** with the inbound webhook, health routes, request IDs and metrics
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from responder.audit.logger import AuditLogger
from responder.config import Settings, get_settings, validate_credentials
from responder.dedupe.guard import IdempotencyGuard
from responder.dedupe.store import DedupeStore, RedisDedupeStore, SqliteDedupeStore
from responder.delivery.sendgrid import SendGridClient
from responder.health import register_health_routes
from responder.identity.resolver import AddressResolver
from responder.identity.store import SqliteIdentityStore
from responder.llm.client import get_anthropic_client
from responder.llm.generator import ReplyGenerator
from responder.observability.metrics import setup_metrics
from responder.observability.middleware import SERVICE_NAME, RequestIdMiddleware
from responder.observability.sentry import get_sentry_processor, init_sentry
from responder.pipeline.handler import RequestHandler
from responder.resilience.retry import RetryExecutor
from responder.storage import open_database
from responder.webhook.router import router as webhook_router
from responder.webhook.signature import SignatureVerifier

logger = structlog.get_logger()


def configure_logging(production: bool = False, sentry_enabled: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry_enabled: Insert the Sentry processor before the renderer.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if sentry_enabled:
        shared_processors.append(get_sentry_processor())

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)


def _build_dedupe_store(
    settings: Settings,
    db_conn: sqlite3.Connection,
    db_lock: threading.Lock,
) -> DedupeStore:
    if settings.dedupe_backend == "redis":
        return RedisDedupeStore.from_url(settings.redis_url)

    store = SqliteDedupeStore(db_conn, db_lock)
    store.purge_expired(time.time(), settings.dedupe_window_seconds)
    return store


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Every client is built here once and injected; nothing below creates
    its own connections.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {"_settings": settings}

    # a. SQLite database shared by identities, dedupe entries and the email log
    db_conn = open_database(settings.database_path)
    db_lock = threading.Lock()
    services["db_conn"] = db_conn

    # b. Identity resolution
    identity_store = SqliteIdentityStore(db_conn, db_lock)
    services["identity_store"] = identity_store
    resolver = AddressResolver(identity_store)

    # c. Idempotency
    dedupe_store = _build_dedupe_store(settings, db_conn, db_lock)
    services["dedupe_store"] = dedupe_store
    guard = IdempotencyGuard(dedupe_store, window_seconds=settings.dedupe_window_seconds)

    # d. One retry executor for both outbound call sites
    policy = settings.retry_policy()
    retry = RetryExecutor(policy)
    services["retry_executor"] = retry

    # e. Completion service
    anthropic_client = get_anthropic_client(
        settings.anthropic_api_key.get_secret_value(),
        timeout=settings.completion_timeout_seconds,
    )
    generator = ReplyGenerator(
        anthropic_client,
        retry,
        model=settings.completion_model,
        max_tokens=settings.completion_max_tokens,
        retryable_status_codes=policy.retryable_status_codes,
    )
    services["reply_generator"] = generator

    # f. Delivery provider
    delivery = SendGridClient(
        settings.sendgrid_api_key.get_secret_value(),
        retry,
        api_url=settings.sendgrid_api_url,
        timeout=settings.delivery_timeout_seconds,
        retryable_status_codes=policy.retryable_status_codes,
    )
    services["delivery_client"] = delivery

    # g. Email log
    audit_logger = AuditLogger(db_conn, db_lock)
    services["audit_logger"] = audit_logger

    # h. Request handler
    verifier = SignatureVerifier(
        settings.webhook_secret.get_secret_value(),
        tolerance_seconds=settings.signature_tolerance_seconds,
        encoding=settings.signature_encoding,
    )
    services["request_handler"] = RequestHandler(
        verifier,
        guard,
        resolver,
        generator,
        delivery,
        audit=audit_logger,
        signature_header=settings.signature_header,
        timestamp_header=settings.timestamp_header,
    )

    logger.info(
        "services_initialized",
        database=str(settings.database_path),
        dedupe_backend=settings.dedupe_backend,
        completion_model=settings.completion_model,
        retry_max_attempts=policy.max_attempts,
    )
    return services


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Lifespan context manager for FastAPI startup and shutdown.

    On shutdown: closes the delivery HTTP client and the database connection.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application.
    """
    services = app.state.services
    logger.info("application_starting")
    yield
    delivery = services.get("delivery_client")
    if delivery is not None:
        delivery.close()
    db_conn = services.get("db_conn")
    if db_conn is not None:
        db_conn.close()
        logger.info("database_closed")


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with lifespan, webhook router, health and metrics.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Inbox Responder", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("_settings")
    fastapi_app.add_middleware(RequestIdMiddleware)
    fastapi_app.include_router(webhook_router)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    return fastapi_app


def main() -> None:
    """Main entry point: configure, initialize services, and serve.

    1. Load settings and configure logging (with Sentry when configured)
    2. Validate credentials
    3. Initialize services and create the FastAPI app
    4. Run uvicorn
    """
    settings = get_settings()
    sentry_enabled = init_sentry(settings.sentry_dsn, production=settings.production)
    configure_logging(production=settings.production, sentry_enabled=sentry_enabled)
    logger.info("application_starting", port=settings.webhook_port)

    validate_credentials(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    uvicorn.run(
        fastapi_app,
        host="0.0.0.0",
        port=settings.webhook_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
