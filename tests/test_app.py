"""Tests for application entry point: structlog config, service initialization, and app creation."""

from __future__ import annotations

import time
from collections.abc import Iterator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch
from urllib.parse import urlencode

import pytest
import structlog
from fastapi.testclient import TestClient
from structlog_sentry import SentryProcessor

from responder.app import configure_logging, create_app, initialize_services
from responder.audit.store import query_audit_trail
from responder.config import Settings
from responder.dedupe.store import SqliteDedupeStore
from responder.pipeline.handler import RequestHandler
from responder.webhook.signature import compute_signature

SECRET = "app-test-secret"


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Reset structlog so cached loggers don't leak between tests."""
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def _settings(tmp_path: Path, **overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "database_path": tmp_path / "responder.db",
        "webhook_secret": SECRET,
        "anthropic_api_key": "sk-ant-test",
        "sendgrid_api_key": "SG.test",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)  # type: ignore[call-arg]


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for structlog configuration in dev and production modes."""

    def test_development_mode_uses_console_renderer(self) -> None:
        configure_logging(production=False)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_production_mode_uses_json_renderer(self) -> None:
        configure_logging(production=True)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_sentry_processor_before_renderer(self) -> None:
        configure_logging(production=True, sentry_enabled=True)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-2], SentryProcessor)

    def test_service_name_bound(self) -> None:
        configure_logging()
        assert structlog.contextvars.get_contextvars()["service"] == "inbox-responder"


# ---------------------------------------------------------------------------
# initialize_services
# ---------------------------------------------------------------------------


class TestInitializeServices:
    """initialize_services wires every component once."""

    def test_all_services_present(self, tmp_path: Path) -> None:
        services = initialize_services(_settings(tmp_path))

        for key in (
            "db_conn",
            "identity_store",
            "dedupe_store",
            "retry_executor",
            "reply_generator",
            "delivery_client",
            "audit_logger",
            "request_handler",
        ):
            assert key in services, key
        assert isinstance(services["request_handler"], RequestHandler)
        assert isinstance(services["dedupe_store"], SqliteDedupeStore)
        assert (tmp_path / "responder.db").exists()

        services["delivery_client"].close()
        services["db_conn"].close()

    def test_redis_backend(self, tmp_path: Path) -> None:
        settings = _settings(tmp_path, dedupe_backend="redis", redis_url="redis://cache:6379/0")

        with patch("responder.app.RedisDedupeStore.from_url") as from_url:
            services = initialize_services(settings)

        from_url.assert_called_once_with("redis://cache:6379/0")
        assert services["dedupe_store"] is from_url.return_value
        services["db_conn"].close()


# ---------------------------------------------------------------------------
# create_app
# ---------------------------------------------------------------------------


class TestCreateApp:
    """create_app registers the webhook, health and metrics routes."""

    def test_routes(self, tmp_path: Path) -> None:
        app = create_app(initialize_services(_settings(tmp_path)))
        paths = {getattr(route, "path", None) for route in app.routes}

        assert {"/webhooks/inbound-email", "/health", "/ready", "/metrics"} <= paths

    def test_lifespan_closes_resources(self, tmp_path: Path) -> None:
        services = initialize_services(_settings(tmp_path))
        delivery = MagicMock()
        services["delivery_client"] = delivery

        with TestClient(create_app(services)) as client:
            assert client.get("/health").status_code == 200

        delivery.close.assert_called_once()


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------


def _completion_response(text: str) -> MagicMock:
    block = MagicMock()
    block.type = "text"
    block.text = text
    response = MagicMock()
    response.content = [block]
    response.model = "claude-test"
    response.usage.input_tokens = 40
    response.usage.output_tokens = 8
    return response


class TestEndToEnd:
    """A signed webhook travels the whole stack with faked upstreams."""

    def test_reply_then_duplicate(self, tmp_path: Path) -> None:
        anthropic_client = MagicMock()
        anthropic_client.messages.create.return_value = _completion_response("It is 9pm.")
        delivery_cls = MagicMock()
        delivery_cls.return_value.send.return_value = "sg-1"

        with (
            patch("responder.app.get_anthropic_client", return_value=anthropic_client),
            patch("responder.app.SendGridClient", delivery_cls),
        ):
            services = initialize_services(_settings(tmp_path))
        client = TestClient(create_app(services))

        body = urlencode(
            {
                "from": "Alice <alice@example.com>",
                "to": "assistant@responder.test",
                "subject": "Hi",
                "text": "What time is it in Tokyo?",
                "headers": "Message-ID: <m1@x.com>\n",
            }
        ).encode()
        timestamp = str(int(time.time()))
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "X-Webhook-Timestamp": timestamp,
            "X-Webhook-Signature": compute_signature(body, timestamp, SECRET),
        }

        first = client.post("/webhooks/inbound-email", content=body, headers=headers)
        second = client.post("/webhooks/inbound-email", content=body, headers=headers)

        assert first.status_code == 200
        assert first.json() == {"status": "success", "message_id": "<m1@x.com>", "fallback": False}
        assert second.status_code == 200
        assert second.json()["status"] == "duplicate"
        assert anthropic_client.messages.create.call_count == 1

        [outgoing] = delivery_cls.return_value.send.call_args.args
        assert outgoing.subject == "Re: Hi"
        assert outgoing.in_reply_to == "<m1@x.com>"
        assert outgoing.references == ("<m1@x.com>",)

        events = {row["event_type"] for row in query_audit_trail(services["db_conn"])}
        assert {"email_received", "reply_sent", "duplicate_skipped"} <= events

    def test_unsigned_request_rejected(self, tmp_path: Path) -> None:
        client = TestClient(create_app(initialize_services(_settings(tmp_path))))

        resp = client.post(
            "/webhooks/inbound-email",
            content=b"from=a%40b.com",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        assert resp.status_code == 401
