"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_credentials()``
startup gate that enforces credential presence in production mode.
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path
from typing import Literal

import structlog
from pydantic import SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from responder.resilience.retry import RetryPolicy

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    ``SecretStr`` fields prevent accidental leaks in logs or error output.
    Nothing in this class is read again after startup; components receive
    the values they need through their constructors.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    webhook_port: int = 8000
    database_path: Path = Path("data/responder.db")
    # Host-imposed limit for a single webhook invocation.
    request_budget_seconds: float = 150.0

    # -- Inbound webhook -------------------------------------------------------
    webhook_secret: SecretStr = SecretStr("")
    signature_header: str = "X-Webhook-Signature"
    timestamp_header: str = "X-Webhook-Timestamp"
    signature_encoding: Literal["hex", "base64"] = "hex"
    signature_tolerance_seconds: int = 600

    # -- Completion service (Anthropic) ----------------------------------------
    anthropic_api_key: SecretStr = SecretStr("")
    completion_model: str = "claude-sonnet-4-5-20250929"
    completion_max_tokens: int = 1024
    completion_timeout_seconds: float = 25.0

    # -- Delivery provider (SendGrid) ------------------------------------------
    sendgrid_api_key: SecretStr = SecretStr("")
    sendgrid_api_url: str = "https://api.sendgrid.com/v3/mail/send"
    delivery_timeout_seconds: float = 10.0

    # -- Idempotency -----------------------------------------------------------
    dedupe_backend: Literal["sqlite", "redis"] = "sqlite"
    dedupe_window_seconds: int = 600
    redis_url: str = ""

    # -- Retry policy ----------------------------------------------------------
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0
    retryable_status_codes: list[int] = [429, 500, 502, 503, 504]

    # -- Observability ---------------------------------------------------------
    sentry_dsn: str = ""

    def retry_policy(self) -> RetryPolicy:
        """Build the ``RetryPolicy`` shared by both outbound call sites."""
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay_seconds,
            max_delay=self.retry_max_delay_seconds,
            retryable_status_codes=frozenset(self.retryable_status_codes),
        )

    def worst_case_outbound_seconds(self) -> float:
        """Upper bound on time spent in outbound calls for one request.

        Every outbound call may use every attempt and each attempt may run to
        its timeout.  Delivery is counted twice: a failed reply is followed by
        the fallback notice.
        """
        policy = self.retry_policy()
        backoff = sum(
            min(policy.base_delay * 2 ** (n - 2), policy.max_delay)
            for n in range(2, policy.max_attempts + 1)
        )
        per_call = policy.max_attempts * self.completion_timeout_seconds + backoff
        per_send = policy.max_attempts * self.delivery_timeout_seconds + backoff
        return per_call + 2 * per_send


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    The ``@lru_cache`` decorator ensures environment variables are parsed
    exactly once.  Call ``get_settings.cache_clear()`` in tests to reset.

    Returns:
        The application ``Settings``.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Log only the structured errors list -- never the full exception
        # which may contain raw SecretStr values.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_credentials(settings: Settings) -> None:
    """Enforce credential presence at startup.

    In **production** mode (``settings.production is True``), the application
    exits with a clear error block if any required credential is missing.

    In **development** mode, each missing credential is logged as a warning
    but the application continues to start.

    Independently of mode, a warning is logged when the worst-case outbound
    time exceeds ``request_budget_seconds``: the host would then kill the
    request before the fallback response can be sent.

    Args:
        settings: The loaded application settings.
    """
    worst_case = settings.worst_case_outbound_seconds()
    if worst_case >= settings.request_budget_seconds:
        logger.warning(
            "outbound_timeouts_exceed_budget",
            worst_case_seconds=worst_case,
            request_budget_seconds=settings.request_budget_seconds,
        )

    errors: list[str] = []

    if not settings.webhook_secret.get_secret_value():
        errors.append("WEBHOOK_SECRET is empty or not set")

    if not settings.anthropic_api_key.get_secret_value():
        errors.append("ANTHROPIC_API_KEY is empty or not set")

    if not settings.sendgrid_api_key.get_secret_value():
        errors.append("SENDGRID_API_KEY is empty or not set")

    if settings.dedupe_backend == "redis" and not settings.redis_url:
        errors.append("DEDUPE_BACKEND=redis but REDIS_URL is empty or not set")

    if not errors:
        logger.info("credential_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("credential_missing", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Missing required credentials for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("credential_missing_dev", detail=err)
