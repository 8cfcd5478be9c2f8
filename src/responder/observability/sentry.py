"""Sentry error reporting bridged from structlog.

``init_sentry`` is a no-op without a DSN.  ``get_sentry_processor`` returns the
structlog processor that forwards ERROR and CRITICAL events (upstream
exhaustion, security alerts) to Sentry.
"""

from __future__ import annotations

import logging

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor


def init_sentry(dsn: str, *, production: bool = False) -> bool:
    """Initialize the Sentry SDK when *dsn* is set.

    Args:
        dsn: Sentry DSN string.  Empty string disables Sentry.
        production: Selects the ``environment`` tag.

    Returns:
        True if the SDK was initialized.
    """
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment="production" if production else "development",
        traces_sample_rate=0.1,
        # Inbound payloads carry end-user addresses and message bodies.
        send_default_pii=False,
        integrations=[
            # structlog-sentry does the capturing; avoid double reports.
            LoggingIntegration(event_level=None, level=None),
        ],
    )
    return True


def get_sentry_processor() -> structlog.types.Processor:
    """Return a structlog processor that forwards ERROR events to Sentry.

    Goes after ``add_log_level`` and before the renderer.
    """
    return SentryProcessor(event_level=logging.ERROR)
