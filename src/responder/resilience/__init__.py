"""Resilience infrastructure for outbound API calls."""

from responder.resilience.retry import (
    DEFAULT_RETRYABLE_STATUS_CODES,
    RetryExecutor,
    RetryPolicy,
    is_retryable,
)

__all__ = [
    "DEFAULT_RETRYABLE_STATUS_CODES",
    "RetryExecutor",
    "RetryPolicy",
    "is_retryable",
]
