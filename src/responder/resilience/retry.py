"""Bounded exponential-backoff executor for outbound API calls.

Wraps a single zero-argument call with tenacity: 429 and 5xx statuses, timeouts
and connection errors are retried; 400/401/403 and every non-upstream exception
fail immediately.  The wait before attempt *n* (n >= 2) is
``base_delay * 2 ** (n - 2)``, capped at ``max_delay``.

The completion call and the delivery call share one executor, so both honor
the same classification.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from functools import partial
from typing import TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from responder.domain.errors import FatalUpstreamError, TransientUpstreamError, UpstreamError
from responder.observability.metrics import UPSTREAM_RETRIES

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({429, 500, 502, 503, 504})


class RetryPolicy(BaseModel):
    """Retry configuration shared by every outbound call site."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=30.0, ge=0)
    retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES


def is_retryable(exc: BaseException, policy: RetryPolicy) -> bool:
    """Classify *exc* as retryable under *policy*.

    Args:
        exc: The exception raised by one attempt.
        policy: The active retry policy.

    Returns:
        True for transport failures (``TransientUpstreamError`` without a
        status) and for upstream errors whose status is in
        ``policy.retryable_status_codes``; False for everything else.
    """
    if not isinstance(exc, UpstreamError) or isinstance(exc, FatalUpstreamError):
        return False
    if exc.status_code is None:
        return isinstance(exc, TransientUpstreamError)
    return exc.status_code in policy.retryable_status_codes


def _before_sleep_log(api_name: str, retry_state: RetryCallState) -> None:
    """Log a warning before each retry attempt.

    Args:
        api_name: Human-readable name of the API being called.
        retry_state: Tenacity retry state with attempt info.
    """
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    UPSTREAM_RETRIES.labels(api=api_name).inc()
    logger.warning(
        "retry_attempt",
        api_name=api_name,
        attempt=retry_state.attempt_number,
        wait=retry_state.next_action.sleep if retry_state.next_action else 0,
        status_code=getattr(exception, "status_code", None),
        error=str(exception),
    )


class RetryExecutor:
    """Run outbound calls under a ``RetryPolicy``.

    Args:
        policy: Attempt count, base delay and retryable statuses.
        sleep: Blocking sleep used between attempts.  Only the current
            request waits; tests pass a recorder instead of ``time.sleep``.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._policy = policy
        self._sleep = sleep

    @property
    def policy(self) -> RetryPolicy:
        """Return the active retry policy."""
        return self._policy

    def run(self, fn: Callable[[], T], *, api_name: str) -> T:
        """Call *fn* until it succeeds, fails fatally, or attempts run out.

        Args:
            fn: Zero-argument callable performing exactly one attempt.
            api_name: Name used in logs and metrics (e.g. ``"anthropic"``).

        Returns:
            Whatever *fn* returns on the first successful attempt.

        Raises:
            FatalUpstreamError: When every attempt failed with a retryable
                error.  Chained from the last error, with ``attempts`` and
                ``status_code`` copied onto it.
            UpstreamError: A non-retryable upstream error, re-raised with
                ``attempts`` set to the number of calls made.
            Exception: Any other exception from *fn*, unchanged, after one call.
        """
        policy = self._policy
        calls = 0

        def attempt() -> T:
            nonlocal calls
            calls += 1
            return fn()

        retrying = Retrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=wait_exponential(multiplier=policy.base_delay, max=policy.max_delay),
            retry=retry_if_exception(lambda exc: is_retryable(exc, policy)),
            before_sleep=partial(_before_sleep_log, api_name),
            sleep=self._sleep,
            reraise=True,
        )

        try:
            return retrying(attempt)
        except UpstreamError as exc:
            exc.attempts = calls
            if not is_retryable(exc, policy):
                raise
            logger.error(
                "upstream_retries_exhausted",
                api_name=api_name,
                attempts=calls,
                status_code=exc.status_code,
                error=str(exc),
            )
            raise FatalUpstreamError(
                exc.service,
                f"{api_name} failed after {calls} attempts: {exc}",
                status_code=exc.status_code,
                attempts=calls,
                timed_out=exc.timed_out,
            ) from exc
