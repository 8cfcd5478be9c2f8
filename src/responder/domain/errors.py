"""Domain-specific exception classes for the inbound email responder.

The handler in :mod:`responder.pipeline.handler` is the only place that turns
these into HTTP responses; everything below it raises and propagates.
"""

from __future__ import annotations

from responder.domain.types import PipelineState


class ResponderError(Exception):
    """Base class for all domain errors in the responder."""


class ValidationError(ResponderError):
    """Raised when the webhook payload is malformed or missing fields (HTTP 400).

    Attributes:
        missing_fields: Required form fields that were absent or blank.
        available_fields: Form field names that were present in the payload.
    """

    def __init__(
        self,
        message: str,
        missing_fields: list[str] | None = None,
        available_fields: list[str] | None = None,
    ) -> None:
        self.missing_fields = missing_fields or []
        self.available_fields = available_fields or []
        super().__init__(message)


class AuthenticationError(ResponderError):
    """Raised when the signature or timestamp header is missing (HTTP 401)."""


class AuthorizationError(ResponderError):
    """Raised when the signature is invalid or the timestamp is stale (HTTP 403)."""


class UpstreamError(ResponderError):
    """Raised when a call to the completion service or delivery provider fails.

    Attributes:
        service: Short name of the upstream (``"completion"`` or ``"delivery"``).
        status_code: HTTP-like status returned by the upstream, or ``None``
            for transport failures (timeouts, connection resets).
        attempts: How many times the call was attempted before giving up.
            Set by :class:`~responder.resilience.retry.RetryExecutor`.
        timed_out: True when the call hit its client-side timeout.
    """

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int | None = None,
        attempts: int = 1,
        timed_out: bool = False,
    ) -> None:
        self.service = service
        self.status_code = status_code
        self.attempts = attempts
        self.timed_out = timed_out
        super().__init__(message)


class TransientUpstreamError(UpstreamError):
    """A retryable upstream failure: 429, 5xx, timeout or connection error."""


class FatalUpstreamError(UpstreamError):
    """A non-retryable upstream failure, or a transient one after retries ran out."""


class DedupeSkip(ResponderError):
    """Control-flow signal: the message was already handled inside the window.

    Not a failure.  The webhook sender still receives 200.
    """

    def __init__(self, message_id: str) -> None:
        self.message_id = message_id
        super().__init__(f"Message {message_id} already processed")


class InvalidTransitionError(ResponderError):
    """Raised when an invalid pipeline state transition is attempted.

    Attributes:
        current_state: The state the machine was in when the transition was attempted.
        event: The event that was rejected.
    """

    def __init__(self, current_state: PipelineState, event: str) -> None:
        self.current_state = current_state
        self.event = event
        super().__init__(f"Cannot apply event '{event}' in state '{current_state}'")
