"""Domain types and errors for the inbound email responder."""

from responder.domain.errors import (
    AuthenticationError,
    AuthorizationError,
    DedupeSkip,
    FatalUpstreamError,
    InvalidTransitionError,
    ResponderError,
    TransientUpstreamError,
    UpstreamError,
    ValidationError,
)
from responder.domain.types import DedupeDecision, FailureKind, FallbackReason, PipelineState

__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "DedupeDecision",
    "DedupeSkip",
    "FailureKind",
    "FallbackReason",
    "FatalUpstreamError",
    "InvalidTransitionError",
    "PipelineState",
    "ResponderError",
    "TransientUpstreamError",
    "UpstreamError",
    "ValidationError",
]
