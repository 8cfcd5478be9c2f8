"""Domain enumerations for the inbound email pipeline."""

from enum import StrEnum


class PipelineState(StrEnum):
    """States a single webhook request moves through."""

    RECEIVED = "received"
    AUTHENTICATED = "authenticated"
    PARSED = "parsed"
    DEDUPE_CHECKED = "dedupe_checked"
    IDENTITY_RESOLVED = "identity_resolved"
    GENERATION_COMPLETE = "generation_complete"
    REPLY_SENT = "reply_sent"
    ACKNOWLEDGED = "acknowledged"
    FAILED = "failed"


class FailureKind(StrEnum):
    """Why a request ended in ``PipelineState.FAILED``."""

    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    VALIDATION = "validation"
    GENERATION = "generation"
    DELIVERY = "delivery"
    INTERNAL = "internal"


class FallbackReason(StrEnum):
    """Which user-facing notice to send when a reply could not be generated."""

    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    GENERIC = "generic"


class DedupeDecision(StrEnum):
    """Outcome of an idempotency check."""

    PROCEED = "proceed"
    ALREADY_PROCESSED = "already_processed"
