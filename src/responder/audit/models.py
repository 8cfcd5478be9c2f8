"""Audit trail models for tracking every email the responder handles."""

from enum import StrEnum

from pydantic import BaseModel


class EventType(StrEnum):
    """Types of events tracked in the email log."""

    EMAIL_RECEIVED = "email_received"
    REPLY_SENT = "reply_sent"
    FALLBACK_SENT = "fallback_sent"
    DUPLICATE_SKIPPED = "duplicate_skipped"
    IDENTITY_CREATED = "identity_created"
    PIPELINE_FAILED = "pipeline_failed"


class AuditEntry(BaseModel):
    """A single email log entry.

    All fields except event_type are optional to accommodate different
    event types (e.g., a duplicate skip has no body or token usage).
    """

    event_type: EventType
    message_id: str | None = None
    identity_id: str | None = None
    direction: str | None = None
    from_address: str | None = None
    to_address: str | None = None
    subject: str | None = None
    body: str | None = None
    model: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    metadata: dict[str, str] | None = None
