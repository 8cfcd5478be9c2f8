"""Convenience class for writing email log entries.

Each method builds a properly structured :class:`AuditEntry` and inserts it
via :func:`insert_audit_entry`.  Writes are best effort: a database error is
logged and swallowed so the email log can never change a webhook response.
"""

from __future__ import annotations

import sqlite3
import threading

import structlog

from responder.audit.models import AuditEntry, EventType
from responder.audit.store import insert_audit_entry
from responder.email.models import IncomingEmail, OutgoingEmail
from responder.identity.models import ResolvedIdentity
from responder.llm.models import GeneratedReply

logger = structlog.get_logger()


class AuditLogger:
    """Typed convenience API for the email log.

    Args:
        conn: An open SQLite connection with the ``email_log`` table.
        lock: Lock shared with other users of *conn*.
    """

    def __init__(self, conn: sqlite3.Connection, lock: threading.Lock | None = None) -> None:
        self._conn = conn
        self._lock = lock or threading.Lock()

    def _insert(self, entry: AuditEntry) -> int | None:
        try:
            with self._lock:
                return insert_audit_entry(self._conn, entry)
        except sqlite3.Error as exc:
            logger.warning(
                "audit_write_failed",
                event_type=entry.event_type.value,
                message_id=entry.message_id,
                error=str(exc),
            )
            return None

    def log_email_received(self, email: IncomingEmail) -> int | None:
        """Log an inbound email after parsing."""
        return self._insert(
            AuditEntry(
                event_type=EventType.EMAIL_RECEIVED,
                message_id=email.message_id,
                direction="inbound",
                from_address=email.from_address,
                to_address=email.to_address,
                subject=email.subject,
                body=email.body,
            )
        )

    def log_identity_created(self, identity: ResolvedIdentity, message_id: str) -> int | None:
        """Log the first contact from a new sender."""
        return self._insert(
            AuditEntry(
                event_type=EventType.IDENTITY_CREATED,
                message_id=message_id,
                identity_id=identity.identity_id,
                from_address=identity.primary_address,
            )
        )

    def log_reply_sent(
        self,
        incoming: IncomingEmail,
        outgoing: OutgoingEmail,
        identity_id: str,
        reply: GeneratedReply,
        provider_message_id: str | None = None,
    ) -> int | None:
        """Log a delivered reply with model and token usage.

        Args:
            incoming: The email that was answered.
            outgoing: The delivered reply.
            identity_id: The resolved sender identity.
            reply: The completion result behind the reply.
            provider_message_id: The delivery provider's message ID.

        Returns:
            The row ID, or None when the write failed.
        """
        metadata = {"completion_ms": str(reply.completion_ms)}
        if provider_message_id:
            metadata["provider_message_id"] = provider_message_id
        return self._insert(
            AuditEntry(
                event_type=EventType.REPLY_SENT,
                message_id=incoming.message_id,
                identity_id=identity_id,
                direction="outbound",
                from_address=outgoing.from_address,
                to_address=outgoing.to_address,
                subject=outgoing.subject,
                body=outgoing.body,
                model=reply.model,
                input_tokens=reply.input_tokens,
                output_tokens=reply.output_tokens,
                metadata=metadata,
            )
        )

    def log_fallback_sent(
        self,
        incoming: IncomingEmail,
        outgoing: OutgoingEmail,
        identity_id: str,
        reason: str,
    ) -> int | None:
        """Log a delivered fallback notice and why it was sent."""
        return self._insert(
            AuditEntry(
                event_type=EventType.FALLBACK_SENT,
                message_id=incoming.message_id,
                identity_id=identity_id,
                direction="outbound",
                from_address=outgoing.from_address,
                to_address=outgoing.to_address,
                subject=outgoing.subject,
                body=outgoing.body,
                metadata={"reason": reason},
            )
        )

    def log_duplicate(self, message_id: str, from_address: str) -> int | None:
        """Log a redelivery that was skipped."""
        return self._insert(
            AuditEntry(
                event_type=EventType.DUPLICATE_SKIPPED,
                message_id=message_id,
                from_address=from_address,
            )
        )

    def log_failure(
        self,
        message_id: str | None,
        failure_kind: str,
        error: str,
        identity_id: str | None = None,
    ) -> int | None:
        """Log a request that ended in the failed state."""
        return self._insert(
            AuditEntry(
                event_type=EventType.PIPELINE_FAILED,
                message_id=message_id,
                identity_id=identity_id,
                metadata={"failure_kind": failure_kind, "error": error},
            )
        )
