"""Inbound email pipeline: the single place where errors become responses.

Runs one webhook delivery through verification, parsing, deduplication,
identity resolution, reply generation and delivery, tracking progress in a
``RequestStateMachine``.  Components below the handler raise; the handler
maps each outcome to a status code:

- missing signature headers          -> 401
- bad signature or stale timestamp   -> 403
- missing required fields            -> 400
- redelivered Message-ID             -> 200 ``duplicate``
- completion or delivery failure     -> 200 ``success`` with a fallback notice
- anything unexpected                -> 200 ``error``

Failures after authentication answer 200 so the provider does not
redeliver an email that would fail the same way again.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field

from responder.audit.logger import AuditLogger
from responder.dedupe.guard import IdempotencyGuard
from responder.domain.errors import (
    AuthenticationError,
    AuthorizationError,
    DedupeSkip,
    UpstreamError,
    ValidationError,
)
from responder.domain.types import DedupeDecision, FailureKind, PipelineState
from responder.email.composer import compose_fallback_notice, compose_reply, fallback_reason_for
from responder.email.models import IncomingEmail, OutgoingEmail
from responder.email.parser import parse_incoming_email
from responder.identity.models import ResolvedIdentity
from responder.identity.resolver import AddressResolver
from responder.llm.models import GeneratedReply
from responder.observability.metrics import EMAILS_PROCESSED
from responder.pipeline.timing import StageTimer
from responder.state_machine.machine import RequestStateMachine
from responder.state_machine.transitions import PipelineEvent
from responder.webhook.signature import SignatureVerifier

logger = structlog.get_logger()

DEFAULT_SIGNATURE_HEADER = "X-Webhook-Signature"
DEFAULT_TIMESTAMP_HEADER = "X-Webhook-Timestamp"


class ReplyGeneratorProtocol(Protocol):
    def generate(
        self, email: IncomingEmail, identity: ResolvedIdentity | None = None
    ) -> GeneratedReply: ...


class DeliveryProtocol(Protocol):
    def send(self, outgoing: OutgoingEmail) -> str | None: ...


class WebhookResponse(BaseModel):
    """Status code and JSON body returned to the webhook sender."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    body: dict[str, Any] = Field(default_factory=dict)


def _header(headers: Mapping[str, str], name: str) -> str | None:
    """Case-insensitive header lookup that also works on plain dicts."""
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


class RequestHandler:
    """Process one inbound email webhook delivery.

    Args:
        verifier: Webhook signature verifier.
        guard: Message-ID idempotency guard.
        resolver: Sender identity resolver.
        generator: Produces reply text (retries inside).
        delivery: Sends outgoing emails (retries inside).
        audit: Optional email log; writes are best effort.
        signature_header: Header carrying the signature.
        timestamp_header: Header carrying the signing timestamp.
    """

    def __init__(
        self,
        verifier: SignatureVerifier,
        guard: IdempotencyGuard,
        resolver: AddressResolver,
        generator: ReplyGeneratorProtocol,
        delivery: DeliveryProtocol,
        audit: AuditLogger | None = None,
        *,
        signature_header: str = DEFAULT_SIGNATURE_HEADER,
        timestamp_header: str = DEFAULT_TIMESTAMP_HEADER,
    ) -> None:
        self._verifier = verifier
        self._guard = guard
        self._resolver = resolver
        self._generator = generator
        self._delivery = delivery
        self._audit = audit
        self._signature_header = signature_header
        self._timestamp_header = timestamp_header

    def handle(
        self,
        raw_body: bytes,
        headers: Mapping[str, str],
        fields: Mapping[str, str],
    ) -> WebhookResponse:
        """Run the pipeline for one delivery and build the response.

        Args:
            raw_body: The exact request body bytes (signed by the sender).
            headers: Request headers.
            fields: Decoded form fields.

        Returns:
            The response to send back to the webhook provider.
        """
        machine = RequestStateMachine()
        timer = StageTimer()
        email: IncomingEmail | None = None
        identity: ResolvedIdentity | None = None

        logger.info("webhook_received", body_bytes=len(raw_body))

        try:
            self._verifier.verify(
                raw_body,
                _header(headers, self._timestamp_header),
                _header(headers, self._signature_header),
            )
            machine.trigger(PipelineEvent.AUTHENTICATE)

            with timer.stage("parse"):
                email = parse_incoming_email(fields)
            machine.trigger(PipelineEvent.PARSE)
            structlog.contextvars.bind_contextvars(message_id=email.message_id)
            logger.info(
                "email_parsed",
                from_address=email.from_address,
                subject=email.subject,
                body_length=len(email.body),
                has_in_reply_to=email.in_reply_to is not None,
                reference_count=len(email.references),
            )
            if self._audit is not None:
                self._audit.log_email_received(email)

            decision = self._guard.check(email.message_id)
            machine.trigger(PipelineEvent.CHECK_DEDUPE)
            if decision is DedupeDecision.ALREADY_PROCESSED:
                raise DedupeSkip(email.message_id)

            identity = self._resolver.resolve(email.to_address, email.from_address)
            machine.trigger(PipelineEvent.RESOLVE_IDENTITY)
            if identity.is_newly_created and self._audit is not None:
                self._audit.log_identity_created(identity, email.message_id)

            return self._reply(machine, timer, email, identity)

        except AuthenticationError:
            machine.fail(FailureKind.UNAUTHENTICATED)
            EMAILS_PROCESSED.labels(outcome="rejected").inc()
            return WebhookResponse(
                status_code=401, body={"status": "error", "message": "Unauthorized"}
            )
        except AuthorizationError:
            machine.fail(FailureKind.FORBIDDEN)
            EMAILS_PROCESSED.labels(outcome="rejected").inc()
            return WebhookResponse(
                status_code=403, body={"status": "error", "message": "Forbidden"}
            )
        except ValidationError as exc:
            machine.fail(FailureKind.VALIDATION)
            EMAILS_PROCESSED.labels(outcome="rejected").inc()
            logger.warning(
                "payload_invalid",
                missing_fields=exc.missing_fields,
                available_fields=exc.available_fields,
            )
            return WebhookResponse(
                status_code=400,
                body={
                    "status": "error",
                    "message": str(exc),
                    "missing_fields": exc.missing_fields,
                },
            )
        except DedupeSkip as exc:
            machine.trigger(PipelineEvent.SKIP_DUPLICATE)
            EMAILS_PROCESSED.labels(outcome="duplicate").inc()
            if self._audit is not None and email is not None:
                self._audit.log_duplicate(exc.message_id, email.from_address)
            return WebhookResponse(
                status_code=200, body={"status": "duplicate", "message_id": exc.message_id}
            )
        except Exception as exc:
            logger.exception(
                "unexpected_error",
                state=machine.state.value,
                valid_events=machine.get_valid_events(),
                error=str(exc),
            )
            if not machine.is_terminal:
                machine.fail(FailureKind.INTERNAL)
            EMAILS_PROCESSED.labels(outcome="failed").inc()
            if self._audit is not None:
                self._audit.log_failure(
                    email.message_id if email else None,
                    FailureKind.INTERNAL.value,
                    str(exc),
                    identity_id=identity.identity_id if identity else None,
                )
            return WebhookResponse(
                status_code=200, body={"status": "error", "message": "Internal error occurred"}
            )
        finally:
            logger.info(
                "processing_completed",
                state=machine.state.value,
                transitions=[event for _, event, _ in machine.history],
                failure_kind=machine.failure_kind.value if machine.failure_kind else None,
                durations_ms=timer.finish(),
            )

    def _reply(
        self,
        machine: RequestStateMachine,
        timer: StageTimer,
        email: IncomingEmail,
        identity: ResolvedIdentity,
    ) -> WebhookResponse:
        """Generate and deliver the reply, falling back to a notice on any failure."""
        try:
            with timer.stage("completion"):
                reply = self._generator.generate(email, identity)
            machine.trigger(PipelineEvent.COMPLETE_GENERATION)

            outgoing = compose_reply(email, reply.text)
            with timer.stage("delivery"):
                provider_message_id = self._delivery.send(outgoing)
            machine.trigger(PipelineEvent.SEND_REPLY)
        except Exception as exc:
            kind = (
                FailureKind.GENERATION
                if machine.state is PipelineState.IDENTITY_RESOLVED
                else FailureKind.DELIVERY
            )
            if isinstance(exc, UpstreamError):
                logger.error(
                    "reply_failed",
                    failure_kind=kind.value,
                    service=exc.service,
                    status_code=exc.status_code,
                    attempts=exc.attempts,
                    error=str(exc),
                )
            else:
                logger.exception("reply_failed", failure_kind=kind.value, error=str(exc))
            machine.fail(kind)
            if self._audit is not None:
                self._audit.log_failure(
                    email.message_id, kind.value, str(exc), identity_id=identity.identity_id
                )
            fallback_sent = self._send_fallback(email, identity, exc)
            EMAILS_PROCESSED.labels(outcome="fallback").inc()
            return WebhookResponse(
                status_code=200,
                body={
                    "status": "success",
                    "message_id": email.message_id,
                    "fallback": True,
                    "fallback_sent": fallback_sent,
                },
            )

        machine.trigger(PipelineEvent.ACKNOWLEDGE)
        if self._audit is not None:
            self._audit.log_reply_sent(
                email, outgoing, identity.identity_id, reply, provider_message_id
            )
        EMAILS_PROCESSED.labels(outcome="replied").inc()
        return WebhookResponse(
            status_code=200,
            body={"status": "success", "message_id": email.message_id, "fallback": False},
        )

    def _send_fallback(
        self,
        email: IncomingEmail,
        identity: ResolvedIdentity,
        cause: Exception,
    ) -> bool:
        """Best-effort delivery of the fallback notice; never raises."""
        reason = fallback_reason_for(cause)
        notice = compose_fallback_notice(email, reason)
        try:
            self._delivery.send(notice)
        except Exception as exc:
            logger.error("fallback_send_failed", reason=reason.value, error=str(exc))
            return False

        logger.info("fallback_sent", reason=reason.value)
        if self._audit is not None:
            self._audit.log_fallback_sent(email, notice, identity.identity_id, reason.value)
        return True
