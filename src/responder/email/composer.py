"""Reply composition: subject prefixing, threaded envelopes and fallback notices."""

from __future__ import annotations

from responder.domain.errors import UpstreamError
from responder.domain.types import FallbackReason
from responder.email.models import IncomingEmail, OutgoingEmail
from responder.email.threading import build_references, normalize_message_id

SIGN_OFF = "Best regards,\nEmail Assistant Service"

FALLBACK_BODIES: dict[FallbackReason, str] = {
    FallbackReason.RATE_LIMITED: (
        "Dear User,\n\n"
        "I'm experiencing high demand right now. Please try again in a few minutes.\n\n"
        "Thank you for your patience!\n\n"
        f"{SIGN_OFF}"
    ),
    FallbackReason.TIMEOUT: (
        "Dear User,\n\n"
        "I'm taking longer than usual to respond. Please try again in a few minutes.\n\n"
        "Thank you for your patience!\n\n"
        f"{SIGN_OFF}"
    ),
    FallbackReason.GENERIC: (
        "Dear User,\n\n"
        "Sorry, I encountered a technical issue. Please try again shortly.\n\n"
        "If this problem continues, please contact our support team.\n\n"
        f"{SIGN_OFF}"
    ),
}


def format_reply_subject(subject: str) -> str:
    """Prefix *subject* with ``Re: `` unless it already starts with ``re:``.

    The check is case-insensitive, so ``"RE: Hi"`` and ``"re:Hi"`` are kept
    as they are.
    """
    stripped = subject.strip()
    if stripped.lower().startswith("re:"):
        return stripped
    return f"Re: {stripped}"


def fallback_reason_for(exc: BaseException) -> FallbackReason:
    """Pick the fallback wording for a downstream failure."""
    if isinstance(exc, UpstreamError):
        if exc.status_code == 429:
            return FallbackReason.RATE_LIMITED
        if exc.timed_out:
            return FallbackReason.TIMEOUT
    return FallbackReason.GENERIC


def _threaded_reply(incoming: IncomingEmail, body: str, *, is_fallback: bool) -> OutgoingEmail:
    return OutgoingEmail(
        from_address=incoming.to_address,
        to_address=incoming.from_address,
        subject=format_reply_subject(incoming.subject),
        body=body,
        in_reply_to=normalize_message_id(incoming.message_id),
        references=tuple(build_references(incoming.references, incoming.message_id)),
        is_fallback=is_fallback,
    )


def compose_reply(incoming: IncomingEmail, text: str) -> OutgoingEmail:
    """Wrap generated *text* in a reply threaded onto *incoming*.

    The reply goes from the address the user wrote to back to the sender,
    with ``In-Reply-To`` set to the incoming Message-ID and ``References``
    extended by it.

    Args:
        incoming: The email being answered.
        text: The reply body.

    Returns:
        The composed ``OutgoingEmail``.
    """
    return _threaded_reply(incoming, text.strip(), is_fallback=False)


def compose_fallback_notice(
    incoming: IncomingEmail,
    reason: FallbackReason = FallbackReason.GENERIC,
) -> OutgoingEmail:
    """Build the brief notice sent when a reply could not be produced.

    The notice is threaded exactly like a normal reply and never contains
    technical details of the failure.
    """
    return _threaded_reply(incoming, FALLBACK_BODIES[reason], is_fallback=True)
