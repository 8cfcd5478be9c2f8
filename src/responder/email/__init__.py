"""Email domain: payload parsing, threading, reply composition, and models."""

from responder.email.composer import (
    compose_fallback_notice,
    compose_reply,
    fallback_reason_for,
    format_reply_subject,
)
from responder.email.models import IncomingEmail, OutgoingEmail
from responder.email.parser import (
    clean_body,
    extract_address,
    extract_in_reply_to,
    extract_message_id,
    extract_references,
    parse_incoming_email,
    synthesize_message_id,
)
from responder.email.threading import (
    build_references,
    build_reply_headers,
    normalize_message_id,
)

__all__ = [
    "IncomingEmail",
    "OutgoingEmail",
    "build_references",
    "build_reply_headers",
    "clean_body",
    "compose_fallback_notice",
    "compose_reply",
    "extract_address",
    "extract_in_reply_to",
    "extract_message_id",
    "extract_references",
    "fallback_reason_for",
    "format_reply_subject",
    "normalize_message_id",
    "parse_incoming_email",
    "synthesize_message_id",
]
