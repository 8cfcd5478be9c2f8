"""Webhook payload parsing into ``IncomingEmail``.

Provides helpers for:
- Extracting the bare address from ``"Name" <addr>``, ``<addr>`` or ``addr``
- Reading Message-ID / In-Reply-To / References from the raw header block
- Synthesizing a deterministic Message-ID when the sender omitted one
- Stripping quoted lines and signatures from plain-text bodies

Body cleaning is a line-based heuristic for plain text only; HTML and
multipart bodies are never looked at.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Mapping
from datetime import UTC, datetime
from email.message import Message
from email.parser import HeaderParser

from responder.domain.errors import ValidationError
from responder.email.models import IncomingEmail
from responder.email.threading import normalize_message_id

REQUIRED_FIELDS: tuple[str, ...] = ("from", "to", "text")

_BRACKETED = re.compile(r"<([^<>]+)>")
_MESSAGE_ID_TOKEN = re.compile(r"<[^<>]+>")

# Whole-line sign-offs appended by mobile mail clients.
MOBILE_SIGNOFFS: frozenset[str] = frozenset(
    {
        "sent from my iphone",
        "sent from my ipad",
        "sent from my android device",
        "sent from my mobile device",
        "get outlook for ios",
        "get outlook for android",
    }
)
SIGNATURE_PREFIXES: tuple[str, ...] = ("--", "___")


def extract_address(value: str) -> str:
    """Return only the address part of a From/To value, lower-cased.

    Examples::

        extract_address('"Ann Lee" <Ann@Example.com>')  # "ann@example.com"
        extract_address("<ann@example.com>")            # "ann@example.com"
        extract_address(" ann@example.com ")            # "ann@example.com"
    """
    match = _BRACKETED.search(value)
    address = match.group(1) if match else value
    return address.strip().lower()


def _parse_headers(headers: str) -> Message:
    return HeaderParser().parsestr(headers.lstrip())


def extract_message_id(headers: str) -> str | None:
    """Return the bracket-delimited Message-ID from a raw header block, if any."""
    raw = _parse_headers(headers).get("Message-ID")
    if raw is None:
        return None
    match = _MESSAGE_ID_TOKEN.search(str(raw))
    if match:
        return match.group(0)
    normalized = normalize_message_id(str(raw))
    return normalized or None


def extract_in_reply_to(headers: str) -> str | None:
    """Return the first identifier of the In-Reply-To header, if present."""
    raw = _parse_headers(headers).get("In-Reply-To")
    if raw is None:
        return None
    match = _MESSAGE_ID_TOKEN.search(str(raw))
    if match:
        return match.group(0)
    value = str(raw).strip()
    return value or None


def extract_references(headers: str) -> list[str]:
    """Return the References tokens in their original order.

    Folded (multi-line) headers are unfolded by the header parser.  Tokens
    are returned exactly as sent, brackets or not.
    """
    raw = _parse_headers(headers).get("References")
    if raw is None:
        return []
    return [token for token in str(raw).split() if token.strip()]


def synthesize_message_id(
    from_address: str,
    to_address: str,
    subject: str,
    text: str,
    headers: str,
) -> str:
    """Build a stand-in Message-ID for an email that arrived without one.

    The ID is a SHA-256 digest of the payload, so a redelivery of the same
    email maps to the same ID and is caught by the idempotency guard.

    Returns:
        ``<{32 hex chars}@{recipient domain}>``.
    """
    digest = hashlib.sha256(
        "\x1f".join((from_address, to_address, subject, text, headers)).encode("utf-8")
    ).hexdigest()[:32]
    _, _, domain = to_address.rpartition("@")
    return f"<{digest}@{domain or 'localhost'}>"


def clean_body(text: str) -> str:
    """Strip quoted lines and everything from the first signature marker on.

    Lines whose stripped form starts with ``>`` are dropped.  The body is cut
    at the first line starting with ``--`` or ``___``, or equal to a known
    mobile sign-off.  If nothing survives (the email was entirely quoted),
    the stripped original is returned.

    Args:
        text: Plain-text email body.

    Returns:
        The cleaned body text.
    """
    kept: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith(SIGNATURE_PREFIXES) or stripped.lower() in MOBILE_SIGNOFFS:
            break
        if stripped.startswith(">"):
            continue
        kept.append(line)

    cleaned = "\n".join(kept).strip()
    return cleaned or text.strip()


def parse_incoming_email(
    fields: Mapping[str, str],
    *,
    received_at: datetime | None = None,
) -> IncomingEmail:
    """Decode webhook form fields into an ``IncomingEmail``.

    Args:
        fields: Form fields from the webhook (``from``, ``to``, ``subject``,
            ``text``, ``headers``).
        received_at: Receipt time; defaults to now (UTC).

    Returns:
        The populated, immutable ``IncomingEmail``.

    Raises:
        ValidationError: If any of ``from``, ``to`` or ``text`` is missing
            or blank.  Every missing field is named.
    """
    missing = [name for name in REQUIRED_FIELDS if not (fields.get(name) or "").strip()]
    if missing:
        raise ValidationError(
            f"Missing required email fields ({', '.join(missing)})",
            missing_fields=missing,
            available_fields=sorted(fields.keys()),
        )

    text = fields["text"]
    subject = (fields.get("subject") or "").strip()
    headers = fields.get("headers") or ""
    from_address = extract_address(fields["from"])
    to_address = extract_address(fields["to"])

    message_id = extract_message_id(headers) or synthesize_message_id(
        from_address, to_address, subject, text, headers
    )

    return IncomingEmail(
        from_address=from_address,
        to_address=to_address,
        subject=subject,
        body=clean_body(text),
        message_id=message_id,
        in_reply_to=extract_in_reply_to(headers),
        references=tuple(extract_references(headers)),
        received_at=received_at or datetime.now(tz=UTC),
    )
