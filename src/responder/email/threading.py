"""Reply threading: Message-ID normalization and reply header management.

Provides helpers for:
- Normalizing Message-IDs to their bracket-delimited ``<...>`` form
- Building the References chain for a reply
- Building the provider header map for a threaded reply
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from responder.email.models import OutgoingEmail


def normalize_message_id(value: str) -> str:
    """Return *value* stripped and wrapped in angle brackets.

    Already-bracketed IDs are returned unchanged (after stripping), so the
    function is idempotent.  Blank input yields an empty string.
    """
    stripped = value.strip()
    if not stripped:
        return ""
    if stripped.startswith("<") and stripped.endswith(">"):
        return stripped
    return f"<{stripped}>"


def build_references(references: Iterable[str], message_id: str) -> list[str]:
    """Build the References chain for a reply to *message_id*.

    Args:
        references: The References tokens of the message being replied to,
            in their original order.
        message_id: The Message-ID of the message being replied to.

    Returns:
        The normalized references followed by the normalized *message_id*,
        with blank entries dropped.
    """
    chain = [normalize_message_id(ref) for ref in references]
    chain.append(normalize_message_id(message_id))
    return [ref for ref in chain if ref]


def build_reply_headers(outgoing: OutgoingEmail) -> dict[str, str]:
    """Build the RFC 5322 threading headers for a reply.

    Only non-empty headers are included, so a reply with no threading
    context yields an empty dict.

    Args:
        outgoing: The composed reply.

    Returns:
        A dict with ``In-Reply-To`` and ``References`` (space-joined), as
        present.
    """
    headers: dict[str, str] = {}
    if outgoing.in_reply_to:
        headers["In-Reply-To"] = outgoing.in_reply_to
    if outgoing.references:
        headers["References"] = " ".join(outgoing.references)
    return headers
