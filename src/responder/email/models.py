"""Pydantic v2 models for the email domain.

Provides frozen (immutable) models for the inbound message decoded from the
webhook and the outbound reply handed to the delivery provider.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class IncomingEmail(BaseModel):
    """An inbound email decoded from the webhook payload.

    Addresses are bare and lower-cased.  ``message_id`` is always present and
    bracket-delimited (synthesized when the headers lack one); ``references``
    keep their original order and are not yet bracket-normalized.
    """

    model_config = ConfigDict(frozen=True)

    from_address: str
    to_address: str
    subject: str
    body: str
    message_id: str  # RFC 5322 Message-ID, "<...>"
    in_reply_to: str | None = None
    references: tuple[str, ...] = ()
    received_at: datetime


class OutgoingEmail(BaseModel):
    """A threaded reply ready for the delivery provider.

    ``from_address`` is the service address the user wrote to, and
    ``to_address`` is the original sender.  ``in_reply_to`` and every entry
    of ``references`` are bracket-normalized.
    """

    model_config = ConfigDict(frozen=True)

    from_address: str
    to_address: str
    subject: str
    body: str
    in_reply_to: str
    references: tuple[str, ...] = ()
    is_fallback: bool = False
