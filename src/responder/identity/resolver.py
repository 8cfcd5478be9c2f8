"""Attribute an inbound email to a sender identity.

Resolution order:
1. An identity ID embedded in the recipient's plus-address
   (``reply+{id}@domain``), accepted only when that identity's primary
   address is the sender's.
2. The identity whose primary address is the sender's.
3. A new identity for the sender, created atomically.
"""

from __future__ import annotations

import re

import structlog

from responder.identity.models import Identity, ResolvedIdentity
from responder.identity.store import IdentityStore

logger = structlog.get_logger()

_PLUS_ADDRESS_ID = re.compile(r"^[^@+]+\+([0-9a-f-]+)@", re.IGNORECASE)


def extract_identity_id(to_address: str) -> str | None:
    """Return the identity ID embedded in a plus-address, if any.

    Examples::

        extract_identity_id("reply+3f2a-77@example.com")  # "3f2a-77"
        extract_identity_id("reply@example.com")          # None
    """
    match = _PLUS_ADDRESS_ID.match(to_address.strip())
    return match.group(1).lower() if match else None


def _resolved(identity: Identity, *, created: bool = False) -> ResolvedIdentity:
    return ResolvedIdentity(
        identity_id=identity.identity_id,
        primary_address=identity.primary_address,
        is_newly_created=created,
        settings=identity.settings,
    )


class AddressResolver:
    """Look up or create the identity behind an inbound email."""

    def __init__(self, store: IdentityStore) -> None:
        self._store = store

    def resolve(self, to_address: str, from_address: str) -> ResolvedIdentity:
        """Resolve the identity for a message from *from_address* to *to_address*.

        Args:
            to_address: The recipient address the sender wrote to.
            from_address: The sender's address.

        Returns:
            The resolved identity.  ``is_newly_created`` is True only when
            this call inserted the identity.
        """
        sender = from_address.strip().lower()

        embedded_id = extract_identity_id(to_address)
        if embedded_id is not None:
            identity = self._store.get_by_id(embedded_id)
            if identity is not None and identity.primary_address.lower() == sender:
                logger.debug(
                    "identity_resolved", identity_id=identity.identity_id, via="plus_address"
                )
                return _resolved(identity)
            logger.warning(
                "identity_mismatch",
                embedded_id=embedded_id,
                found=identity is not None,
            )

        identity = self._store.get_by_address(sender)
        if identity is not None:
            logger.debug("identity_resolved", identity_id=identity.identity_id, via="address")
            return _resolved(identity)

        identity, created = self._store.create_if_absent(sender)
        if created:
            logger.info("identity_created", identity_id=identity.identity_id)
        return _resolved(identity, created=created)
