"""HMAC-SHA256 signature verification for inbound webhook deliveries.

The signature covers the timestamp header followed by the raw request body
bytes, so it must be checked BEFORE the form payload is decoded.  A timestamp
outside the tolerance window is rejected even when the signature is valid,
which bounds how long a captured request can be replayed.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from collections.abc import Callable
from typing import Literal, NoReturn

import structlog

from responder.domain.errors import AuthenticationError, AuthorizationError

logger = structlog.get_logger()

SignatureEncoding = Literal["hex", "base64"]

DEFAULT_TOLERANCE_SECONDS = 600


def compute_signature(
    raw_body: bytes,
    timestamp: str,
    secret: str,
    encoding: SignatureEncoding = "hex",
) -> str:
    """Compute the signature a sender attaches to a webhook delivery.

    Args:
        raw_body: The exact request body bytes.
        timestamp: The timestamp header value, as sent.
        secret: The shared signing secret.
        encoding: ``"hex"`` or ``"base64"`` digest encoding.

    Returns:
        The encoded HMAC-SHA256 digest of ``timestamp + raw_body``.
    """
    digest = hmac.new(secret.encode(), timestamp.encode() + raw_body, hashlib.sha256).digest()
    if encoding == "base64":
        return base64.b64encode(digest).decode("ascii")
    return digest.hex()


class SignatureVerifier:
    """Authenticates webhook deliveries against a shared secret.

    Args:
        secret: The shared signing secret.
        tolerance_seconds: Maximum allowed skew between the timestamp header
            and the local clock, in either direction.
        encoding: Digest encoding used by the sender.
        clock: Returns the current Unix time; injectable for tests.
    """

    def __init__(
        self,
        secret: str,
        tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
        encoding: SignatureEncoding = "hex",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret = secret
        self._tolerance = tolerance_seconds
        self._encoding: SignatureEncoding = encoding
        self._clock = clock

    def verify(self, raw_body: bytes, timestamp: str | None, signature: str | None) -> None:
        """Verify a delivery, raising on failure.

        Raises:
            AuthenticationError: The timestamp or signature header is missing.
            AuthorizationError: The timestamp is malformed or stale, or the
                signature does not match.
        """
        if not timestamp or not signature:
            logger.warning(
                "webhook_signature_missing",
                has_timestamp=bool(timestamp),
                has_signature=bool(signature),
            )
            raise AuthenticationError("Missing signature or timestamp header")

        try:
            sent_at = int(timestamp)
        except ValueError:
            self._reject("malformed_timestamp")

        skew = abs(int(self._clock()) - sent_at)
        if skew > self._tolerance:
            self._reject("stale_timestamp", skew_seconds=skew)

        expected = compute_signature(raw_body, timestamp, self._secret, self._encoding)
        if not hmac.compare_digest(expected.encode(), signature.strip().encode()):
            self._reject("signature_mismatch")

    def _reject(self, reason: str, **details: object) -> NoReturn:
        logger.critical("security_alert", check="webhook_signature", reason=reason, **details)
        raise AuthorizationError(f"Webhook rejected: {reason}")
