"""SendGrid v3 Mail Send adapter over httpx.

Builds the JSON envelope for a threaded plain-text reply and maps responses
onto the upstream error taxonomy:

- 202 (200 in sandbox mode) -> accepted; ``X-Message-Id`` is returned
- 400 / 401 / 403           -> ``FatalUpstreamError``
- retryable statuses        -> ``TransientUpstreamError``
- timeouts, transport errors -> ``TransientUpstreamError``
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from responder.domain.errors import FatalUpstreamError, TransientUpstreamError
from responder.email.models import OutgoingEmail
from responder.email.threading import build_reply_headers
from responder.resilience.retry import DEFAULT_RETRYABLE_STATUS_CODES, RetryExecutor

logger = structlog.get_logger()

SERVICE = "delivery"
DEFAULT_API_URL = "https://api.sendgrid.com/v3/mail/send"
DEFAULT_TIMEOUT_SECONDS = 10.0
_ACCEPTED = frozenset({200, 202})


def build_mail_payload(outgoing: OutgoingEmail) -> dict[str, Any]:
    """Build the SendGrid Mail Send request body for *outgoing*.

    Threading headers are only included when present.
    """
    payload: dict[str, Any] = {
        "personalizations": [{"to": [{"email": outgoing.to_address}]}],
        "from": {"email": outgoing.from_address},
        "subject": outgoing.subject,
        "content": [{"type": "text/plain", "value": outgoing.body}],
    }
    headers = build_reply_headers(outgoing)
    if headers:
        payload["headers"] = headers
    return payload


class SendGridClient:
    """Deliver replies through the SendGrid v3 API.

    Args:
        api_key: SendGrid API key.
        retry: Shared executor wrapping each send.
        api_url: Mail Send endpoint.
        timeout: Per-request timeout in seconds.
        http_client: Injected ``httpx.Client``; tests pass one built on
            ``httpx.MockTransport``.
        retryable_status_codes: Statuses translated to transient errors.
    """

    def __init__(
        self,
        api_key: str,
        retry: RetryExecutor,
        api_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: httpx.Client | None = None,
        retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES,
    ) -> None:
        self._api_url = api_url
        self._retry = retry
        self._retryable = retryable_status_codes
        self._http = http_client or httpx.Client(timeout=timeout)
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def send(self, outgoing: OutgoingEmail) -> str | None:
        """Send *outgoing*, retrying transient failures.

        Returns:
            SendGrid's message ID from the ``X-Message-Id`` header, if any.

        Raises:
            UpstreamError: When SendGrid rejects the message or every
                attempt failed.
        """
        payload = build_mail_payload(outgoing)
        logger.info(
            "delivery_started",
            to=outgoing.to_address,
            subject=outgoing.subject,
            is_fallback=outgoing.is_fallback,
        )
        provider_id = self._retry.run(lambda: self._post(payload), api_name="sendgrid")
        logger.info("delivery_completed", provider_message_id=provider_id)
        return provider_id

    def _post(self, payload: dict[str, Any]) -> str | None:
        """Make exactly one Mail Send request."""
        try:
            response = self._http.post(self._api_url, json=payload, headers=self._headers)
        except httpx.TimeoutException as exc:
            raise TransientUpstreamError(
                SERVICE, "SendGrid request timed out", timed_out=True
            ) from exc
        except httpx.TransportError as exc:
            raise TransientUpstreamError(SERVICE, f"SendGrid transport error: {exc}") from exc

        status = response.status_code
        if status in _ACCEPTED:
            return response.headers.get("X-Message-Id")

        if status in (401, 403):
            logger.critical("delivery_auth_error", status_code=status)
        else:
            logger.error("delivery_rejected", status_code=status, body=response.text[:500])

        error_cls = TransientUpstreamError if status in self._retryable else FatalUpstreamError
        raise error_cls(SERVICE, f"SendGrid returned {status}", status_code=status)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()
