"""Reply generation via the Anthropic Messages API.

Translates SDK exceptions into the upstream error taxonomy so the shared
``RetryExecutor`` can classify them:

- ``APITimeoutError``    -> ``TransientUpstreamError`` (``timed_out=True``)
- ``APIConnectionError`` -> ``TransientUpstreamError``
- ``APIStatusError``     -> transient or fatal depending on the status code
"""

from __future__ import annotations

import time

import anthropic
import structlog
from anthropic import Anthropic

from responder.domain.errors import FatalUpstreamError, TransientUpstreamError, UpstreamError
from responder.email.models import IncomingEmail
from responder.identity.models import ResolvedIdentity
from responder.llm.client import DEFAULT_MAX_TOKENS, DEFAULT_MODEL
from responder.llm.models import GeneratedReply
from responder.llm.prompts import LANGUAGE_INSTRUCTION, REPLY_SYSTEM_PROMPT, REPLY_USER_PROMPT
from responder.resilience.retry import DEFAULT_RETRYABLE_STATUS_CODES, RetryExecutor

logger = structlog.get_logger()

SERVICE = "completion"


def build_system_prompt(identity: ResolvedIdentity | None = None) -> str:
    """Return the system prompt, with a language instruction when the identity has one."""
    if identity is not None and identity.settings.preferred_language:
        return REPLY_SYSTEM_PROMPT + LANGUAGE_INSTRUCTION.format(
            language=identity.settings.preferred_language
        )
    return REPLY_SYSTEM_PROMPT


def build_user_prompt(email: IncomingEmail) -> str:
    """Return the user message carrying sender, subject and cleaned body."""
    return REPLY_USER_PROMPT.format(
        from_address=email.from_address,
        subject=email.subject or "(no subject)",
        body=email.body,
    )


class ReplyGenerator:
    """Produce reply text for an inbound email.

    Args:
        client: Configured Anthropic client (SDK retries disabled).
        retry: Shared executor wrapping each completion call.
        model: Model ID to use.
        max_tokens: Output token cap per reply.
        retryable_status_codes: API statuses translated to transient errors.
    """

    def __init__(
        self,
        client: Anthropic,
        retry: RetryExecutor,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES,
    ) -> None:
        self._client = client
        self._retry = retry
        self._model = model
        self._max_tokens = max_tokens
        self._retryable = retryable_status_codes

    def generate(
        self,
        email: IncomingEmail,
        identity: ResolvedIdentity | None = None,
    ) -> GeneratedReply:
        """Generate a reply to *email*.

        Args:
            email: The parsed inbound email.
            identity: The resolved sender identity, used for preferences.

        Returns:
            The generated reply with model and token usage.

        Raises:
            UpstreamError: When the completion service fails (after retries
                for transient failures).
        """
        system_prompt = build_system_prompt(identity)
        user_prompt = build_user_prompt(email)

        logger.info(
            "completion_requested",
            model=self._model,
            input_length=len(user_prompt),
        )
        started = time.monotonic()
        reply = self._retry.run(
            lambda: self._complete(system_prompt, user_prompt),
            api_name="anthropic",
        )
        completion_ms = int((time.monotonic() - started) * 1000)

        logger.info(
            "completion_received",
            model=reply.model,
            input_tokens=reply.input_tokens,
            output_tokens=reply.output_tokens,
            completion_ms=completion_ms,
            response_length=len(reply.text),
        )
        return reply.model_copy(update={"completion_ms": completion_ms})

    def _complete(self, system_prompt: str, user_prompt: str) -> GeneratedReply:
        """Make exactly one completion call."""
        try:
            response = self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APITimeoutError as exc:
            raise TransientUpstreamError(
                SERVICE, "Completion request timed out", timed_out=True
            ) from exc
        except anthropic.APIConnectionError as exc:
            raise TransientUpstreamError(SERVICE, f"Completion connection failed: {exc}") from exc
        except anthropic.APIStatusError as exc:
            raise self._status_error(exc) from exc
        except anthropic.APIError as exc:
            logger.error("completion_api_error", error=str(exc))
            raise FatalUpstreamError(SERVICE, f"Completion failed: {exc}") from exc

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        ).strip()
        if not text:
            raise FatalUpstreamError(SERVICE, "Completion returned no text")

        return GeneratedReply(
            text=text,
            model=response.model or self._model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )

    def _status_error(self, exc: anthropic.APIStatusError) -> UpstreamError:
        status = exc.status_code
        if status in (401, 403):
            logger.critical("completion_auth_error", status_code=status)
        elif status == 429:
            logger.warning("completion_rate_limited", status_code=status)
        else:
            logger.error("completion_api_error", status_code=status, error=str(exc))

        error_cls = TransientUpstreamError if status in self._retryable else FatalUpstreamError
        return error_cls(SERVICE, f"Completion API returned {status}", status_code=status)
