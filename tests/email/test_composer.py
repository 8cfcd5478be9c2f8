"""Tests for reply subject formatting, reply composition and fallback notices."""

from __future__ import annotations

import pytest

from responder.domain.errors import FatalUpstreamError, TransientUpstreamError
from responder.domain.types import FallbackReason
from responder.email.composer import (
    compose_fallback_notice,
    compose_reply,
    fallback_reason_for,
    format_reply_subject,
)
from responder.email.models import IncomingEmail


class TestFormatReplySubject:
    """format_reply_subject never double-prefixes."""

    def test_adds_prefix(self) -> None:
        assert format_reply_subject("Hi") == "Re: Hi"

    @pytest.mark.parametrize("subject", ["Re: Hi", "RE: Hi", "re:Hi", "rE: Hi"])
    def test_existing_prefix_kept(self, subject: str) -> None:
        assert format_reply_subject(subject) == subject

    def test_empty_subject(self) -> None:
        assert format_reply_subject("") == "Re: "

    def test_prefix_only_once_when_reapplied(self) -> None:
        once = format_reply_subject("Weekly plan")
        assert format_reply_subject(once) == once


class TestComposeReply:
    """compose_reply threads the reply onto the incoming email."""

    def test_envelope(self, sample_email: IncomingEmail) -> None:
        reply = compose_reply(sample_email, "It is 9pm.\n")

        assert reply.from_address == "assistant@responder.test"
        assert reply.to_address == "alice@example.com"
        assert reply.subject == "Re: Hi"
        assert reply.body == "It is 9pm."
        assert reply.in_reply_to == "<m1@x.com>"
        assert reply.references == ("<m1@x.com>",)
        assert reply.is_fallback is False

    def test_extends_existing_references(self, sample_email: IncomingEmail) -> None:
        incoming = sample_email.model_copy(
            update={"message_id": "m3@x.com", "references": ("<m1@x.com>", "m2@x.com")}
        )
        reply = compose_reply(incoming, "ok")

        assert reply.in_reply_to == "<m3@x.com>"
        assert reply.references == ("<m1@x.com>", "<m2@x.com>", "<m3@x.com>")


class TestFallbackNotice:
    """compose_fallback_notice and fallback_reason_for."""

    def test_notice_is_threaded(self, sample_email: IncomingEmail) -> None:
        notice = compose_fallback_notice(sample_email, FallbackReason.GENERIC)

        assert notice.is_fallback is True
        assert notice.subject == "Re: Hi"
        assert notice.in_reply_to == "<m1@x.com>"
        assert notice.to_address == "alice@example.com"
        assert "technical issue" in notice.body

    def test_rate_limit_wording(self, sample_email: IncomingEmail) -> None:
        notice = compose_fallback_notice(sample_email, FallbackReason.RATE_LIMITED)
        assert "high demand" in notice.body

    def test_timeout_wording(self, sample_email: IncomingEmail) -> None:
        notice = compose_fallback_notice(sample_email, FallbackReason.TIMEOUT)
        assert "longer than usual" in notice.body

    def test_reason_from_rate_limit(self) -> None:
        exc = FatalUpstreamError("completion", "exhausted", status_code=429)
        assert fallback_reason_for(exc) is FallbackReason.RATE_LIMITED

    def test_reason_from_timeout(self) -> None:
        exc = TransientUpstreamError("completion", "timed out", timed_out=True)
        assert fallback_reason_for(exc) is FallbackReason.TIMEOUT

    def test_reason_generic(self) -> None:
        assert fallback_reason_for(RuntimeError("boom")) is FallbackReason.GENERIC
        exc = FatalUpstreamError("delivery", "bad request", status_code=400)
        assert fallback_reason_for(exc) is FallbackReason.GENERIC
