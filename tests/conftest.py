"""Shared pytest fixtures for the inbox responder test suite."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterator
from datetime import UTC, datetime

import pytest

from responder.email.models import IncomingEmail
from responder.identity.models import ResolvedIdentity
from responder.resilience.retry import RetryExecutor, RetryPolicy
from responder.storage import open_database


@pytest.fixture
def db_conn() -> Iterator[sqlite3.Connection]:
    """An in-memory database with every responder table created."""
    conn = open_database(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def sample_email() -> IncomingEmail:
    """A representative parsed inbound email."""
    return IncomingEmail(
        from_address="alice@example.com",
        to_address="assistant@responder.test",
        subject="Hi",
        body="What time is it in Tokyo?",
        message_id="<m1@x.com>",
        received_at=datetime(2026, 1, 15, 12, 0, tzinfo=UTC),
    )


@pytest.fixture
def sample_identity() -> ResolvedIdentity:
    """A representative existing sender identity."""
    return ResolvedIdentity(
        identity_id="8c1f5a7e-2b1d-4e55-9a53-0d7f6e4b2c11",
        primary_address="alice@example.com",
    )


@pytest.fixture
def sleeps() -> list[float]:
    """Records the delays a RetryExecutor would have slept."""
    return []


@pytest.fixture
def retry_executor(sleeps: list[float]) -> RetryExecutor:
    """A three-attempt executor that records waits instead of sleeping."""
    recorder: Callable[[float], None] = sleeps.append
    return RetryExecutor(
        RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=30.0),
        sleep=recorder,
    )
