"""Shared dedupe stores with atomic record-if-absent semantics.

Both backends answer one question atomically: "was *key* already recorded
within the last *window* seconds?  If not, record it now."  Exactly one of
any number of concurrent callers for the same key gets ``True``.
"""

from __future__ import annotations

import sqlite3
import threading
from typing import Protocol

import redis
import structlog

logger = structlog.get_logger()

DEFAULT_REDIS_PREFIX = "responder:dedupe"


class DedupeStore(Protocol):
    """Atomic insert-if-absent-or-expired keyed by message ID."""

    def record_if_absent(self, key: str, now: float, window_seconds: int) -> bool: ...


def init_dedupe_table(conn: sqlite3.Connection) -> None:
    """Create the dedupe_entries table if it does not already exist.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS dedupe_entries (
            message_id TEXT PRIMARY KEY,
            first_seen REAL NOT NULL
        )
    """)

    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_dedupe_first_seen ON dedupe_entries (first_seen)"
    )

    conn.commit()


class SqliteDedupeStore:
    """Dedupe entries as rows keyed by message ID with a first-seen time.

    An existing row only blocks a new request while it is younger than the
    window; an expired row is overwritten in the same statement, so there is
    no separate read-then-write race.
    """

    def __init__(self, conn: sqlite3.Connection, lock: threading.Lock | None = None) -> None:
        self._conn = conn
        self._lock = lock or threading.Lock()

    def record_if_absent(self, key: str, now: float, window_seconds: int) -> bool:
        """Record *key* at *now* unless a live entry exists.

        Returns:
            True if this call recorded the key (the caller should proceed).
        """
        with self._lock:
            cursor = self._conn.execute(
                """
                INSERT INTO dedupe_entries (message_id, first_seen) VALUES (?, ?)
                ON CONFLICT(message_id) DO UPDATE SET first_seen = excluded.first_seen
                WHERE dedupe_entries.first_seen <= ?
                """,
                (key, now, now - window_seconds),
            )
            self._conn.commit()
            return cursor.rowcount == 1

    def purge_expired(self, now: float, window_seconds: int) -> int:
        """Delete entries older than the window.

        Returns:
            The number of rows removed.
        """
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM dedupe_entries WHERE first_seen <= ?",
                (now - window_seconds,),
            )
            self._conn.commit()
        removed = cursor.rowcount
        if removed:
            logger.info("dedupe_entries_purged", removed=removed)
        return removed


class RedisDedupeStore:
    """Dedupe entries as Redis keys written with ``SET NX EX``.

    Redis expires the keys itself, so there is nothing to purge.
    """

    def __init__(self, client: redis.Redis, prefix: str = DEFAULT_REDIS_PREFIX) -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = DEFAULT_REDIS_PREFIX) -> RedisDedupeStore:
        """Connect to Redis at *url* and verify the connection with PING."""
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        client.ping()
        logger.info("dedupe_store_connected", backend="redis")
        return cls(client, prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def record_if_absent(self, key: str, now: float, window_seconds: int) -> bool:
        """Record *key* unless it is already present.

        Returns:
            True if this call set the key (the caller should proceed).
        """
        result = self._client.set(
            self._key(key),
            str(now),
            nx=True,
            ex=max(1, int(window_seconds)),
        )
        return bool(result)

    def ping(self) -> bool:
        """Return True if Redis answers PING."""
        return bool(self._client.ping())
