"""SQLite-backed email log with indexed queries.

Provides functions to create the table, insert entries, and query the log
with flexible filtering.  Uses parameterized queries exclusively.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from typing import Any

from responder.audit.models import AuditEntry


def init_audit_table(conn: sqlite3.Connection) -> None:
    """Create the email_log table and its indexes if they do not exist.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS email_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            event_type TEXT NOT NULL,
            message_id TEXT,
            identity_id TEXT,
            direction TEXT,
            from_address TEXT,
            to_address TEXT,
            subject TEXT,
            body TEXT,
            model TEXT,
            input_tokens INTEGER,
            output_tokens INTEGER,
            metadata TEXT
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_email_log_message ON email_log (message_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_email_log_identity ON email_log (identity_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_email_log_timestamp ON email_log (timestamp)")

    conn.commit()


def insert_audit_entry(conn: sqlite3.Connection, entry: AuditEntry) -> int:
    """Insert an email log entry.

    Args:
        conn: An open database connection.
        entry: The entry to insert.

    Returns:
        The row ID of the inserted entry.
    """
    metadata_json: str | None = None
    if entry.metadata is not None:
        metadata_json = json.dumps(entry.metadata)

    timestamp = datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")

    cursor = conn.execute(
        """
        INSERT INTO email_log (
            timestamp, event_type, message_id, identity_id, direction,
            from_address, to_address, subject, body, model,
            input_tokens, output_tokens, metadata
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            timestamp,
            entry.event_type.value,
            entry.message_id,
            entry.identity_id,
            entry.direction,
            entry.from_address,
            entry.to_address,
            entry.subject,
            entry.body,
            entry.model,
            entry.input_tokens,
            entry.output_tokens,
            metadata_json,
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0


def query_audit_trail(
    conn: sqlite3.Connection,
    *,
    message_id: str | None = None,
    identity_id: str | None = None,
    event_type: str | None = None,
    address: str | None = None,
    since: str | None = None,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """Query the email log with optional filters, newest first.

    Args:
        conn: An open database connection.
        message_id: Filter by Message-ID (exact match).
        identity_id: Filter by identity (exact match).
        event_type: Filter by event type (exact match).
        address: Filter by sender or recipient address (case-insensitive).
        since: Only entries at or after this ``YYYY-MM-DDTHH:MM:SSZ`` timestamp.
        limit: Maximum number of results to return.

    Returns:
        A list of dicts, one per matching entry.
    """
    conditions: list[str] = []
    params: list[str | int] = []

    if message_id is not None:
        conditions.append("message_id = ?")
        params.append(message_id)

    if identity_id is not None:
        conditions.append("identity_id = ?")
        params.append(identity_id)

    if event_type is not None:
        conditions.append("event_type = ?")
        params.append(event_type)

    if address is not None:
        conditions.append("(lower(from_address) = ? OR lower(to_address) = ?)")
        normalized = address.strip().lower()
        params.extend([normalized, normalized])

    if since is not None:
        conditions.append("timestamp >= ?")
        params.append(since)

    where_clause = ""
    if conditions:
        where_clause = "WHERE " + " AND ".join(conditions)

    params.append(limit)

    # Row factory on the cursor only; the connection is shared.
    cursor = conn.cursor()
    cursor.row_factory = sqlite3.Row
    rows = cursor.execute(
        f"SELECT * FROM email_log {where_clause} ORDER BY id DESC LIMIT ?",
        params,
    ).fetchall()

    results: list[dict[str, Any]] = []
    for row in rows:
        row_dict = dict(row)
        if row_dict.get("metadata") is not None:
            row_dict["metadata"] = json.loads(row_dict["metadata"])
        results.append(row_dict)

    return results
