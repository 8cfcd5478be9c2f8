"""SQLite schema for sender identities."""

from __future__ import annotations

import sqlite3


def init_identity_table(conn: sqlite3.Connection) -> None:
    """Create the identities table if it does not already exist.

    The UNIQUE constraint on ``primary_address`` (case-insensitive) is what
    lets two concurrent first contacts from the same sender converge on a
    single row.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS identities (
            identity_id TEXT PRIMARY KEY,
            primary_address TEXT NOT NULL UNIQUE COLLATE NOCASE,
            settings_json TEXT NOT NULL DEFAULT '{}',
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
        )
    """)

    conn.commit()
