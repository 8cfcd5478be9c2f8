"""SQLite connection setup shared by the identity, dedupe and audit stores.

Creates every table the responder needs on one WAL-mode connection.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from responder.audit.store import init_audit_table
from responder.dedupe.store import init_dedupe_table
from responder.identity.schema import init_identity_table


def open_database(db_path: Path | str) -> sqlite3.Connection:
    """Open (creating if needed) the responder database with all tables.

    The connection is shared by the worker threads that run the pipeline,
    so ``check_same_thread`` is disabled; each store serializes its own
    writes.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.

    Returns:
        An open sqlite3.Connection with WAL mode enabled.
    """
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")

    init_identity_table(conn)
    init_dedupe_table(conn)
    init_audit_table(conn)
    return conn
