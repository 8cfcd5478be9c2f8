"""SQLite-backed identity store.

Accepts a sqlite3.Connection, uses parameterized queries exclusively, and
commits synchronously after writes.  A lock serializes access because the
connection is shared across pipeline worker threads.
"""

from __future__ import annotations

import sqlite3
import threading
import uuid
from datetime import UTC, datetime
from typing import Protocol

from responder.identity.models import Identity, IdentitySettings

_COLUMNS = "identity_id, primary_address, settings_json, created_at"


class IdentityStore(Protocol):
    """Lookup and create-if-absent operations the resolver relies on."""

    def get_by_id(self, identity_id: str) -> Identity | None: ...

    def get_by_address(self, address: str) -> Identity | None: ...

    def create_if_absent(self, address: str) -> tuple[Identity, bool]: ...


def _row_to_identity(row: tuple[str, str, str, str]) -> Identity:
    identity_id, primary_address, settings_json, created_at = row
    return Identity(
        identity_id=identity_id,
        primary_address=primary_address,
        settings=IdentitySettings.model_validate_json(settings_json or "{}"),
        created_at=datetime.strptime(created_at, "%Y-%m-%dT%H:%M:%SZ").replace(tzinfo=UTC),
    )


class SqliteIdentityStore:
    """Persist and look up sender identities in SQLite."""

    def __init__(self, conn: sqlite3.Connection, lock: threading.Lock | None = None) -> None:
        """Initialize with an open database connection.

        Args:
            conn: An open sqlite3.Connection whose database already has the
                  ``identities`` table (see ``init_identity_table``).
            lock: Lock shared with other users of *conn*; a private one is
                  created when omitted.
        """
        self._conn = conn
        self._lock = lock or threading.Lock()

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get_by_id(self, identity_id: str) -> Identity | None:
        """Return the identity with *identity_id*, or None."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM identities WHERE identity_id = ?",
                (identity_id.lower(),),
            ).fetchone()
        return _row_to_identity(row) if row else None

    def get_by_address(self, address: str) -> Identity | None:
        """Return the identity whose primary address matches (case-insensitive)."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM identities WHERE primary_address = ?",
                (address.strip().lower(),),
            ).fetchone()
        return _row_to_identity(row) if row else None

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def create_if_absent(self, address: str) -> tuple[Identity, bool]:
        """Create an identity for *address* unless one already exists.

        Inserts with ``ON CONFLICT DO NOTHING`` and then selects, so a caller
        that loses a race against a concurrent insert receives the winner's
        row.

        Args:
            address: The sender's address.

        Returns:
            A tuple of the stored identity and whether this call created it.
        """
        normalized = address.strip().lower()
        now = datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
        with self._lock:
            cursor = self._conn.execute(
                """
                INSERT INTO identities (identity_id, primary_address, settings_json, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(primary_address) DO NOTHING
                """,
                (str(uuid.uuid4()), normalized, IdentitySettings().model_dump_json(), now),
            )
            self._conn.commit()
            created = cursor.rowcount == 1
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM identities WHERE primary_address = ?",
                (normalized,),
            ).fetchone()
        return _row_to_identity(row), created

    def update_settings(self, identity_id: str, settings: IdentitySettings) -> None:
        """Replace the stored settings of an identity.

        Args:
            identity_id: The identity to update.
            settings: The new settings document.
        """
        with self._lock:
            self._conn.execute(
                "UPDATE identities SET settings_json = ? WHERE identity_id = ?",
                (settings.model_dump_json(), identity_id),
            )
            self._conn.commit()
