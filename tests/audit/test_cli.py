"""Tests for the email log query CLI."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from responder.audit.cli import build_parser, format_table, main, parse_last_duration
from responder.audit.models import AuditEntry, EventType
from responder.audit.store import insert_audit_entry
from responder.storage import open_database


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """A database file holding a received email and its reply."""
    path = tmp_path / "responder.db"
    conn = open_database(path)
    insert_audit_entry(
        conn,
        AuditEntry(
            event_type=EventType.EMAIL_RECEIVED,
            message_id="<m1@x.com>",
            direction="inbound",
            from_address="alice@example.com",
            to_address="assistant@responder.test",
        ),
    )
    insert_audit_entry(
        conn,
        AuditEntry(
            event_type=EventType.REPLY_SENT,
            message_id="<m1@x.com>",
            direction="outbound",
            from_address="assistant@responder.test",
            to_address="alice@example.com",
        ),
    )
    insert_audit_entry(
        conn,
        AuditEntry(
            event_type=EventType.EMAIL_RECEIVED,
            message_id="<m2@x.com>",
            direction="inbound",
            from_address="bob@example.com",
            to_address="assistant@responder.test",
        ),
    )
    conn.close()
    return path


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


class TestBuildParser:
    """build_parser defaults and choices."""

    def test_defaults(self) -> None:
        args = build_parser().parse_args([])
        assert args.output_format == "table"
        assert args.limit == 50
        assert args.db is None
        assert args.event_type is None

    def test_event_type_choices_follow_enum(self) -> None:
        args = build_parser().parse_args(["--event-type", "fallback_sent"])
        assert args.event_type == "fallback_sent"

        with pytest.raises(SystemExit):
            build_parser().parse_args(["--event-type", "state_transition"])


class TestParseLastDuration:
    """parse_last_duration converts shorthand durations."""

    NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)

    @pytest.mark.parametrize(
        ("last", "expected"),
        [
            ("30m", "2026-03-10T11:30:00Z"),
            ("24h", "2026-03-09T12:00:00Z"),
            ("7d", "2026-03-03T12:00:00Z"),
        ],
    )
    def test_units(self, last: str, expected: str) -> None:
        assert parse_last_duration(last, now=self.NOW) == expected

    @pytest.mark.parametrize("last", ["", "d", "7w", "x7d", "-1h"])
    def test_rejects_unknown_formats(self, last: str) -> None:
        with pytest.raises(ValueError, match="Unrecognized duration"):
            parse_last_duration(last, now=self.NOW)


class TestFormatTable:
    """format_table output."""

    def test_empty(self) -> None:
        assert format_table([]) == "No results found."

    def test_long_values_truncated(self) -> None:
        row = {"event_type": "email_received", "message_id": "<" + "a" * 60 + "@x.com>"}
        output = format_table([row])
        assert output.splitlines()[0].startswith("Timestamp")
        assert "..." in output.splitlines()[2]


# ---------------------------------------------------------------------------
# main
# ---------------------------------------------------------------------------


class TestMain:
    """main queries the database and prints results."""

    def test_json_filtered_by_message_id(
        self, db_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        main(["--db", str(db_path), "--message-id", "<m1@x.com>", "--format", "json"])

        rows = json.loads(capsys.readouterr().out)
        assert [row["event_type"] for row in rows] == ["reply_sent", "email_received"]

    def test_address_filter(self, db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--db", str(db_path), "--address", "BOB@example.com", "--format", "json"])

        rows = json.loads(capsys.readouterr().out)
        assert [row["message_id"] for row in rows] == ["<m2@x.com>"]

    def test_table_output(self, db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--db", str(db_path), "--event-type", "reply_sent", "--last", "1h"])

        out = capsys.readouterr().out
        assert "reply_sent" in out
        assert "email_received" not in out

    def test_no_results(self, db_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--db", str(db_path), "--message-id", "<missing@x.com>"])
        assert capsys.readouterr().out.strip() == "No results found."

    def test_bad_duration_exits(self, db_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--db", str(db_path), "--last", "soon"])
        assert exc_info.value.code == 2
