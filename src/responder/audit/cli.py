"""Command-line query tool for the email log.

Filters by Message-ID, identity, address or event type, with a
``--last`` shorthand for recent entries. Output is a table (default) or JSON.

Usage::

    inbox-responder-audit --message-id "<abc@mail.example.com>"
    inbox-responder-audit --event-type fallback_sent --last 24h --format json
"""

from __future__ import annotations

import argparse
import json
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from responder.audit.models import EventType
from responder.audit.store import query_audit_trail
from responder.config import get_settings
from responder.storage import open_database


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for email log queries."""
    parser = argparse.ArgumentParser(description="Query the inbox responder email log")

    parser.add_argument("--message-id", type=str, help="Filter by inbound Message-ID")
    parser.add_argument("--identity", type=str, dest="identity_id", help="Filter by identity ID")
    parser.add_argument(
        "--address",
        type=str,
        help="Filter by sender or recipient address (case-insensitive)",
    )
    parser.add_argument(
        "--event-type",
        type=str,
        choices=[event.value for event in EventType],
        help="Filter by event type",
    )
    parser.add_argument(
        "--last",
        type=str,
        help='Only entries newer than a duration (e.g. "30m", "24h", "7d")',
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["table", "json"],
        default="table",
        dest="output_format",
        help="Output format (default: table)",
    )
    parser.add_argument("--limit", type=int, default=50, help="Maximum results (default: 50)")
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Path to the responder database (default: DATABASE_PATH setting)",
    )
    return parser


def parse_last_duration(last: str, now: datetime | None = None) -> str:
    """Convert ``Nm``, ``Nh`` or ``Nd`` into the email log's timestamp format.

    Raises:
        ValueError: If the duration is not recognized.
    """
    units = {"m": "minutes", "h": "hours", "d": "days"}
    unit = last[-1:] if last else ""
    if unit not in units or not last[:-1].isdigit():
        msg = f"Unrecognized duration format: {last!r}. Use m, h or d, e.g. '24h'."
        raise ValueError(msg)

    current = now or datetime.now(tz=UTC)
    since = current - timedelta(**{units[unit]: int(last[:-1])})
    return since.strftime("%Y-%m-%dT%H:%M:%SZ")


def format_table(results: list[dict[str, Any]]) -> str:
    """Format email log rows as a fixed-width table."""
    if not results:
        return "No results found."

    headers = ["Timestamp", "Event", "Message-ID", "From", "To", "Direction"]
    keys = ["timestamp", "event_type", "message_id", "from_address", "to_address", "direction"]
    widths = [20, 18, 32, 26, 26, 9]

    def truncate(value: object, width: int) -> str:
        s = str(value or "")
        return s[: width - 3] + "..." if len(s) > width else s

    header_line = "  ".join(h.ljust(w) for h, w in zip(headers, widths, strict=True))
    lines = [header_line, "-" * len(header_line)]
    for row in results:
        cells = [truncate(row.get(k), w) for k, w in zip(keys, widths, strict=True)]
        lines.append("  ".join(c.ljust(w) for c, w in zip(cells, widths, strict=True)))
    return "\n".join(lines)


def format_json(results: list[dict[str, Any]]) -> str:
    return json.dumps(results, indent=2)


def main(argv: Sequence[str] | None = None) -> None:
    """Parse arguments, query the email log, and print results."""
    parser = build_parser()
    args = parser.parse_args(argv)

    since = None
    if args.last:
        try:
            since = parse_last_duration(args.last)
        except ValueError as exc:
            parser.error(str(exc))

    db_path = args.db or get_settings().database_path
    conn = open_database(db_path)
    try:
        results = query_audit_trail(
            conn,
            message_id=args.message_id,
            identity_id=args.identity_id,
            event_type=args.event_type,
            address=args.address,
            since=since,
            limit=args.limit,
        )
        output = format_json(results) if args.output_format == "json" else format_table(results)
        print(output)
    finally:
        conn.close()


if __name__ == "__main__":
    main()
