"""Command-line tool to inspect and edit sender identity settings.

``preferred_language`` set here is picked up by the reply prompt on the
sender's next email.

Usage::

    inbox-responder-identity show alice@example.com
    inbox-responder-identity set alice@example.com --language Japanese
    inbox-responder-identity set alice@example.com --clear-language
"""

from __future__ import annotations

import argparse
import json
from collections.abc import Sequence

from responder.config import get_settings
from responder.identity.models import Identity
from responder.identity.store import SqliteIdentityStore
from responder.storage import open_database


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with ``show`` and ``set`` subcommands."""
    parser = argparse.ArgumentParser(description="Manage inbox responder sender identities")
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Path to the responder database (default: DATABASE_PATH setting)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    show = commands.add_parser("show", help="Print an identity as JSON")
    show.add_argument("address", help="Sender address")

    update = commands.add_parser("set", help="Update settings, creating the identity if needed")
    update.add_argument("address", help="Sender address")
    language = update.add_mutually_exclusive_group()
    language.add_argument("--language", type=str, help="Preferred reply language")
    language.add_argument("--clear-language", action="store_true")
    name = update.add_mutually_exclusive_group()
    name.add_argument("--display-name", type=str, help="Name used to address the sender")
    name.add_argument("--clear-display-name", action="store_true")

    return parser


def apply_settings(store: SqliteIdentityStore, args: argparse.Namespace) -> Identity:
    """Apply the ``set`` arguments to the stored identity and return it."""
    identity, _ = store.create_if_absent(args.address)

    changes: dict[str, str | None] = {}
    if args.language is not None:
        changes["preferred_language"] = args.language.strip() or None
    elif args.clear_language:
        changes["preferred_language"] = None
    if args.display_name is not None:
        changes["display_name"] = args.display_name.strip() or None
    elif args.clear_display_name:
        changes["display_name"] = None

    if changes:
        store.update_settings(identity.identity_id, identity.settings.model_copy(update=changes))

    updated = store.get_by_id(identity.identity_id)
    if updated is None:
        msg = f"Identity {identity.identity_id} disappeared during update"
        raise RuntimeError(msg)
    return updated


def format_identity(identity: Identity) -> str:
    return json.dumps(identity.model_dump(mode="json"), indent=2)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the identity tool; returns the process exit code."""
    args = build_parser().parse_args(argv)

    conn = open_database(args.db or get_settings().database_path)
    try:
        store = SqliteIdentityStore(conn)
        if args.command == "show":
            identity = store.get_by_address(args.address)
            if identity is None:
                print(f"No identity for {args.address}")
                return 1
        else:
            identity = apply_settings(store, args)
        print(format_identity(identity))
        return 0
    finally:
        conn.close()


if __name__ == "__main__":
    raise SystemExit(main())
