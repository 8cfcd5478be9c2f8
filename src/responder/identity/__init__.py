"""Sender identities: models, SQLite persistence, and address resolution."""

from responder.identity.models import Identity, IdentitySettings, ResolvedIdentity
from responder.identity.resolver import AddressResolver, extract_identity_id
from responder.identity.schema import init_identity_table
from responder.identity.store import IdentityStore, SqliteIdentityStore

__all__ = [
    "AddressResolver",
    "Identity",
    "IdentitySettings",
    "IdentityStore",
    "ResolvedIdentity",
    "SqliteIdentityStore",
    "extract_identity_id",
    "init_identity_table",
]
