"""Message-ID deduplication over a shared store."""

from responder.dedupe.guard import DEFAULT_WINDOW_SECONDS, IdempotencyGuard
from responder.dedupe.store import (
    DedupeStore,
    RedisDedupeStore,
    SqliteDedupeStore,
    init_dedupe_table,
)

__all__ = [
    "DEFAULT_WINDOW_SECONDS",
    "DedupeStore",
    "IdempotencyGuard",
    "RedisDedupeStore",
    "SqliteDedupeStore",
    "init_dedupe_table",
]
