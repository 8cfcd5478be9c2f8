"""Idempotency guard keyed by Message-ID.

Webhook providers redeliver on timeouts and 5xx, so the same email can
arrive more than once.  The guard records each Message-ID in a shared store
before any side effect runs; only the first delivery inside the window
proceeds.
"""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from responder.dedupe.store import DedupeStore
from responder.domain.types import DedupeDecision

logger = structlog.get_logger()

DEFAULT_WINDOW_SECONDS = 600


class IdempotencyGuard:
    """Decide whether a message should be processed.

    Args:
        store: The shared dedupe store.
        window_seconds: How long a recorded Message-ID blocks redeliveries.
        clock: Returns the current Unix time; injectable for tests.
    """

    def __init__(
        self,
        store: DedupeStore,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._window = window_seconds
        self._clock = clock

    @property
    def window_seconds(self) -> int:
        return self._window

    def check(self, message_id: str) -> DedupeDecision:
        """Record *message_id* and report whether this request should proceed.

        On ``PROCEED`` the ID is already durably recorded, so a concurrent
        or later redelivery inside the window sees ``ALREADY_PROCESSED``.
        Store errors propagate.
        """
        if self._store.record_if_absent(message_id, self._clock(), self._window):
            return DedupeDecision.PROCEED

        logger.info("duplicate_message", message_id=message_id, window_seconds=self._window)
        return DedupeDecision.ALREADY_PROCESSED
