"""Per-stage wall-clock timing for a single webhook request."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

import structlog

logger = structlog.get_logger()

# Warn when a stage takes longer than this (milliseconds).
STAGE_THRESHOLDS_MS: dict[str, int] = {
    "parse": 2_000,
    "completion": 20_000,
    "delivery": 5_000,
}
TOTAL_THRESHOLD_MS = 25_000


class StageTimer:
    """Measure named pipeline stages and flag slow ones.

    Usage::

        timer = StageTimer()
        with timer.stage("parse"):
            email = parse_incoming_email(fields)
        timer.durations   # {"parse": 3}
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._started = clock()
        self._durations: dict[str, int] = {}

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """Time the enclosed block as stage *name*.

        The duration is recorded even when the block raises.
        """
        start = self._clock()
        try:
            yield
        finally:
            elapsed_ms = int((self._clock() - start) * 1000)
            self._durations[name] = self._durations.get(name, 0) + elapsed_ms
            threshold = STAGE_THRESHOLDS_MS.get(name)
            if threshold is not None and elapsed_ms > threshold:
                logger.warning(
                    "slow_operation",
                    stage=name,
                    duration_ms=elapsed_ms,
                    threshold_ms=threshold,
                )

    @property
    def durations(self) -> dict[str, int]:
        return dict(self._durations)

    @property
    def total_ms(self) -> int:
        return int((self._clock() - self._started) * 1000)

    def finish(self) -> dict[str, int]:
        """Return all stage durations plus ``total``, warning if the request was slow."""
        total = self.total_ms
        if total > TOTAL_THRESHOLD_MS:
            logger.warning("slow_processing", total_ms=total, threshold_ms=TOTAL_THRESHOLD_MS)
        return {**self._durations, "total": total}
