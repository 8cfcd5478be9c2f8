"""Tests for StageTimer."""

from __future__ import annotations

import pytest

from responder.pipeline.timing import StageTimer


class _FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestStageTimer:
    """Durations are recorded per stage in milliseconds."""

    def test_records_stage(self) -> None:
        clock = _FakeClock()
        timer = StageTimer(clock=clock)

        with timer.stage("parse"):
            clock.now += 0.25

        assert timer.durations == {"parse": 250}

    def test_records_on_exception(self) -> None:
        clock = _FakeClock()
        timer = StageTimer(clock=clock)

        with pytest.raises(RuntimeError), timer.stage("completion"):
            clock.now += 1.5
            raise RuntimeError("upstream down")

        assert timer.durations == {"completion": 1500}

    def test_repeated_stage_accumulates(self) -> None:
        clock = _FakeClock()
        timer = StageTimer(clock=clock)

        for _ in range(2):
            with timer.stage("delivery"):
                clock.now += 0.125

        assert timer.durations == {"delivery": 250}

    def test_finish_adds_total(self) -> None:
        clock = _FakeClock()
        timer = StageTimer(clock=clock)

        with timer.stage("parse"):
            clock.now += 0.5
        clock.now += 30.0

        result = timer.finish()

        assert result["parse"] == 500
        assert result["total"] == 30_500

    def test_durations_is_a_copy(self) -> None:
        timer = StageTimer(clock=_FakeClock())
        timer.durations["parse"] = 1
        assert timer.durations == {}
