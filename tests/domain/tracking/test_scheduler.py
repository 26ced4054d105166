from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import TYPE_CHECKING, cast

import pytest

from efiling.domain.tracking import SweepResult, SweepScheduler

if TYPE_CHECKING:
    from efiling.domain.tracking import StatusSweep


class _CountingSweep:
    def __init__(self, *, fail: bool = False) -> None:
        self.runs = 0
        self.fail = fail
        self.ran = threading.Event()

    def run_once(self) -> SweepResult:
        self.runs += 1
        self.ran.set()
        if self.fail:
            raise RuntimeError("database unavailable")
        return SweepResult(examined=self.runs)


def _scheduler(sweep: _CountingSweep, interval: timedelta = timedelta(hours=1)) -> SweepScheduler:
    return SweepScheduler(cast("StatusSweep", sweep), interval=interval)


def test_tick_keeps_the_last_result() -> None:
    scheduler = _scheduler(_CountingSweep())

    scheduler.tick()
    result = scheduler.tick()

    assert result is not None
    assert result.examined == 2
    assert scheduler.last_result is result


def test_failing_sweep_is_logged_and_survives(caplog: pytest.LogCaptureFixture) -> None:
    sweep = _CountingSweep(fail=True)
    scheduler = _scheduler(sweep)

    with caplog.at_level(logging.ERROR):
        assert scheduler.tick() is None
        assert scheduler.tick() is None

    assert sweep.runs == 2
    assert scheduler.last_result is None
    assert "Status sweep failed" in caplog.text


def test_background_thread_runs_until_stopped() -> None:
    sweep = _CountingSweep()
    scheduler = _scheduler(sweep)

    scheduler.start()
    try:
        assert sweep.ran.wait(5)
        assert scheduler.running
        with pytest.raises(RuntimeError, match="already running"):
            scheduler.start()
    finally:
        scheduler.stop(timeout=5)

    assert not scheduler.running
    assert sweep.runs == 1


def test_run_forever_returns_once_stopped_from_another_thread() -> None:
    sweep = _CountingSweep()
    scheduler = _scheduler(sweep, interval=timedelta(milliseconds=10))

    def stop_after_first_run() -> None:
        sweep.ran.wait(5)
        scheduler.stop()

    stopper = threading.Thread(target=stop_after_first_run)
    stopper.start()
    scheduler.run_forever()
    stopper.join(5)

    assert sweep.runs >= 1


@pytest.mark.parametrize("interval", [timedelta(0), timedelta(seconds=-1)])
def test_interval_must_be_positive(interval: timedelta) -> None:
    with pytest.raises(ValueError, match="interval"):
        _scheduler(_CountingSweep(), interval=interval)
