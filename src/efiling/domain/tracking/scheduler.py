"""Background scheduler running the status sweep at a fixed interval."""

from __future__ import annotations

import threading
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .sweep import StatusSweep, SweepResult

log = getLogger(__name__)

DEFAULT_INTERVAL = timedelta(minutes=15)


class SweepScheduler:
    """Run ``StatusSweep.run_once`` every ``interval`` on a single thread.

    There is never more than one sweep in flight; a sweep that overruns the
    interval simply delays the next one.
    """

    def __init__(self, sweep: StatusSweep, *, interval: timedelta = DEFAULT_INTERVAL) -> None:
        if interval <= timedelta(0):
            raise ValueError("interval must be positive")
        self._sweep = sweep
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.last_result: SweepResult | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            raise RuntimeError("Sweep scheduler already running")
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="status-sweep", daemon=True)
        self._thread.start()
        log.info(f"Sweep scheduler started with interval {self._interval}")

    def stop(self, *, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        log.info("Sweep scheduler stopped")

    def run_forever(self) -> None:
        """Run in the calling thread until ``stop`` is called from elsewhere."""

        self._stop.clear()
        self._run()

    def tick(self) -> SweepResult | None:
        try:
            self.last_result = self._sweep.run_once()
        except Exception:
            log.exception("Status sweep failed; retrying at the next interval")
            return None
        return self.last_result

    def _run(self) -> None:
        while not self._stop.is_set():
            self.tick()
            self._stop.wait(self._interval.total_seconds())
