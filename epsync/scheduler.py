from __future__ import annotations

import logging
import time
from threading import Event, Thread
from typing import Callable

from .models import CycleReport
from .reconciler import Reconciler

logger = logging.getLogger(__name__)


class Scheduler:
    """Runs a sync cycle right away and then on every tick of a fixed interval.

    Cycles never overlap. A cycle that overruns the interval delays the next
    one; missed ticks collapse into a single immediate run. Setting the stop
    event ends the loop after the in-flight cycle.
    """

    def __init__(
        self,
        reconciler: Reconciler,
        interval_s: float = 120,
        stop_event: Event | None = None,
        on_cycle: Callable[[CycleReport], None] | None = None,
    ):
        self.reconciler = reconciler
        self.interval_s = max(0.0, float(interval_s))
        self.stop_event = stop_event or Event()
        self.on_cycle = on_cycle
        self._thr: Thread | None = None

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._thr = Thread(target=self.run, name="epsync-scheduler", daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self.stop_event.set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the loop to exit. Returns False if it is still running."""
        if self._thr is None:
            return True
        self._thr.join(timeout)
        return not self._thr.is_alive()

    def run(self) -> None:
        logger.info("Scheduler started, syncing every %ss", self.interval_s)
        next_run = time.monotonic()
        while not self.stop_event.is_set():
            self._tick()
            next_run += self.interval_s
            now = time.monotonic()
            if next_run < now:
                next_run = now
            if self.stop_event.wait(next_run - now):
                break
        logger.info("Scheduler stopped")

    def _tick(self) -> None:
        try:
            report = self.reconciler.run_cycle()
        except Exception:
            logger.exception("sync cycle failed")
            return
        if self.on_cycle is not None:
            self.on_cycle(report)
