from __future__ import annotations

from threading import Lock

from .models import CycleReport


class SyncState:
    """Last cycle outcome, shared between the scheduler thread and the HTTP listener."""

    def __init__(self) -> None:
        self.lock = Lock()
        self.last_report: CycleReport | None = None
        self.cycles = 0

    def record(self, report: CycleReport) -> None:
        with self.lock:
            self.last_report = report
            self.cycles += 1

    def snapshot(self) -> tuple[CycleReport | None, int]:
        with self.lock:
            return self.last_report, self.cycles
