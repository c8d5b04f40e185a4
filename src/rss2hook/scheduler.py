"""Periodic driver for scan cycles."""

from __future__ import annotations

import enum
import logging
import signal
import threading

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from rss2hook.service import FeedScanService, ScanStats
from rss2hook.store import Store

logger = logging.getLogger(__name__)

_JOB_ID = "rss2hook::scan"


class SchedulerState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class PollingScheduler:
    """Run a cycle at once, then every ``interval_seconds`` until stopped.

    The interval job is limited to one running instance: a trigger firing
    while a cycle is still in progress is skipped, and missed triggers are
    coalesced into a single run.
    """

    def __init__(
        self,
        *,
        service: FeedScanService,
        store: Store,
        interval_seconds: float = 300.0,
        scheduler: BackgroundScheduler | None = None,
    ) -> None:
        self.service = service
        self.store = store
        self.interval_seconds = interval_seconds
        self.scheduler = scheduler or BackgroundScheduler()
        self.state = SchedulerState.IDLE
        self.cycles = 0

    def run_cycle(self) -> ScanStats | None:
        try:
            stats = self.service.run_once()
        except Exception:  # noqa: BLE001
            logger.exception("Scan cycle failed")
            return None
        self.cycles += 1
        return stats

    def start(self) -> None:
        if self.state is SchedulerState.RUNNING:
            return

        self.run_cycle()

        self.scheduler.add_job(
            self.run_cycle,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.start()
        self.state = SchedulerState.RUNNING
        logger.info("Scheduler started; scanning every %g seconds", self.interval_seconds)

    def stop(self) -> None:
        if self.state is SchedulerState.RUNNING:
            # wait=True joins a cycle that is still in flight.
            self.scheduler.shutdown(wait=True)
            self.state = SchedulerState.IDLE
            logger.info("Scheduler stopped")
        self.store.close()

    def run_until(self, stop_event: threading.Event) -> None:
        try:
            if not stop_event.is_set():
                self.start()
            # Short waits keep the main thread responsive to signals.
            while not stop_event.wait(timeout=1.0):
                pass
        finally:
            self.stop()


def install_signal_handlers(stop_event: threading.Event) -> None:
    def _handle(signum: int, _frame: object) -> None:
        logger.info("Received signal %d; shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)
