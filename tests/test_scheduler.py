from __future__ import annotations

import signal
import threading

from apscheduler.triggers.interval import IntervalTrigger

from rss2hook.scheduler import PollingScheduler, SchedulerState, install_signal_handlers
from rss2hook.service import ScanStats


class StubService:
    def __init__(self, fail: bool = False) -> None:
        self.runs = 0
        self.fail = fail

    def run_once(self) -> ScanStats:
        self.runs += 1
        if self.fail:
            raise RuntimeError("boom")
        return ScanStats()


class StubStore:
    def __init__(self) -> None:
        self.closed = 0

    def close(self) -> None:
        self.closed += 1


class StubScheduler:
    def __init__(self) -> None:
        self.calls: list[dict] = []

    def add_job(self, func, trigger, id, max_instances, coalesce, replace_existing):  # noqa: ANN001, A002
        self.calls.append(
            {
                "event": "add_job",
                "func": func,
                "trigger": trigger,
                "id": id,
                "max_instances": max_instances,
                "coalesce": coalesce,
                "replace_existing": replace_existing,
            }
        )

    def start(self) -> None:
        self.calls.append({"event": "start"})

    def shutdown(self, wait: bool = True) -> None:
        self.calls.append({"event": "shutdown", "wait": wait})


def _scheduler(service=None, store=None, stub=None, interval=300.0):
    return PollingScheduler(
        service=service or StubService(),
        store=store or StubStore(),
        interval_seconds=interval,
        scheduler=stub or StubScheduler(),
    )


def test_start_runs_first_cycle_synchronously_then_arms_interval() -> None:
    service = StubService()
    stub = StubScheduler()
    scheduler = _scheduler(service=service, stub=stub, interval=120.0)

    scheduler.start()

    assert service.runs == 1
    assert scheduler.state is SchedulerState.RUNNING
    assert [call["event"] for call in stub.calls] == ["add_job", "start"]

    job = stub.calls[0]
    assert isinstance(job["trigger"], IntervalTrigger)
    assert job["trigger"].interval.total_seconds() == 120.0
    assert job["max_instances"] == 1
    assert job["coalesce"] is True

    job["func"]()
    assert service.runs == 2
    assert scheduler.cycles == 2


def test_start_twice_does_not_add_second_job() -> None:
    stub = StubScheduler()
    scheduler = _scheduler(stub=stub)

    scheduler.start()
    scheduler.start()

    assert [call["event"] for call in stub.calls] == ["add_job", "start"]


def test_stop_waits_for_running_cycle_and_closes_store() -> None:
    store = StubStore()
    stub = StubScheduler()
    scheduler = _scheduler(store=store, stub=stub)

    scheduler.start()
    scheduler.stop()

    assert stub.calls[-1] == {"event": "shutdown", "wait": True}
    assert scheduler.state is SchedulerState.IDLE
    assert store.closed == 1


def test_failing_cycle_is_logged_and_schedule_continues() -> None:
    service = StubService(fail=True)
    stub = StubScheduler()
    scheduler = _scheduler(service=service, stub=stub)

    scheduler.start()

    assert service.runs == 1
    assert scheduler.cycles == 0
    assert scheduler.state is SchedulerState.RUNNING


def test_run_until_returns_after_stop_event() -> None:
    service = StubService()
    store = StubStore()
    stub = StubScheduler()
    scheduler = _scheduler(service=service, store=store, stub=stub)
    stop_event = threading.Event()

    timer = threading.Timer(0.1, stop_event.set)
    timer.start()
    scheduler.run_until(stop_event)
    timer.join()

    assert service.runs == 1
    assert {"event": "shutdown", "wait": True} in stub.calls
    assert store.closed == 1


def test_run_until_with_event_already_set_skips_scanning() -> None:
    service = StubService()
    store = StubStore()
    stub = StubScheduler()
    scheduler = _scheduler(service=service, store=store, stub=stub)
    stop_event = threading.Event()
    stop_event.set()

    scheduler.run_until(stop_event)

    assert service.runs == 0
    assert stub.calls == []
    assert store.closed == 1


def test_signal_handlers_set_stop_event() -> None:
    previous_int = signal.getsignal(signal.SIGINT)
    previous_term = signal.getsignal(signal.SIGTERM)
    stop_event = threading.Event()
    try:
        install_signal_handlers(stop_event)
        handler = signal.getsignal(signal.SIGTERM)
        handler(signal.SIGTERM, None)
    finally:
        signal.signal(signal.SIGINT, previous_int)
        signal.signal(signal.SIGTERM, previous_term)

    assert stop_event.is_set()


class SlowService:
    def __init__(self) -> None:
        self.runs = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def run_once(self) -> ScanStats:
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        threading.Event().wait(0.15)
        with self._lock:
            self.active -= 1
            self.runs += 1
        return ScanStats()


def test_real_scheduler_never_overlaps_cycles() -> None:
    service = SlowService()
    store = StubStore()
    scheduler = PollingScheduler(service=service, store=store, interval_seconds=0.05)

    scheduler.start()
    pause = threading.Event()
    for _ in range(100):
        if service.runs >= 3:
            break
        pause.wait(0.05)
    scheduler.stop()

    assert service.runs >= 3
    assert service.max_active == 1
    assert service.active == 0
    assert store.closed == 1
