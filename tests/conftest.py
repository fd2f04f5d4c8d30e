"""Shared fixtures: in-memory snapshot sources."""

import threading

import pytest

from procview.errors import AdapterUnavailable, TerminateFailed
from procview.models import ProcessRecord, ProcessSnapshot


def make_record(pid: int, name: str = "proc", cpu: float = 0.0, mem: int = 0,
                status: str = "running") -> ProcessRecord:
    return ProcessRecord(pid=pid, name=name, cpu=cpu, mem=mem, status=status)


class FakeSource:
    """
    Source over an in-memory process table.

    terminate() removes the pid from the table so the next snapshot no
    longer lists it. ``gate`` lets a test hold list_processes in flight.
    """

    def __init__(self, records=()) -> None:
        self.records = {r.pid: r for r in records}
        self.fail_next = 0
        self.refuse: dict[int, str] = {}
        self.list_calls = 0
        self.terminated: list[int] = []
        self.gate: threading.Event | None = None
        self.entered = threading.Event()
        self._lock = threading.Lock()

    def list_processes(self) -> ProcessSnapshot:
        with self._lock:
            self.list_calls += 1
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5.0)
        with self._lock:
            if self.fail_next:
                self.fail_next -= 1
                raise AdapterUnavailable("source offline")
            return ProcessSnapshot(records=tuple(self.records.values()))

    def terminate(self, pid: int) -> None:
        if pid in self.refuse:
            raise TerminateFailed(pid, self.refuse[pid])
        with self._lock:
            self.terminated.append(pid)
            self.records.pop(pid, None)


class FakeSubscription:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakePushSource(FakeSource):
    """FakeSource that hands snapshots to its subscriber only when pushed."""

    def __init__(self, records=()) -> None:
        super().__init__(records)
        self.callback = None
        self.subscription: FakeSubscription | None = None

    def on_snapshot_update(self, callback) -> FakeSubscription:
        self.callback = callback
        self.subscription = FakeSubscription()
        return self.subscription

    def push(self) -> None:
        self.callback(ProcessSnapshot(records=tuple(self.records.values())))


@pytest.fixture
def two_processes():
    return [
        make_record(1, "a", cpu=10.0, mem=1024),
        make_record(2, "b", cpu=5.0, mem=2048),
    ]


@pytest.fixture
def fake_source(two_processes):
    return FakeSource(two_processes)


@pytest.fixture
def push_source(two_processes):
    return FakePushSource(two_processes)
