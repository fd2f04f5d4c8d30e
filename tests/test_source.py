"""Tests for the psutil-backed snapshot source."""

from queue import Queue

import psutil
import pytest

from procview.errors import AdapterUnavailable, TerminateFailed
from procview.models import ProcessRecord, ProcessSnapshot
from procview.source import PsutilSource, PushSnapshotSource, SnapshotSource


def unused_pid() -> int:
    pid = 4_000_000
    while psutil.pid_exists(pid):
        pid += 1
    return pid


class TestPsutilSource:
    """Tests for PsutilSource."""

    def test_satisfies_protocols(self):
        """Test PsutilSource supports both pull and push."""
        source = PsutilSource()
        assert isinstance(source, SnapshotSource)
        assert isinstance(source, PushSnapshotSource)

    def test_list_processes(self):
        """Test a snapshot holds real processes with valid fields."""
        snapshot = PsutilSource().list_processes()

        assert isinstance(snapshot, ProcessSnapshot)
        assert len(snapshot) > 0
        for proc in snapshot.records[:5]:
            assert isinstance(proc, ProcessRecord)
            assert isinstance(proc.pid, int)
            assert isinstance(proc.name, str)
            assert isinstance(proc.cpu, float)
            assert isinstance(proc.mem, int)
            assert proc.mem >= 0
            assert isinstance(proc.status, str)

    def test_pids_are_unique(self):
        """Test a snapshot never lists a pid twice."""
        snapshot = PsutilSource().list_processes()
        pids = [p.pid for p in snapshot.records]
        assert len(pids) == len(set(pids))

    def test_lists_current_process(self):
        """Test the test runner itself is in the snapshot."""
        snapshot = PsutilSource().list_processes()
        assert psutil.Process().pid in {p.pid for p in snapshot.records}

    def test_enumeration_failure_raises(self, monkeypatch):
        """Test a failing process_iter surfaces as AdapterUnavailable."""

        def broken(*args, **kwargs):
            raise OSError("/proc unavailable")

        monkeypatch.setattr(psutil, "process_iter", broken)
        with pytest.raises(AdapterUnavailable):
            PsutilSource().list_processes()

    def test_terminate_missing_pid(self):
        """Test terminating a pid that does not exist fails with a reason."""
        pid = unused_pid()
        with pytest.raises(TerminateFailed) as excinfo:
            PsutilSource().terminate(pid)
        assert excinfo.value.pid == pid
        assert excinfo.value.reason == "no such process"

    def test_push_subscription(self):
        """Test the subscription pushes snapshots until cancelled."""
        queue: Queue[ProcessSnapshot] = Queue()
        subscription = PsutilSource(push_interval=0.1).on_snapshot_update(queue.put)
        try:
            assert len(queue.get(timeout=5.0)) > 0
            assert subscription.is_active
        finally:
            subscription.cancel()
        assert not subscription.is_active
