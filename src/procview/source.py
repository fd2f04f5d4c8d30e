"""Snapshot sources: the collaborator that enumerates and terminates processes."""

import threading
from collections.abc import Callable
from typing import Protocol, runtime_checkable

import psutil
import structlog

from procview.errors import AdapterUnavailable, TerminateFailed
from procview.models import ProcessRecord, ProcessSnapshot

log = structlog.get_logger()

SnapshotCallback = Callable[[ProcessSnapshot], None]


class Subscription(Protocol):
    """Handle returned by a push subscription."""

    def cancel(self) -> None: ...


@runtime_checkable
class SnapshotSource(Protocol):
    """Pull side of the collaborator contract."""

    def list_processes(self) -> ProcessSnapshot:
        """Return a full snapshot or raise AdapterUnavailable."""
        ...

    def terminate(self, pid: int) -> None:
        """Ask the OS to end pid or raise TerminateFailed."""
        ...


@runtime_checkable
class PushSnapshotSource(SnapshotSource, Protocol):
    """A source that can also push full snapshots to a callback."""

    def on_snapshot_update(self, callback: SnapshotCallback) -> Subscription: ...


class _PollingSubscription:
    """
    Daemon thread that pushes a snapshot to a callback every interval.

    Mirrors a monitor loop: errors are logged and the loop keeps running.
    """

    def __init__(
        self,
        fetch: Callable[[], ProcessSnapshot],
        callback: SnapshotCallback,
        interval: float,
    ) -> None:
        self._fetch = fetch
        self._callback = callback
        self._interval = interval
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._push_loop,
            daemon=True,
            name="SnapshotPush",
        )
        self._thread.start()

    @property
    def is_active(self) -> bool:
        return self._thread.is_alive() and not self._stop_event.is_set()

    def cancel(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)

    def _push_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                snapshot = self._fetch()
                if not self._stop_event.is_set():
                    self._callback(snapshot)
            except Exception as exc:
                log.warning("push_tick_failed", error=str(exc))
            self._stop_event.wait(timeout=self._interval)


class PsutilSource:
    """
    Snapshot source backed by psutil.

    Handles AccessDenied and ZombieProcess errors per process during
    enumeration; a failure of the enumeration itself raises AdapterUnavailable.
    """

    # Attributes to fetch per process
    ATTRS = ["pid", "name", "cpu_percent", "memory_info", "status"]

    def __init__(self, push_interval: float = 2.0) -> None:
        """
        Initialize the PsutilSource.

        Args:
            push_interval: Cadence of pushed snapshots (in seconds).
        """
        self._push_interval = push_interval

    def list_processes(self) -> ProcessSnapshot:
        """Collect a snapshot of all running processes."""
        records: list[ProcessRecord] = []
        try:
            for proc in psutil.process_iter(attrs=self.ATTRS):
                try:
                    records.append(self._to_record(proc.info))
                except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                    # Process died mid-poll, access denied, or zombie
                    continue
        except (psutil.Error, OSError) as exc:
            raise AdapterUnavailable(f"process enumeration failed: {exc}") from exc
        return ProcessSnapshot(records=tuple(records))

    def terminate(self, pid: int) -> None:
        """Send SIGTERM (or the platform equivalent) to pid."""
        try:
            psutil.Process(pid).terminate()
        except psutil.NoSuchProcess as exc:
            raise TerminateFailed(pid, "no such process") from exc
        except psutil.AccessDenied as exc:
            raise TerminateFailed(pid, "permission denied") from exc
        except (psutil.Error, OSError) as exc:
            raise TerminateFailed(pid, str(exc) or type(exc).__name__) from exc

    def on_snapshot_update(self, callback: SnapshotCallback) -> _PollingSubscription:
        """Push a full snapshot to callback every push_interval seconds."""
        return _PollingSubscription(self.list_processes, callback, self._push_interval)

    @staticmethod
    def _to_record(info: dict) -> ProcessRecord:
        # Safe defaults for None values
        mem_info = info.get("memory_info")
        return ProcessRecord(
            pid=info.get("pid", 0),
            name=info.get("name") or "",
            cpu=info.get("cpu_percent") or 0.0,
            mem=mem_info.rss if mem_info else 0,
            status=info.get("status") or "?",
        )
