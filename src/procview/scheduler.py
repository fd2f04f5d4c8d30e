"""Refresh scheduler: periodic pulls or a push subscription."""

import threading
from collections.abc import Callable
from enum import Enum

import structlog

from procview.config import MIN_POLL_RATE, RefreshMode
from procview.models import ProcessSnapshot
from procview.source import PushSnapshotSource, SnapshotSource, Subscription

log = structlog.get_logger()


class SchedulerState(Enum):
    """Lifecycle states of a RefreshScheduler."""

    IDLE = "idle"
    REFRESHING = "refreshing"
    SUBSCRIBED = "subscribed"
    STOPPED = "stopped"


class RefreshScheduler:
    """
    Drives snapshots from a source into a deliver callback.

    In pull mode a daemon thread fetches every poll_rate seconds; a scheduled
    tick that finds a fetch already in flight is dropped. In push mode the
    source's subscription is the only producer. stop() is unconditional and
    anything fetched after it is discarded.
    """

    def __init__(
        self,
        source: SnapshotSource,
        deliver: Callable[[ProcessSnapshot], object],
        on_error: Callable[[Exception], object],
        mode: RefreshMode = RefreshMode.PULL,
        poll_rate: float = 2.0,
    ) -> None:
        """
        Initialize the RefreshScheduler.

        Args:
            source: Where snapshots come from.
            deliver: Receives every fetched or pushed snapshot.
            on_error: Receives every failed fetch; the schedule keeps going.
            mode: Pull (polling) or push (subscription).
            poll_rate: Seconds between pulls. Minimum 0.1s.
        """
        if mode is RefreshMode.PUSH and not isinstance(source, PushSnapshotSource):
            raise TypeError(f"{type(source).__name__} does not support push updates")
        self._source = source
        self._deliver = deliver
        self._on_error = on_error
        self._mode = mode
        self._poll_rate = max(MIN_POLL_RATE, poll_rate)
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._subscription: Subscription | None = None
        self._in_flight = False
        self._rerun = False
        self._started = False
        self._dropped = 0

    @property
    def mode(self) -> RefreshMode:
        return self._mode

    @property
    def poll_rate(self) -> float:
        return self._poll_rate

    @property
    def dropped_ticks(self) -> int:
        """Scheduled ticks skipped because a fetch was already in flight."""
        return self._dropped

    @property
    def state(self) -> SchedulerState:
        if self._stop_event.is_set():
            return SchedulerState.STOPPED
        if self._subscription is not None:
            return SchedulerState.SUBSCRIBED
        if self._in_flight:
            return SchedulerState.REFRESHING
        return SchedulerState.IDLE

    @property
    def is_running(self) -> bool:
        if self._stop_event.is_set():
            return False
        if self._mode is RefreshMode.PUSH:
            return self._subscription is not None
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start polling or subscribe. A scheduler can be started once."""
        if self._started:
            return
        self._started = True
        log.debug("scheduler_start", mode=self._mode.value, poll_rate=self._poll_rate)

        if self._mode is RefreshMode.PUSH:
            self._subscription = self._source.on_snapshot_update(self._on_push)
            return

        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="RefreshScheduler",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Cancel the timer or subscription.

        Safe to call at any time, including while a fetch is in flight and
        from within deliver itself.
        """
        self._stop_event.set()
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.cancel()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        log.debug("scheduler_stop", mode=self._mode.value)

    def refresh_now(self) -> bool:
        """
        Fetch immediately, outside the schedule, on the calling thread.

        If a fetch is already in flight, it is asked to run once more when it
        finishes instead; that rerun is coalesced, so at most one is pending.
        Returns True if this call performed the fetch itself.
        """
        return self._tick(forced=True)

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        while not self._stop_event.is_set():
            self._tick(forced=False)
            # Wait for poll_rate seconds or until stop is requested
            self._stop_event.wait(timeout=self._poll_rate)

    def _tick(self, forced: bool) -> bool:
        with self._lock:
            if self._stop_event.is_set():
                return False
            if self._in_flight:
                if forced:
                    self._rerun = True
                else:
                    self._dropped += 1
                    log.debug("tick_dropped", dropped=self._dropped)
                return False
            self._in_flight = True

        try:
            while True:
                self._fetch_once()
                with self._lock:
                    if not self._rerun or self._stop_event.is_set():
                        break
                    self._rerun = False
        finally:
            with self._lock:
                self._in_flight = False
                self._rerun = False
        return True

    def _fetch_once(self) -> None:
        try:
            snapshot = self._source.list_processes()
        except Exception as exc:
            if not self._stop_event.is_set():
                log.warning("fetch_failed", error=str(exc))
                self._on_error(exc)
            return

        if self._stop_event.is_set():
            log.debug("late_snapshot_discarded", size=len(snapshot))
            return
        try:
            self._deliver(snapshot)
        except Exception as exc:
            log.warning("deliver_failed", error=str(exc))
            self._on_error(exc)

    def _on_push(self, snapshot: ProcessSnapshot) -> None:
        if self._stop_event.is_set():
            log.debug("late_snapshot_discarded", size=len(snapshot))
            return
        self._deliver(snapshot)
