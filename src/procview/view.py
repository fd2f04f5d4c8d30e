"""ProcessView: the single owner of the held process set and the view state."""

import threading
from collections.abc import Callable

import structlog

from procview.commands import CommandDispatcher, TerminateResult
from procview.config import Settings
from procview.errors import AdapterUnavailable
from procview.models import ProcessSnapshot, SortKey, SortOrder, ViewResult, ViewState
from procview.pipeline import clamp_page, derive, page_count
from procview.reconciler import EMPTY, HeldProcessSet, reconcile
from procview.scheduler import RefreshScheduler, SchedulerState
from procview.source import SnapshotSource

log = structlog.get_logger()

ChangeListener = Callable[["ProcessView"], None]


class ProcessView:
    """
    Live view over a process source.

    Owns the held set (mutated only by apply_snapshot) and the view state
    (mutated only by the set_* actions). Both are guarded by one lock so
    reconciliations never overlap and readers see a consistent pair.

    Snapshots reach apply_snapshot through ``deliver``; by default that is
    apply_snapshot itself, but a UI can pass e.g. ``queue.put`` and feed
    apply_snapshot from its own thread.
    """

    def __init__(
        self,
        source: SnapshotSource,
        settings: Settings | None = None,
        deliver: Callable[[ProcessSnapshot], object] | None = None,
        view_state: ViewState | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._lock = threading.RLock()
        self._held: HeldProcessSet = EMPTY
        self._view_state = view_state or ViewState(page_size=self._settings.page_size)
        self._status: str | None = None
        self._last_updated: float | None = None
        self._closed = False
        self._listeners: list[ChangeListener] = []
        self._cached: tuple[HeldProcessSet, ViewState, ViewResult] | None = None

        self._scheduler = RefreshScheduler(
            source,
            deliver=deliver or self.apply_snapshot,
            on_error=self.report_error,
            mode=self._settings.mode,
            poll_rate=self._settings.poll_rate,
        )
        self._dispatcher = CommandDispatcher(source, refresh=self.refresh_now)

    # Lifecycle

    @property
    def scheduler(self) -> RefreshScheduler:
        return self._scheduler

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start refreshing from the source."""
        if self._closed:
            raise RuntimeError("view is closed")
        self._scheduler.start()

    def close(self) -> None:
        """Stop refreshing and clear the held set. Late snapshots are dropped."""
        with self._lock:
            self._closed = True
            self._held = EMPTY
            self._cached = None
            self._listeners.clear()
        self._scheduler.stop()

    def __enter__(self) -> "ProcessView":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def add_listener(self, listener: ChangeListener) -> None:
        """Call listener after every reconciliation that changed the held set."""
        with self._lock:
            self._listeners.append(listener)

    # Reconciliation

    def apply_snapshot(self, snapshot: ProcessSnapshot) -> bool:
        """
        Reconcile a snapshot into the held set.

        Returns True if the held set changed. A malformed snapshot is rejected
        whole and reported like an unavailable source.
        """
        with self._lock:
            if self._closed:
                log.debug("late_snapshot_discarded", size=len(snapshot))
                return False
            try:
                held = reconcile(self._held, snapshot)
            except AdapterUnavailable as exc:
                log.warning("snapshot_rejected", error=str(exc))
                self._status = str(exc)
                return False

            self._status = None
            self._last_updated = snapshot.captured_at
            if held is self._held:
                return False
            self._held = held
            listeners = list(self._listeners)

        for listener in listeners:
            listener(self)
        return True

    def report_error(self, exc: Exception) -> None:
        """Record a failure as the transient status line."""
        with self._lock:
            if not self._closed:
                self._status = str(exc) or type(exc).__name__

    # Viewer actions

    def set_filter(self, text: str) -> None:
        with self._lock:
            if text != self._view_state.filter_text:
                self._view_state = self._view_state.evolve(filter_text=text, current_page=1)

    def set_sort(self, key: SortKey, order: SortOrder | None = None) -> None:
        """
        Sort by key.

        Without an explicit order, choosing the current key flips the order
        and choosing a new key sorts ascending.
        """
        with self._lock:
            state = self._view_state
            if order is None:
                order = state.sort_order.flipped() if key is state.sort_key else SortOrder.ASC
            self._view_state = state.evolve(sort_key=key, sort_order=order)

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        with self._lock:
            keys = list(SortKey)
            next_key = keys[(keys.index(self._view_state.sort_key) + 1) % len(keys)]
            # Numeric resource columns read best largest-first
            order = SortOrder.DESC if next_key in (SortKey.CPU, SortKey.MEM) else SortOrder.ASC
            self._view_state = self._view_state.evolve(sort_key=next_key, sort_order=order)
            return next_key

    def set_page(self, page: int) -> int:
        """Go to page, clamped to the pages available. Returns the page set."""
        with self._lock:
            total = self._derive().total_matched
            page = clamp_page(page, total, self._view_state.page_size)
            self._view_state = self._view_state.evolve(current_page=page)
            return page

    def next_page(self) -> int:
        return self.set_page(self.current_page + 1)

    def previous_page(self) -> int:
        return self.set_page(self.current_page - 1)

    def kill(self, pid: int) -> TerminateResult:
        """Terminate pid and, on success, refresh immediately."""
        result = self._dispatcher.terminate(pid)
        if result.error is not None:
            self.report_error(result.error)
        return result

    def refresh_now(self) -> None:
        """Fetch a snapshot now without waiting for the next tick."""
        self._scheduler.refresh_now()

    # Reads

    @property
    def held(self) -> HeldProcessSet:
        return self._held

    @property
    def view_state(self) -> ViewState:
        return self._view_state

    @property
    def status(self) -> str | None:
        """Last error message, cleared by the next accepted snapshot."""
        return self._status

    @property
    def last_updated(self) -> float | None:
        """Capture time of the last accepted snapshot."""
        return self._last_updated

    @property
    def refreshing(self) -> bool:
        """True while a fetch is in flight."""
        return self._scheduler.state is SchedulerState.REFRESHING

    @property
    def current_page(self) -> int:
        """The page actually shown, clamped to what the filter leaves."""
        with self._lock:
            state = self._view_state
            return clamp_page(state.current_page, self._derive().total_matched, state.page_size)

    @property
    def page_count(self) -> int:
        with self._lock:
            return page_count(self._derive().total_matched, self._view_state.page_size)

    def result(self) -> ViewResult:
        """Rows of the current page with the match count and totals."""
        with self._lock:
            state = self._view_state
            current = self._derive()
            page = clamp_page(state.current_page, current.total_matched, state.page_size)
            if page == state.current_page:
                return current
            # The filter or a refresh left fewer pages; show the last one
            return derive(self._held, state.evolve(current_page=page))

    def _derive(self) -> ViewResult:
        cached = self._cached
        if cached is not None and cached[0] is self._held and cached[1] == self._view_state:
            return cached[2]
        result = derive(self._held, self._view_state)
        self._cached = (self._held, self._view_state, result)
        return result
