"""procview - Main Textual application."""

from collections.abc import Callable
from functools import partial
from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Input, Static

from procview.commands import TerminateResult
from procview.config import Settings
from procview.logs import configure_logging
from procview.models import ProcessRecord, ProcessSnapshot, SortKey, SortOrder, ViewResult
from procview.scroll import ScrollKeeper
from procview.source import PsutilSource, SnapshotSource
from procview.view import ProcessView

COLUMNS = [
    ("PID", SortKey.PID, 8),
    ("NAME", SortKey.NAME, 32),
    ("CPU%", SortKey.CPU, 8),
    ("MEM", SortKey.MEM, 10),
    ("STATUS", SortKey.STATUS, 10),
]


def format_bytes(size: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{size:5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_row(proc: ProcessRecord) -> tuple[str, ...]:
    """Cells for one process, in COLUMNS order."""
    return (
        str(proc.pid),
        proc.name[:32],
        f"{proc.cpu:5.1f}",
        format_bytes(proc.mem),
        proc.status,
    )


class StatsBar(Static):
    """Header line with totals for the current filter, paging and status."""

    DEFAULT_CSS = """
    StatsBar {
        height: auto;
        padding: 0 1;
        background: $surface;
    }
    """

    def update_stats(self, view: ProcessView, result: ViewResult) -> None:
        """Update the statistics from the view."""
        self.update(self.describe(view, result))

    @staticmethod
    def describe(view: ProcessView, result: ViewResult) -> str:
        aggregates = result.aggregates
        mem_gb = aggregates.mem_sum / (1024**3)
        state = view.view_state
        arrow = "↑" if state.sort_order is SortOrder.ASC else "↓"
        line = (
            f"Processes: {result.total_matched}  "
            f"CPU: {aggregates.cpu_sum:.1f}%  "
            f"Memory: {mem_gb:.2f} GB  "
            f"Sort: {state.sort_key.value.upper()}{arrow}  "
            f"Page {view.current_page} of {view.page_count}"
        )
        if view.last_updated is None or view.refreshing:
            line += "  Loading..."
        if view.status:
            # Escape brackets so pid lists aren't read as markup
            status = view.status.replace("[", "\\[")
            line += f"\n[red]{status}[/red]"
        return line


class ProcessTable(Container):
    """Container for the process data table; also the scroll surface."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._row_pids: tuple[int, ...] = ()
        self._rows: dict[int, tuple[str, ...]] = {}

    def compose(self) -> ComposeResult:
        """Compose the process table with its columns in place."""
        table = DataTable(id="process-table")
        table.cursor_type = "row"
        for label, key, width in COLUMNS:
            table.add_column(label, key=key.value, width=width)
        yield table

    @property
    def table(self) -> DataTable:
        return self.query_one("#process-table", DataTable)

    @property
    def row_pids(self) -> tuple[int, ...]:
        return self._row_pids

    @property
    def selected_pid(self) -> int | None:
        """Pid of the row under the cursor, if any."""
        table = self.table
        if not self._row_pids or table.cursor_row < 0:
            return None
        row = min(table.cursor_row, len(self._row_pids) - 1)
        return self._row_pids[row]

    # ScrollSurface

    @property
    def anchor_offset(self) -> float:
        return self.table.scroll_y

    def apply_anchor_offset(self, offset: float) -> None:
        self.table.scroll_to(y=offset, animate=False)

    def after_render(self, callback: Callable[[], None]) -> None:
        self.call_after_refresh(callback)

    def update_processes(self, rows: tuple[ProcessRecord, ...]) -> None:
        """
        Show rows in the given order.

        When the page holds the same pids in the same order, only changed
        cells are touched with update_cell; otherwise the rows are re-added
        under the existing columns and the cursor follows the selected pid.
        """
        table = self.table
        pids = tuple(proc.pid for proc in rows)
        cells = {proc.pid: format_row(proc) for proc in rows}

        if pids == self._row_pids:
            for pid in pids:
                old, new = self._rows[pid], cells[pid]
                for (_, key, _), before, after in zip(COLUMNS, old, new):
                    if before != after:
                        table.update_cell(str(pid), key.value, after)
        else:
            selected = self.selected_pid
            old_row = max(0, table.cursor_row)
            table.clear()
            for pid in pids:
                table.add_row(*cells[pid], key=str(pid))
            if pids:
                if selected in cells:
                    row = table.get_row_index(str(selected))
                else:
                    # Selected process left the page; stay at the same height
                    row = min(old_row, len(pids) - 1)
                table.move_cursor(row=row, scroll=False)

        self._row_pids = pids
        self._rows = cells


class ProcviewApp(App):
    """Main procview application."""

    TITLE = "procview"
    SUB_TITLE = "Live Process Viewer"

    CSS = """
    Screen {
        layout: vertical;
    }

    #filter {
        dock: top;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
        ("i", "invert", "Invert"),
        ("slash", "search", "Search"),
        ("k", "kill", "Kill"),
        ("r", "refresh", "Refresh"),
        ("n", "next_page", "Next"),
        ("p", "previous_page", "Prev"),
    ]

    def __init__(
        self,
        source: SnapshotSource | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the ProcviewApp."""
        super().__init__()
        self._settings = settings or Settings.from_env()
        self._update_queue: Queue[ProcessSnapshot] = Queue()
        self._source = source or PsutilSource(push_interval=self._settings.poll_rate)
        self._view = ProcessView(
            self._source,
            self._settings,
            deliver=self._update_queue.put,
        )
        self._scroll_keeper: ScrollKeeper | None = None

    @property
    def view(self) -> ProcessView:
        return self._view

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield Input(placeholder="Filter by process name...", id="filter")
        yield StatsBar(id="stats")
        yield ProcessTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start refreshing when the app is mounted."""
        process_table = self.query_one(ProcessTable)
        self._scroll_keeper = ScrollKeeper(process_table, lambda: self._view.current_page)
        self._render_view()
        self._view.start()
        # Set up a timer to poll the queue for updates
        self.set_interval(self._settings.ui_tick, self._check_for_updates)
        process_table.table.focus()

    def on_unmount(self) -> None:
        self._view.close()

    def _check_for_updates(self) -> None:
        """Drain the queue and reconcile the most recent snapshot."""
        snapshot = None
        while True:
            try:
                snapshot = self._update_queue.get_nowait()
            except Empty:
                break

        if snapshot is None:
            # Status may still have changed (failed fetch)
            self._render_stats()
            return

        anchor = self._scroll_keeper.before_reconcile()
        self._view.apply_snapshot(snapshot)
        self._render_view()
        self._scroll_keeper.after_reconcile(anchor)

    def _render_view(self) -> None:
        result = self._view.result()
        self.query_one(ProcessTable).update_processes(result.rows)
        self.query_one(StatsBar).update_stats(self._view, result)

    def _render_stats(self) -> None:
        self.query_one(StatsBar).update_stats(self._view, self._view.result())

    def on_input_changed(self, event: Input.Changed) -> None:
        self._view.set_filter(event.value)
        self._render_view()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.query_one(ProcessTable).table.focus()

    def on_data_table_header_selected(self, event: DataTable.HeaderSelected) -> None:
        self._view.set_sort(SortKey(event.column_key.value))
        self._render_view()

    def action_sort(self) -> None:
        """Cycle through sort keys."""
        new_sort_key = self._view.cycle_sort()
        self._render_view()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_invert(self) -> None:
        """Flip the sort order on the current key."""
        self._view.set_sort(self._view.view_state.sort_key)
        self._render_view()

    def action_search(self) -> None:
        self.query_one("#filter", Input).focus()

    def action_next_page(self) -> None:
        self._view.next_page()
        self._render_view()

    def action_previous_page(self) -> None:
        self._view.previous_page()
        self._render_view()

    def action_refresh(self) -> None:
        self.run_worker(self._view.refresh_now, thread=True, group="refresh", exclusive=True)

    def action_kill(self) -> None:
        """Terminate the process under the cursor."""
        pid = self.query_one(ProcessTable).selected_pid
        if pid is None:
            return
        self.run_worker(partial(self._kill_worker, pid), thread=True, group="kill")

    def _kill_worker(self, pid: int) -> None:
        result = self._view.kill(pid)
        self.call_from_thread(self._after_kill, result)

    def _after_kill(self, result: TerminateResult) -> None:
        if result.ok:
            self.notify(f"Terminated {result.pid}")
        else:
            self.notify(str(result.error), severity="error")
        self._render_stats()

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._view.close()
        self.exit()


def main() -> None:
    """Entry point for procview application."""
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    app = ProcviewApp(settings=settings)
    try:
        app.run()
    finally:
        app.view.close()


if __name__ == "__main__":
    main()
