"""Data models for procview."""

import time
from dataclasses import dataclass, field, replace
from enum import Enum


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable record of one process at a point in time."""

    pid: int
    name: str
    cpu: float  # 0.0 - 100.0 * core_count
    mem: int  # Bytes
    status: str  # 'running', 'sleeping', 'zombie', etc.


@dataclass(slots=True, frozen=True)
class ProcessSnapshot:
    """One complete enumeration of all processes, timestamped at capture."""

    records: tuple[ProcessRecord, ...]
    captured_at: float = field(default_factory=time.time)

    def __len__(self) -> int:
        return len(self.records)


class SortKey(Enum):
    """Sort keys for the process table."""

    PID = "pid"
    NAME = "name"
    CPU = "cpu"
    MEM = "mem"
    STATUS = "status"


class SortOrder(Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"

    def flipped(self) -> "SortOrder":
        return SortOrder.DESC if self is SortOrder.ASC else SortOrder.ASC


@dataclass(slots=True, frozen=True)
class ViewState:
    """
    Viewer-controlled presentation state.

    Independent of snapshot data: reconciliation never touches it.
    """

    filter_text: str = ""
    sort_key: SortKey = SortKey.NAME
    sort_order: SortOrder = SortOrder.ASC
    current_page: int = 1
    page_size: int = 50

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError(f"page_size must be positive, got {self.page_size}")
        if self.current_page < 1:
            raise ValueError(f"current_page is 1-based, got {self.current_page}")

    def evolve(self, **changes) -> "ViewState":
        """Return a copy with the given fields changed."""
        return replace(self, **changes)


@dataclass(slots=True, frozen=True)
class Aggregates:
    """Totals over the filtered (pre-pagination) set."""

    cpu_sum: float = 0.0
    mem_sum: int = 0


@dataclass(slots=True, frozen=True)
class ViewResult:
    """Output of the view pipeline: one page of rows plus totals."""

    rows: tuple[ProcessRecord, ...]
    total_matched: int
    aggregates: Aggregates


@dataclass(slots=True, frozen=True)
class ScrollAnchor:
    """Viewer position captured immediately before a reconciliation."""

    offset: float
    page: int
