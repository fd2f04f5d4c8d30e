"""View pipeline: held set -> filtered -> sorted -> aggregated -> one page."""

import math
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from procview.models import (
    Aggregates,
    ProcessRecord,
    SortKey,
    SortOrder,
    ViewResult,
    ViewState,
)

_SORT_KEYS: dict[SortKey, Callable[[ProcessRecord], Any]] = {
    SortKey.PID: lambda p: p.pid,
    SortKey.NAME: lambda p: p.name.lower(),
    SortKey.CPU: lambda p: p.cpu,
    SortKey.MEM: lambda p: p.mem,
    SortKey.STATUS: lambda p: p.status.lower(),
}


def filter_records(records: Iterable[ProcessRecord], filter_text: str) -> list[ProcessRecord]:
    """Keep records whose name contains filter_text, ignoring case."""
    needle = filter_text.lower()
    if not needle:
        return list(records)
    return [p for p in records if needle in p.name.lower()]


def sort_records(
    records: list[ProcessRecord], key: SortKey, order: SortOrder
) -> list[ProcessRecord]:
    """Stable sort by key; reverse=True keeps ties in their original order."""
    return sorted(records, key=_SORT_KEYS[key], reverse=order is SortOrder.DESC)


def aggregate(records: Iterable[ProcessRecord]) -> Aggregates:
    """Sum cpu and mem over records."""
    cpu_sum = 0.0
    mem_sum = 0
    for p in records:
        cpu_sum += p.cpu
        mem_sum += p.mem
    return Aggregates(cpu_sum=cpu_sum, mem_sum=mem_sum)


def paginate(records: list[ProcessRecord], page: int, page_size: int) -> list[ProcessRecord]:
    """Slice out a 1-based page. Out-of-range pages yield an empty list."""
    start = (page - 1) * page_size
    return records[start : start + page_size]


def derive(held: Mapping[int, ProcessRecord], view_state: ViewState) -> ViewResult:
    """
    Derive the renderable rows for the current view state.

    Pure and deterministic: no clamping of current_page is done here, so a
    page past the end yields no rows.
    """
    matched = filter_records(held.values(), view_state.filter_text)
    ordered = sort_records(matched, view_state.sort_key, view_state.sort_order)
    rows = paginate(ordered, view_state.current_page, view_state.page_size)
    return ViewResult(
        rows=tuple(rows),
        total_matched=len(matched),
        aggregates=aggregate(matched),
    )


def page_count(total_matched: int, page_size: int) -> int:
    """Number of pages needed for total_matched rows, never less than 1."""
    return max(1, math.ceil(total_matched / page_size))


def clamp_page(page: int, total_matched: int, page_size: int) -> int:
    """Clamp a requested page into [1, page_count]."""
    return min(max(1, page), page_count(total_matched, page_size))
