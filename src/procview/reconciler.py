"""Reconciliation of incoming snapshots into the held process set."""

from collections import Counter
from collections.abc import Iterator, Mapping
from types import MappingProxyType

from procview.errors import MalformedSnapshot
from procview.models import ProcessRecord, ProcessSnapshot


class HeldProcessSet(Mapping[int, ProcessRecord]):
    """
    Read-only, pid-keyed view of the processes currently known to exist.

    Instances are never mutated; reconciliation produces a new instance or
    returns the existing one unchanged.
    """

    __slots__ = ("_records",)

    def __init__(self, records: Mapping[int, ProcessRecord] | None = None) -> None:
        self._records = MappingProxyType(dict(records or {}))

    def __getitem__(self, pid: int) -> ProcessRecord:
        return self._records[pid]

    def __iter__(self) -> Iterator[int]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"HeldProcessSet({len(self)} processes)"


EMPTY = HeldProcessSet()


def index_snapshot(snapshot: ProcessSnapshot) -> dict[int, ProcessRecord]:
    """
    Index a snapshot by pid.

    Raises:
        MalformedSnapshot: If any pid appears more than once.
    """
    indexed = {record.pid: record for record in snapshot.records}
    if len(indexed) != len(snapshot.records):
        counts = Counter(record.pid for record in snapshot.records)
        raise MalformedSnapshot([pid for pid, n in counts.items() if n > 1])
    return indexed


def reconcile(held: HeldProcessSet, incoming: ProcessSnapshot) -> HeldProcessSet:
    """
    Merge an incoming snapshot into the held set.

    Pids in both take the incoming record, new pids are inserted and pids
    missing from incoming are dropped. If incoming matches held field for field,
    held itself is returned so callers can skip redrawing with an identity check.
    The merge is all-or-nothing: a malformed snapshot raises before anything
    is built.
    """
    indexed = index_snapshot(incoming)
    if indexed == held._records:
        return held
    return HeldProcessSet(indexed)
