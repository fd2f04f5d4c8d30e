"""Tests for snapshot reconciliation."""

import pytest

from conftest import make_record
from procview.errors import AdapterUnavailable, MalformedSnapshot
from procview.models import ProcessSnapshot
from procview.reconciler import EMPTY, HeldProcessSet, reconcile


def snapshot(*records) -> ProcessSnapshot:
    return ProcessSnapshot(records=tuple(records))


class TestReconcile:
    """Tests for reconcile()."""

    def test_first_snapshot_fills_empty_set(self):
        """Test reconciling into the empty set inserts every record."""
        held = reconcile(EMPTY, snapshot(make_record(1), make_record(2)))
        assert set(held) == {1, 2}

    def test_identical_snapshot_returns_same_instance(self):
        """Test a field-for-field identical snapshot is a no-op."""
        snap = snapshot(make_record(1, cpu=1.0), make_record(2, cpu=2.0))
        held = reconcile(EMPTY, snap)

        again = reconcile(held, snapshot(make_record(2, cpu=2.0), make_record(1, cpu=1.0)))

        assert again is held

    def test_reconciling_twice_is_idempotent(self):
        """Test the same snapshot applied twice yields no churn."""
        snap = snapshot(make_record(1), make_record(2))
        first = reconcile(EMPTY, snap)
        second = reconcile(first, snap)
        assert second is first
        assert dict(second) == dict(first)

    def test_changed_fields_take_newest_values(self):
        """Test a pid present in both snapshots reflects only the second."""
        held = reconcile(EMPTY, snapshot(make_record(1, "a", cpu=10.0, mem=100, status="running")))
        held = reconcile(held, snapshot(make_record(1, "a", cpu=3.0, mem=400, status="sleeping")))

        assert held[1] == make_record(1, "a", cpu=3.0, mem=400, status="sleeping")

    def test_exited_process_is_removed(self):
        """Test a pid missing from the next snapshot is dropped."""
        held = reconcile(EMPTY, snapshot(make_record(1), make_record(2)))
        held = reconcile(held, snapshot(make_record(1)))
        assert 2 not in held
        assert set(held) == {1}

    def test_new_process_is_inserted(self):
        """Test a pid only in the incoming snapshot is added."""
        held = reconcile(EMPTY, snapshot(make_record(1)))
        held = reconcile(held, snapshot(make_record(1), make_record(3, "new")))
        assert held[3].name == "new"

    def test_empty_snapshot_clears_set(self):
        """Test an empty snapshot means no processes."""
        held = reconcile(EMPTY, snapshot(make_record(1)))
        assert len(reconcile(held, snapshot())) == 0

    def test_duplicate_pids_rejected_whole(self):
        """Test a malformed snapshot raises and leaves held untouched."""
        held = reconcile(EMPTY, snapshot(make_record(1), make_record(2)))
        bad = snapshot(make_record(1), make_record(5, "x"), make_record(5, "y"))

        with pytest.raises(MalformedSnapshot) as excinfo:
            reconcile(held, bad)

        assert excinfo.value.duplicate_pids == [5]
        assert set(held) == {1, 2}

    def test_malformed_is_adapter_unavailable(self):
        """Test MalformedSnapshot is handled like an unavailable source."""
        assert issubclass(MalformedSnapshot, AdapterUnavailable)


class TestHeldProcessSet:
    """Tests for the HeldProcessSet mapping."""

    def test_is_read_only(self):
        """Test the held set cannot be mutated in place."""
        held = HeldProcessSet({1: make_record(1)})
        with pytest.raises(TypeError):
            held[2] = make_record(2)

    def test_source_dict_is_copied(self):
        """Test later changes to the input dict don't leak in."""
        records = {1: make_record(1)}
        held = HeldProcessSet(records)
        records[2] = make_record(2)
        assert len(held) == 1

    def test_mapping_protocol(self):
        """Test lookup, membership and iteration by pid."""
        held = HeldProcessSet({1: make_record(1, "a"), 2: make_record(2, "b")})
        assert held[2].name == "b"
        assert 1 in held
        assert sorted(held) == [1, 2]
        assert held.get(9) is None
