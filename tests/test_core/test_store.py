"""Tests for the per-run result store."""

import pytest

from coachflow.core import ResultStore
from coachflow.core.types import ResultStatus


class TestResultStore:
    """Tests for ResultStore."""

    def test_put_and_get(self):
        """Stored records keep provenance and value."""
        store = ResultStore()
        store.put("requirements", "load_program_requirements", "call_1", ResultStatus.SUCCESS, {"a": 1})

        record = store.get("requirements")
        assert record.tool_name == "load_program_requirements"
        assert record.tool_use_id == "call_1"
        assert record.value == {"a": 1}
        assert record.succeeded is True
        assert record.revision == 1

    def test_put_overwrites_and_bumps_revision(self):
        """Re-invoking a tool replaces the earlier result under the same key."""
        store = ResultStore()
        store.put("k", "tool", "call_1", ResultStatus.ERROR, {"error": "boom"})
        store.put("k", "tool", "call_2", ResultStatus.SUCCESS, {"ok": True})

        record = store.get("k")
        assert record.succeeded is True
        assert record.tool_use_id == "call_2"
        assert record.revision == 2
        assert len(store) == 1

    def test_value_default(self):
        """value() returns the default for missing keys."""
        store = ResultStore()
        assert store.value("missing") is None
        assert store.value("missing", {}) == {}

    def test_replace_keeps_provenance(self):
        """replace() rewrites only the value."""
        store = ResultStore()
        store.put("phase_workouts:p1", "generate_phase_workouts", "call_1", ResultStatus.SUCCESS, [1, 2])
        store.replace("phase_workouts:p1", [1])

        record = store.get("phase_workouts:p1")
        assert record.value == [1]
        assert record.tool_use_id == "call_1"
        assert record.revision == 2

    def test_replace_missing_key_raises(self):
        """A rewrite cannot introduce a result no tool produced."""
        store = ResultStore()
        with pytest.raises(KeyError):
            store.replace("nope", {})

    def test_with_prefix_and_successful(self):
        """Prefix lookup keeps insertion order; successful() skips errors."""
        store = ResultStore()
        store.put("phase_workouts:b", "t", "1", ResultStatus.SUCCESS, "b")
        store.put("validation", "v", "2", ResultStatus.ERROR, {"error": "x"})
        store.put("phase_workouts:a", "t", "3", ResultStatus.SUCCESS, "a")

        assert [r.key for r in store.with_prefix("phase_workouts:")] == [
            "phase_workouts:b",
            "phase_workouts:a",
        ]
        assert {r.key for r in store.successful()} == {"phase_workouts:a", "phase_workouts:b"}

    def test_snapshot_is_a_copy(self):
        """Mutating the store after a snapshot does not change the snapshot."""
        store = ResultStore()
        store.put("a", "t", "1", ResultStatus.SUCCESS, 1)
        snapshot = store.snapshot()
        store.put("b", "t", "2", ResultStatus.SUCCESS, 2)

        assert list(snapshot) == ["a"]
        assert "b" in store

    def test_snapshot_values_are_independent(self):
        """Mutating a snapshot value leaves the stored value untouched."""
        store = ResultStore()
        store.put("save", "save_program_to_database", "1", ResultStatus.SUCCESS, {"program_id": "p1"})
        snapshot = store.snapshot()
        snapshot["save"].value["program_id"] = "changed"

        assert store.value("save") == {"program_id": "p1"}
        assert snapshot["save"].succeeded is True

    def test_clear(self):
        """clear() empties the store."""
        store = ResultStore()
        store.put("a", "t", "1", ResultStatus.SUCCESS, 1)
        store.clear()
        assert len(store) == 0
        assert list(store) == []
