"""
Tests for snapshot decoding and diffing.
"""

import pytest

from switchboard.src.domain.models.snapshot import Snapshot, compute_diff, decode_value


class TestDecodeValue:

    def test_json_value_is_parsed(self):
        assert decode_value('{"a": 1}') == {"a": 1}

    def test_non_json_falls_back_to_raw_string(self):
        assert decode_value("QUJD") == "QUJD"

    def test_none_is_returned_unchanged(self):
        assert decode_value(None) is None


class TestComputeDiff:

    def test_identical_snapshots_have_no_changes(self):
        old = Snapshot.from_rows({"a": "1", "b": '{"x": [1, 2]}'})
        new = Snapshot.from_rows({"a": "1", "b": '{"x": [1, 2]}'})

        diff = compute_diff(old, new)

        assert diff.has_changes is False
        assert diff.changed_fields == []
        assert diff.summary == "No changes"

    def test_single_changed_value(self):
        old = Snapshot.from_rows({"a": "1", "b": "2"})
        new = Snapshot.from_rows({"a": "1", "b": "3"})

        diff = compute_diff(old, new)

        assert diff.changed_fields == ["b: changed"]
        assert diff.summary == "1 fields changed"

    def test_added_and_removed_are_asymmetric(self):
        a = Snapshot.from_rows({"k": "1"})
        b = Snapshot.from_rows({"k": "1", "extra": "x"})

        assert compute_diff(a, b).changed_fields == ["extra: added"]
        assert compute_diff(b, a).changed_fields == ["extra: removed"]

    def test_reordered_json_keys_are_not_a_change(self):
        old = Snapshot.from_rows({"cfg": '{"a": 1, "b": 2}'})
        new = Snapshot.from_rows({"cfg": '{"b": 2, "a": 1}'})

        assert compute_diff(old, new).has_changes is False

    def test_new_keys_listed_before_removed_keys(self):
        old = Snapshot.from_rows({"gone": "1", "same": "1", "mod": "1"})
        new = Snapshot.from_rows({"same": "1", "mod": "2", "fresh": "1"})

        diff = compute_diff(old, new)

        assert diff.changed_fields == ["mod: changed", "fresh: added", "gone: removed"]
        assert diff.summary == "3 fields changed"


class TestSnapshot:

    def test_snapshot_is_read_only(self):
        snapshot = Snapshot.from_rows({"a": "1"})
        with pytest.raises(TypeError):
            snapshot.data["b"] = 2

    def test_to_dict_returns_copy(self):
        snapshot = Snapshot.from_rows({"a": "[1]"})
        copy = snapshot.to_dict()
        copy["a"] = "changed"
        assert snapshot.get("a") == [1]
        assert "a" in snapshot
        assert len(snapshot) == 1
