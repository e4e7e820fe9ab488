"""
Unit tests for the data model.

Tests cover:
- Record wire conversion and strict parsing
- DataSnapshot children ordering
- Path joining and key validation
"""

import pytest
from pydantic import ValidationError

from procloud_sdk.errors import InputError
from procloud_sdk.models import DataSnapshot, Record, Session, check_key, child_path


class TestRecord:
    """Tests for Record."""

    def test_from_wire(self):
        record = Record.from_wire({"id": "n1", "uid": "u1", "content": "hello"})
        assert record.id == "n1"
        assert record.owner_id == "u1"
        assert record.content == "hello"

    def test_to_wire_uses_uid(self):
        record = Record(id="n1", owner_id="u1", content="hello")
        assert record.to_wire() == {"id": "n1", "uid": "u1", "content": "hello"}

    def test_unknown_fields_ignored(self):
        record = Record.from_wire({"id": "n1", "uid": "u1", "content": "x", "color": "red"})
        assert record == Record(id="n1", owner_id="u1", content="x")

    @pytest.mark.parametrize(
        "value",
        [
            "just a string",
            42,
            {"id": "n1", "uid": "u1"},
            {"id": 7, "uid": "u1", "content": "x"},
            {"id": "n1", "uid": "u1", "content": None},
        ],
    )
    def test_malformed_rejected(self, value):
        with pytest.raises(ValidationError):
            Record.from_wire(value)

    def test_immutable(self):
        record = Record(id="n1", owner_id="u1", content="x")
        with pytest.raises(ValidationError):
            record.content = "y"


class TestSession:
    """Tests for Session."""

    def test_profile(self):
        session = Session(user_id="u1", email="ada@example.com")
        assert session.to_profile() == {"uid": "u1", "email": "ada@example.com"}


class TestDataSnapshot:
    """Tests for DataSnapshot."""

    def test_missing_node(self):
        snapshot = DataSnapshot("n1")
        assert not snapshot.exists
        assert list(snapshot.children()) == []

    def test_children_ordered_by_key(self):
        snapshot = DataSnapshot("u1", {"b": 2, "a": 1, "c": 3})
        assert [(c.key, c.value) for c in snapshot.children()] == [("a", 1), ("b", 2), ("c", 3)]

    def test_array_children_skip_holes(self):
        snapshot = DataSnapshot("u1", [None, "x", None, "y"])
        assert [(c.key, c.value) for c in snapshot.children()] == [("1", "x"), ("3", "y")]

    def test_leaf_has_no_children(self):
        assert list(DataSnapshot("k", "leaf").children()) == []

    def test_child(self):
        snapshot = DataSnapshot("u1", {"a": 1})
        assert snapshot.child("a").value == 1
        assert not snapshot.child("zz").exists


class TestPaths:
    """Tests for path helpers."""

    def test_child_path(self):
        assert child_path("Data", "u1", "n1") == "Data/u1/n1"
        assert child_path("Data", "u1", "") == "Data/u1"
        assert child_path("/Data/", "u1") == "Data/u1"

    @pytest.mark.parametrize("key", ["n1", "note-2024_01", "Zürich"])
    def test_valid_keys(self, key):
        assert check_key(key, "record_id") is None

    @pytest.mark.parametrize("key", ["", "   ", None, "a/b", "a.b", "a$b", "a#b", "a[0]", "tab\tkey"])
    def test_invalid_keys(self, key):
        error = check_key(key, "record_id")
        assert isinstance(error, InputError)
        assert error.field_name == "record_id"
