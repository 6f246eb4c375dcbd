"""Unit tests for Lang Reader models.

This module tests the project and breakpoint data structures, their
document conversion and their value-style updates.
"""

import pytest

from langreader.errors import ValidationError
from langreader.models import Breakpoint, Project, sort_breakpoints


class TestBreakpoint:
    """Test cases for Breakpoint model."""

    def test_from_dict_defaults_note(self):
        """Test that a missing or null note becomes an empty string."""
        assert Breakpoint.from_dict({"time": 3}).note == ""
        assert Breakpoint.from_dict({"time": 3, "note": None}).note == ""

    def test_from_dict_requires_time(self):
        """Test that time is mandatory."""
        with pytest.raises(ValidationError, match="time is required"):
            Breakpoint.from_dict({"note": "x"})

    def test_from_dict_rejects_non_numeric_time(self):
        with pytest.raises(ValidationError):
            Breakpoint.from_dict({"time": "soon"})
        with pytest.raises(ValidationError):
            Breakpoint.from_dict({"time": True})

    def test_numeric_string_time_is_converted(self):
        assert Breakpoint.from_dict({"time": "1.5"}).time == 1.5

    def test_to_dict_omits_missing_id(self):
        """Test that legacy breakpoints serialize without an id key."""
        assert Breakpoint(time=1, note="a").to_dict() == {"time": 1, "note": "a"}
        assert Breakpoint(time=1, note="a", id="b1").to_dict() == {"time": 1, "note": "a", "id": "b1"}

    def test_with_id_assigns_once(self):
        """Test that with_id keeps an existing id and creates a missing one."""
        bp = Breakpoint(time=1).with_id()
        assert bp.id
        assert bp.with_id() is bp
        assert Breakpoint(time=1).with_id().id != bp.id

    def test_merged_changes_only_given_fields(self):
        """Test shallow merge of a partial update."""
        bp = Breakpoint(time=4, note="old", id="b1")
        merged = bp.merged({"note": "new"})

        assert merged == Breakpoint(time=4, note="new", id="b1")
        assert bp.note == "old"

    def test_merged_rejects_unknown_fields(self):
        with pytest.raises(ValidationError, match="Unknown breakpoint fields: colour"):
            Breakpoint(time=1).merged({"colour": "red"})

    def test_coerce(self):
        """Test building a breakpoint from a mapping or passing one through."""
        bp = Breakpoint(time=2, note="x")
        assert Breakpoint.coerce(bp) is bp
        assert Breakpoint.coerce({"time": 2, "note": "x"}) == bp
        with pytest.raises(ValidationError):
            Breakpoint.coerce(2)


class TestSorting:
    """Test cases for breakpoint ordering."""

    def test_sort_is_stable_for_equal_times(self):
        """Test that ties keep their insertion order."""
        first = Breakpoint(time=5, note="first")
        second = Breakpoint(time=5, note="second")
        early = Breakpoint(time=1, note="early")

        assert sort_breakpoints([first, second, early]) == [early, first, second]


class TestProject:
    """Test cases for Project model."""

    def test_from_dict_full_document(self):
        """Test reading the wire shape."""
        project = Project.from_dict({
            "_id": "p1",
            "createdAt": "2024-01-01T00:00:00.000Z",
            "breakpoints": [{"time": 10, "note": "a", "id": "b1"}],
            "notesText": "hello",
            "name": "Lesson 1",
        })

        assert project.id == "p1"
        assert project.created_at == "2024-01-01T00:00:00.000Z"
        assert project.breakpoints == [Breakpoint(time=10, note="a", id="b1")]
        assert project.notes_text == "hello"
        assert project.name == "Lesson 1"

    def test_from_dict_fills_missing_breakpoints_and_notes(self):
        """Test that breakpoints are always a list and notes always a string."""
        project = Project.from_dict({"_id": "p1", "breakpoints": None, "notesText": None})

        assert project.breakpoints == []
        assert project.notes_text == ""

    def test_from_dict_rejects_non_mapping(self):
        with pytest.raises(ValidationError):
            Project.from_dict(["not", "a", "project"])

    def test_to_dict_round_trips_extra_fields(self):
        """Test that unknown document fields are preserved."""
        data = {
            "_id": "p1",
            "createdAt": "2024-01-01T00:00:00.000Z",
            "breakpoints": [{"time": 1, "note": ""}],
            "notesText": "",
            "title": "Podcast",
        }

        assert Project.from_dict(data).to_dict() == data

    def test_evolve_returns_new_value(self):
        """Test that evolve leaves the original untouched."""
        project = Project(id="p1", breakpoints=[Breakpoint(time=1)])
        updated = project.evolve(breakpoints=[])

        assert updated is not project
        assert project.breakpoints == [Breakpoint(time=1)]
        assert updated.breakpoints == []

    def test_sorted_breakpoints(self):
        project = Project(id="p1", breakpoints=[Breakpoint(time=9), Breakpoint(time=2)])
        assert [bp.time for bp in project.sorted_breakpoints()] == [2, 9]

    def test_breakpoint_position(self):
        project = Project(id="p1", breakpoints=[Breakpoint(time=1, id="a"), Breakpoint(time=2, id="b")])
        assert project.breakpoint_position("b") == 1
        assert project.breakpoint_position("zzz") == -1

    def test_validate(self):
        """Test validation issues for missing ids and duplicate breakpoint ids."""
        project = Project(breakpoints=[Breakpoint(time=1, id="x"), Breakpoint(time=2, id="x")])
        issues = project.validate()

        assert "Project ID is required" in issues
        assert "Duplicate breakpoint id: x" in issues
        assert Project(id="p1").validate() == []
