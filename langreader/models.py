"""Data models for Lang Reader projects.

This module contains the core data structures shared by the REST client,
the project cache and the backend: projects and their time-coded
breakpoints. Both convert to and from the JSON document shape used on the
wire (``{_id, createdAt, breakpoints: [{id, time, note}], notesText}``).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .errors import ValidationError


BREAKPOINT_FIELDS = ("time", "note")


def new_breakpoint_id() -> str:
    """Return a fresh synthetic breakpoint identifier."""
    return uuid.uuid4().hex


def utc_timestamp() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _coerce_time(value: Any) -> float | int:
    if isinstance(value, bool):
        raise ValidationError(f"Breakpoint time must be numeric, got: {value!r}")
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Breakpoint time must be numeric, got: {value!r}") from None


@dataclass(frozen=True, slots=True)
class Breakpoint:
    """A time-coded annotation inside a project."""

    time: float | int
    note: str = ""
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        data: Dict[str, Any] = {"time": self.time, "note": self.note}
        if self.id is not None:
            data["id"] = self.id
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Breakpoint":
        """Create from dictionary representation."""
        if not isinstance(data, Mapping):
            raise ValidationError(f"Breakpoint must be an object, got {type(data).__name__}")
        if "time" not in data:
            raise ValidationError("Breakpoint time is required")
        note = data.get("note")
        return cls(
            time=_coerce_time(data["time"]),
            note="" if note is None else str(note),
            id=data.get("id"),
        )

    @classmethod
    def coerce(cls, value: "Breakpoint | Mapping[str, Any]") -> "Breakpoint":
        """Accept a Breakpoint or a ``{time, note}`` mapping."""
        if isinstance(value, Breakpoint):
            return value
        if isinstance(value, Mapping):
            return cls.from_dict(value)
        raise ValidationError(f"Cannot build a breakpoint from {type(value).__name__}")

    def with_id(self) -> "Breakpoint":
        """Return this breakpoint, assigning a synthetic id if it has none."""
        if self.id:
            return self
        return replace(self, id=new_breakpoint_id())

    def merged(self, partial: Mapping[str, Any]) -> "Breakpoint":
        """Shallow-merge ``time``/``note`` fields over this breakpoint."""
        unknown = sorted(set(partial) - set(BREAKPOINT_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown breakpoint fields: {', '.join(unknown)}")
        changes: Dict[str, Any] = {}
        if "time" in partial:
            changes["time"] = _coerce_time(partial["time"])
        if "note" in partial:
            changes["note"] = "" if partial["note"] is None else str(partial["note"])
        return replace(self, **changes)


def sort_breakpoints(breakpoints: Iterable[Breakpoint]) -> List[Breakpoint]:
    """Order breakpoints ascending by time; ties keep their current order."""
    return sorted(breakpoints, key=lambda bp: bp.time)


@dataclass(frozen=True, slots=True)
class Project:
    """A project document: breakpoints plus a notes blob.

    Instances are treated as values. Every change goes through
    :meth:`evolve`, which returns a new object.
    """

    id: Optional[str] = None
    created_at: Optional[str] = None
    breakpoints: List[Breakpoint] = field(default_factory=list)
    notes_text: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON document shape."""
        data: Dict[str, Any] = dict(self.extra)
        if self.id is not None:
            data["_id"] = self.id
        if self.created_at is not None:
            data["createdAt"] = self.created_at
        data["breakpoints"] = [bp.to_dict() for bp in self.breakpoints]
        data["notesText"] = self.notes_text
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Project":
        """Create from the JSON document shape.

        Missing or null ``breakpoints`` become an empty list and missing or
        null ``notesText`` becomes an empty string.
        """
        if not isinstance(data, Mapping):
            raise ValidationError(f"Project document must be an object, got {type(data).__name__}")
        known = {"_id", "createdAt", "breakpoints", "notesText"}
        raw_id = data.get("_id")
        notes = data.get("notesText")
        return cls(
            id=None if raw_id is None else str(raw_id),
            created_at=data.get("createdAt"),
            breakpoints=[Breakpoint.from_dict(bp) for bp in data.get("breakpoints") or []],
            notes_text="" if notes is None else str(notes),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def evolve(self, **changes: Any) -> "Project":
        """Return a copy with the given fields replaced."""
        if "breakpoints" in changes:
            changes["breakpoints"] = list(changes["breakpoints"])
        return replace(self, **changes)

    def sorted_breakpoints(self) -> List[Breakpoint]:
        """Breakpoints ordered ascending by time."""
        return sort_breakpoints(self.breakpoints)

    def breakpoint_position(self, breakpoint_id: str) -> int:
        """Index of the breakpoint with the given id, or -1."""
        for position, bp in enumerate(self.breakpoints):
            if bp.id == breakpoint_id:
                return position
        return -1

    @property
    def name(self) -> Optional[str]:
        """Display name, when the document carries one."""
        return self.extra.get("name") or self.extra.get("title")

    def validate(self) -> List[str]:
        """Validate the project and return any issues."""
        issues = []

        if not self.id:
            issues.append("Project ID is required")
        if not isinstance(self.notes_text, str):
            issues.append("Notes text must be a string")
        seen = set()
        for bp in self.breakpoints:
            if bp.id is None:
                continue
            if bp.id in seen:
                issues.append(f"Duplicate breakpoint id: {bp.id}")
            seen.add(bp.id)

        return issues
