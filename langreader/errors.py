"""Error types raised by Lang Reader."""

from __future__ import annotations

from typing import Optional


class LangReaderError(Exception):
    """Base class for all Lang Reader errors."""


class NoCurrentProjectError(LangReaderError):
    """A breakpoint or notes operation was requested with no project loaded."""


class InvalidProjectError(LangReaderError):
    """The current project has no identifier."""


class ValidationError(LangReaderError, ValueError):
    """A required argument is missing or malformed."""


class BreakpointIndexError(LangReaderError, IndexError):
    """A positional breakpoint index is outside the current list."""

    def __init__(self, index: int, length: int):
        super().__init__(f"Breakpoint index {index} out of range for {length} breakpoints")
        self.index = index
        self.length = length


class RemoteError(LangReaderError):
    """The remote project store could not be reached or rejected a request."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProjectNotFoundError(LangReaderError, KeyError):
    """No stored project matches the given identifier."""

    def __init__(self, project_id: str):
        super().__init__(project_id)
        self.project_id = project_id

    def __str__(self) -> str:
        return f"Project '{self.project_id}' not found"
