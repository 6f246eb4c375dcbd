"""MCP server exposing Lang Reader project and breakpoint tools."""

from __future__ import annotations

from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from langreader.api import ProjectsApi
from langreader.config import ReaderSettings
from langreader.editor import BreakpointEditor
from langreader.errors import (
    BreakpointIndexError,
    LangReaderError,
    NoCurrentProjectError,
    RemoteError,
    ValidationError,
)
from langreader.models import Project
from langreader.reader_logging import setup_logging
from langreader.store import ProjectStore

mcp = FastMCP("lang-reader")


class ReaderSession:
    """One editing context: client, project cache and breakpoint editor."""

    def __init__(self, settings: Optional[ReaderSettings] = None, api: Optional[ProjectsApi] = None):
        self.settings = settings or ReaderSettings.from_env()
        self.api = api or ProjectsApi(self.settings)
        self.store = ProjectStore(self.api)
        self.editor = BreakpointEditor(self.store, self.api)

    async def select(self, project_id: Optional[str]) -> None:
        """Make ``project_id`` current unless it already is."""
        if not project_id:
            return
        current = self.store.current
        if current is not None and current.id == project_id:
            return
        if await self.store.fetch_project(project_id) is None:
            raise RemoteError(self.store.error or f"Could not load project {project_id}")

    async def aclose(self) -> None:
        await self.editor.wait_idle()
        await self.api.aclose()


_SESSION: Optional[ReaderSession] = None


def _session() -> ReaderSession:
    global _SESSION
    if _SESSION is None:
        _SESSION = ReaderSession()
    return _SESSION


def _serialize_project(project: Optional[Project]) -> Optional[Dict[str, Any]]:
    return project.to_dict() if project is not None else None


def _error_response(error: Exception) -> Dict[str, Any]:
    if isinstance(error, NoCurrentProjectError):
        suggestion = "Load a project with get_project or pass project_id"
    elif isinstance(error, BreakpointIndexError):
        suggestion = "Use an index from the breakpoints returned by get_project"
    elif isinstance(error, ValidationError):
        suggestion = "Check the arguments passed to the tool"
    else:
        suggestion = "Check that the Lang Reader API is running and LANG_READER_API_URL points at it"
    return {"error": str(error), "suggestion": suggestion}


@mcp.tool()
async def list_projects() -> Dict[str, Any]:
    """Fetch all projects, newest first."""

    session = _session()
    await session.store.fetch_projects()
    return {
        "projects": [p.to_dict() for p in session.store.sorted_projects],
        "error": session.store.error,
    }


@mcp.tool()
async def get_project(project_id: str) -> Dict[str, Any]:
    """Load a project and make it the current project for breakpoint tools."""

    session = _session()
    project = await session.store.fetch_project(project_id)
    if project is None:
        return {"error": session.store.error, "suggestion": "Check the project id with list_projects"}
    return {
        "project": project.to_dict(),
        "sorted_breakpoints": [bp.to_dict() for bp in session.store.sorted_breakpoints],
    }


@mcp.tool()
async def create_project(name: str) -> Dict[str, Any]:
    """Create an empty project."""

    try:
        project = await _session().store.add_project({"name": name})
    except LangReaderError as e:
        return _error_response(e)
    return {"project": project.to_dict(), "next_suggested_step": "get_project"}


@mcp.tool()
async def update_project(project_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Merge top-level fields into a project."""

    try:
        project = await _session().store.update_project(project_id, fields)
    except LangReaderError as e:
        return _error_response(e)
    return {"project": project.to_dict()}


@mcp.tool()
async def delete_project(project_id: str) -> Dict[str, Any]:
    """Delete a project."""

    try:
        await _session().store.remove_project(project_id)
    except LangReaderError as e:
        return _error_response(e)
    return {"deleted": project_id}


@mcp.tool()
async def add_breakpoint(time: float, note: str = "", project_id: Optional[str] = None) -> Dict[str, Any]:
    """Add a breakpoint to the current project (or ``project_id``).

    The change is applied locally at once and synced in the background."""

    session = _session()
    try:
        await session.select(project_id)
        project = session.editor.add_breakpoint({"time": time, "note": note})
    except LangReaderError as e:
        return _error_response(e)
    return {"project": _serialize_project(project), "pending_syncs": session.editor.pending(project.id)}


@mcp.tool()
async def update_breakpoint(
    index: int,
    time: Optional[float] = None,
    note: Optional[str] = None,
    project_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Change the time and/or note of the breakpoint at ``index``."""

    changes: Dict[str, Any] = {}
    if time is not None:
        changes["time"] = time
    if note is not None:
        changes["note"] = note

    session = _session()
    try:
        await session.select(project_id)
        project = session.editor.update_breakpoint_at(index, changes)
    except LangReaderError as e:
        return _error_response(e)
    return {"project": _serialize_project(project), "pending_syncs": session.editor.pending(project.id)}


@mcp.tool()
async def remove_breakpoint(index: int, project_id: Optional[str] = None) -> Dict[str, Any]:
    """Remove the breakpoint at ``index``."""

    session = _session()
    try:
        await session.select(project_id)
        project = session.editor.remove_breakpoint_at(index)
    except LangReaderError as e:
        return _error_response(e)
    return {"project": _serialize_project(project), "pending_syncs": session.editor.pending(project.id)}


@mcp.tool()
async def update_notes(notes_text: str, project_id: Optional[str] = None) -> Dict[str, Any]:
    """Replace the notes of the current project (waits for the server)."""

    session = _session()
    try:
        await session.select(project_id)
        project = await session.editor.update_notes(notes_text)
    except LangReaderError as e:
        return _error_response(e)
    return {"project": project.to_dict()}


@mcp.tool()
async def sync_status(wait: bool = False) -> Dict[str, Any]:
    """Report background breakpoint syncs; ``wait`` blocks until they finish."""

    session = _session()
    if wait:
        await session.editor.wait_idle()
    current = session.store.current
    return {
        "pending_syncs": session.editor.pending(),
        "current_project": _serialize_project(current),
        "error": session.store.error,
    }


@mcp.resource("lang-reader://projects")
async def resource_projects() -> str:
    """Resource view listing cached projects."""

    session = _session()
    if not len(session.store):
        await session.store.fetch_projects()
    projects = session.store.sorted_projects
    if not projects:
        return session.store.error or "No projects have been created yet."

    lines = ["Lang Reader Projects"]
    for project in projects:
        lines.append("")
        lines.append(f"- {project.id}: {project.name or 'untitled'}")
        lines.append(f"  Created: {project.created_at}")
        lines.append(f"  Breakpoints: {len(project.breakpoints)}")

    return "\n".join(lines)


def main() -> None:
    settings = ReaderSettings.from_env()
    setup_logging(settings.log_level, settings.log_file)
    mcp.run()


if __name__ == "__main__":
    main()
