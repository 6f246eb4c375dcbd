"""REST client for the remote project store.

The store exposes five endpoints under ``/projects`` (list, get, create,
update, delete). Breakpoint and notes operations are built on top of them
as read-then-update sequences against the generic update endpoint.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from .config import ReaderSettings
from .errors import RemoteError, ValidationError
from .models import Breakpoint, Project, sort_breakpoints, utc_timestamp
from .reader_logging import log_performance

logger = logging.getLogger("langreader.api")


def _require_id(project_id: Optional[str]) -> str:
    if not project_id:
        raise ValidationError("Project ID is required")
    return str(project_id)


def _serialize(data: Mapping[str, Any]) -> Dict[str, Any]:
    payload = dict(data)
    if "breakpoints" in payload:
        payload["breakpoints"] = [
            bp.to_dict() if isinstance(bp, Breakpoint) else dict(bp)
            for bp in payload["breakpoints"] or []
        ]
    # notesText always goes out as a string
    if "notesText" in payload:
        payload["notesText"] = "" if payload["notesText"] is None else str(payload["notesText"])
    return payload


class ProjectsApi:
    """Async client for the ``/projects`` resource."""

    def __init__(
        self,
        settings: Optional[ReaderSettings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or ReaderSettings.from_env()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=self.settings.api_url,
            timeout=self.settings.timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ProjectsApi":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning(f"{method} {path} returned HTTP {status}")
            raise RemoteError(f"{method} {path} failed with HTTP {status}", status_code=status) from e
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise RemoteError(f"{method} {path} failed: {e}") from e
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(f"Invalid JSON from {response.request.url}") from e

    def _project(self, response: httpx.Response) -> Project:
        try:
            return Project.from_dict(self._json(response))
        except ValidationError as e:
            raise RemoteError(f"Malformed project document: {e}") from e

    # ------------------------------------------------------------------
    # Resource endpoints
    # ------------------------------------------------------------------

    @log_performance("api_get_projects")
    async def get_projects(self) -> List[Project]:
        """Fetch every project."""
        response = await self._request("GET", "/projects")
        data = self._json(response)
        if not isinstance(data, list):
            raise RemoteError("Expected a list of projects")
        try:
            return [Project.from_dict(item) for item in data]
        except ValidationError as e:
            raise RemoteError(f"Malformed project document: {e}") from e

    @log_performance("api_get_project")
    async def get_project(self, project_id: str) -> Project:
        """Fetch a single project."""
        project_id = _require_id(project_id)
        return self._project(await self._request("GET", f"/projects/{project_id}"))

    @log_performance("api_create_project")
    async def create_project(self, data: Mapping[str, Any]) -> Project:
        """Create a project with an empty breakpoint list and empty notes."""
        payload = {
            **_serialize(data),
            "createdAt": utc_timestamp(),
            "breakpoints": [],
            "notesText": "",
        }
        return self._project(await self._request("POST", "/projects", json=payload))

    @log_performance("api_update_project")
    async def update_project(self, project_id: str, data: Mapping[str, Any]) -> Project:
        """Send a partial project document and return the stored result."""
        project_id = _require_id(project_id)
        payload = _serialize(data)
        return self._project(await self._request("PUT", f"/projects/{project_id}", json=payload))

    @log_performance("api_delete_project")
    async def delete_project(self, project_id: str) -> None:
        project_id = _require_id(project_id)
        await self._request("DELETE", f"/projects/{project_id}")

    # ------------------------------------------------------------------
    # Breakpoint and notes helpers
    # ------------------------------------------------------------------

    async def add_breakpoint(self, project_id: str, breakpoint: Breakpoint) -> Project:
        """Append a breakpoint to the remote list.

        The remote project is read again first, so breakpoints added by other
        clients since the local copy was loaded are kept. The full list is
        sent back ordered by time.
        """
        project_id = _require_id(project_id)
        project = await self.get_project(project_id)
        updated = sort_breakpoints([*project.breakpoints, breakpoint])
        return await self.update_project(project_id, {"breakpoints": updated})

    async def update_breakpoint(
        self,
        project_id: str,
        index: int,
        partial: Mapping[str, Any],
        *,
        breakpoint_id: Optional[str] = None,
    ) -> Project:
        """Merge ``partial`` into one remote breakpoint.

        The breakpoint is located by ``breakpoint_id`` when given, else by
        ``index``. When it no longer exists remotely nothing is written and
        the remote project is returned as-is.
        """
        project_id = _require_id(project_id)
        project = await self.get_project(project_id)
        position = self._locate(project, index, breakpoint_id)
        if position < 0:
            logger.warning(
                f"Breakpoint {breakpoint_id or index} not found in remote project {project_id}, skipping update"
            )
            return project
        updated = list(project.breakpoints)
        updated[position] = updated[position].merged(partial)
        return await self.update_project(project_id, {"breakpoints": updated})

    async def delete_breakpoint(
        self,
        project_id: str,
        index: int,
        *,
        breakpoint_id: Optional[str] = None,
    ) -> Project:
        """Remove one remote breakpoint, located like :meth:`update_breakpoint`."""
        project_id = _require_id(project_id)
        project = await self.get_project(project_id)
        position = self._locate(project, index, breakpoint_id)
        if position < 0:
            logger.warning(
                f"Breakpoint {breakpoint_id or index} not found in remote project {project_id}, skipping delete"
            )
            return project
        updated = [bp for i, bp in enumerate(project.breakpoints) if i != position]
        return await self.update_project(project_id, {"breakpoints": updated})

    async def update_notes(self, project_id: str, notes_text: Optional[str]) -> Project:
        project_id = _require_id(project_id)
        notes = "" if notes_text is None else str(notes_text)
        return await self.update_project(project_id, {"notesText": notes})

    @staticmethod
    def _locate(project: Project, index: int, breakpoint_id: Optional[str]) -> int:
        if breakpoint_id:
            return project.breakpoint_position(breakpoint_id)
        if 0 <= index < len(project.breakpoints):
            return index
        return -1
