"""In-memory project collection with a current-project slot.

``ProjectStore`` keeps the projects fetched from the remote store keyed by
identifier, the project currently being edited, a loading flag and a short
user-facing error message. Projects are immutable values: every change
replaces the stored object and notifies subscribers.

A store instance is one editing context. Separate sessions use separate
stores, so nothing here is a module-level singleton.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from .api import ProjectsApi
from .errors import ValidationError
from .models import Breakpoint, Project

logger = logging.getLogger("langreader.store")

Subscriber = Callable[[str, Optional[str]], Any]


class ProjectStore:
    """Project collection cache backed by a :class:`ProjectsApi`."""

    def __init__(self, api: ProjectsApi):
        self.api = api
        self._projects: Dict[str, Project] = {}
        self._current: Optional[Project] = None
        self.loading = False
        self._error: Optional[str] = None
        self._subscribers: List[Subscriber] = []
        self._pending: Callable[[str], int] = lambda project_id: 0

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def projects(self) -> List[Project]:
        """Cached projects in insertion order."""
        return list(self._projects.values())

    @property
    def current(self) -> Optional[Project]:
        return self._current

    @property
    def error(self) -> Optional[str]:
        return self._error

    def get(self, project_id: str) -> Optional[Project]:
        return self._projects.get(project_id)

    def __contains__(self, project_id: object) -> bool:
        return project_id in self._projects

    def __len__(self) -> int:
        return len(self._projects)

    @property
    def sorted_projects(self) -> List[Project]:
        """Projects ordered newest first by creation timestamp."""
        return sorted(self._projects.values(), key=lambda p: p.created_at or "", reverse=True)

    @property
    def sorted_breakpoints(self) -> List[Breakpoint]:
        if self._current is None:
            return []
        return self._current.sorted_breakpoints()

    # ------------------------------------------------------------------
    # Change notification
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback(event, project_id)``; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, event: str, project_id: Optional[str] = None) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event, project_id)
            except Exception as e:
                logger.error(f"Subscriber failed for event {event}: {e}", exc_info=True)

    def set_error(self, message: Optional[str]) -> None:
        if message == self._error:
            return
        self._error = message
        self._notify("error_changed", None)

    def clear_error(self) -> None:
        self.set_error(None)

    # ------------------------------------------------------------------
    # Cache primitives
    # ------------------------------------------------------------------

    def set_current(self, project: Optional[Project]) -> None:
        """Replace the current-project slot."""
        self._current = project
        self._notify("project_loaded", project.id if project else None)

    def upsert(self, project: Project) -> None:
        """Insert or replace the entry for ``project.id``; refresh current if it matches."""
        if not project.id:
            raise ValidationError("Project ID is required")
        self._projects[project.id] = project
        if self._current is not None and self._current.id == project.id:
            self._current = project
        self._notify("project_upserted", project.id)

    def refresh(self, project: Project, *, event: str = "project_upserted") -> None:
        """Replace ``project`` wherever it is already held, without inserting it."""
        if self._current is not None and self._current.id == project.id:
            self._current = project
        if project.id in self._projects:
            self._projects[project.id] = project
        self._notify(event, project.id)

    def remove(self, project_id: str) -> None:
        """Drop an entry and clear current when it is the same project."""
        self._projects.pop(project_id, None)
        if self._current is not None and self._current.id == project_id:
            self._current = None
        self._notify("project_removed", project_id)

    def replace_breakpoints(
        self,
        project_id: str,
        breakpoints: List[Breakpoint],
        *,
        event: str = "breakpoints_changed",
    ) -> None:
        """Write one breakpoint list into current and collection entries together."""
        breakpoints = list(breakpoints)
        if self._current is not None and self._current.id == project_id:
            self._current = self._current.evolve(breakpoints=breakpoints)
        entry = self._projects.get(project_id)
        if entry is not None:
            self._projects[project_id] = entry.evolve(breakpoints=breakpoints)
        self._notify(event, project_id)

    def local_breakpoints(self, project_id: str) -> Optional[List[Breakpoint]]:
        """Breakpoints held locally for a project, preferring the current slot."""
        if self._current is not None and self._current.id == project_id:
            return self._current.breakpoints
        entry = self._projects.get(project_id)
        return entry.breakpoints if entry is not None else None

    def track_pending(self, check: Callable[[str], int]) -> None:
        """Register the callable reporting unconfirmed breakpoint syncs per project."""
        self._pending = check

    def with_unconfirmed(self, project: Project) -> Project:
        """``project`` with the local breakpoints kept while syncs are unconfirmed."""
        if project.id and self._pending(project.id):
            local = self.local_breakpoints(project.id)
            if local is not None:
                return project.evolve(breakpoints=local)
        return project

    async def load(self) -> None:
        """Replace the whole collection from a full remote fetch."""
        projects = await self.api.get_projects()
        fresh = {p.id: self.with_unconfirmed(p) for p in projects if p.id}
        self._projects = fresh
        if self._current is not None and self._current.id in fresh:
            self._current = fresh[self._current.id]
        self._notify("projects_loaded", None)

    async def load_one(self, project_id: str) -> Project:
        """Fetch one project and make it current, refreshing its collection entry."""
        project = self.with_unconfirmed(await self.api.get_project(project_id))
        if project.id in self._projects:
            self._projects[project.id] = project
        self.set_current(project)
        return project

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def fetch_projects(self) -> None:
        """Load the project list; failures only set the error flag."""
        self.loading = True
        self.clear_error()
        try:
            await self.load()
        except Exception as e:
            logger.error(f"Failed to fetch projects: {e}")
            self.set_error("Failed to load project list")
        finally:
            self.loading = False

    async def fetch_project(self, project_id: str) -> Optional[Project]:
        """Load one project as current; failures only set the error flag."""
        self.loading = True
        self.clear_error()
        try:
            return await self.load_one(project_id)
        except Exception as e:
            logger.error(f"Failed to fetch project {project_id}: {e}")
            self.set_error("Failed to load project details")
            return None
        finally:
            self.loading = False

    async def add_project(self, data: Mapping[str, Any]) -> Project:
        self.loading = True
        self.clear_error()
        try:
            project = await self.api.create_project(data)
            self.upsert(project)
            return project
        except Exception as e:
            logger.error(f"Failed to create project: {e}")
            self.set_error("Failed to create project")
            raise
        finally:
            self.loading = False

    async def update_project(self, project_id: Optional[str], data: Mapping[str, Any]) -> Project:
        if not project_id:
            self.set_error("Cannot update project: Missing ID")
            raise ValidationError("Project ID is required")

        self.loading = True
        self.clear_error()
        try:
            project = await self.api.update_project(project_id, data)
            self.refresh(project)
            return project
        except Exception as e:
            logger.error(f"Failed to update project {project_id}: {e}")
            self.set_error("Failed to update project")
            raise
        finally:
            self.loading = False

    async def remove_project(self, project_id: Optional[str]) -> None:
        if not project_id:
            self.set_error("Cannot delete project: Missing ID")
            raise ValidationError("Project ID is required")

        self.loading = True
        self.clear_error()
        try:
            await self.api.delete_project(project_id)
            self.remove(project_id)
        except Exception as e:
            logger.error(f"Failed to delete project {project_id}: {e}")
            self.set_error("Failed to delete project")
            raise
        finally:
            self.loading = False
