"""Optimistic breakpoint editing for the current project.

``BreakpointEditor`` applies breakpoint changes to its :class:`ProjectStore`
immediately and pushes them to the remote store from background tasks.
When a background call returns, the server's breakpoint list replaces the
local one only if that call is still the most recent one issued for the
project; older completions are dropped.

Background calls for one project run one after another, each starting once
the previous call for the same project has finished, so the remote
read-then-update sequences never overlap. Calls for different projects run
concurrently. Nothing is cancelled or retried; a failed call is logged and
the optimistic local state stays in place.

Notes are not optimistic: :meth:`BreakpointEditor.update_notes` awaits the
server and then adopts its copy of the project.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set

from .api import ProjectsApi
from .errors import (
    BreakpointIndexError,
    InvalidProjectError,
    NoCurrentProjectError,
    ValidationError,
)
from .models import Breakpoint, Project, sort_breakpoints
from .reader_logging import log_breakpoint_sync, log_error_with_context
from .store import ProjectStore

logger = logging.getLogger("langreader.editor")

RemoteCall = Callable[[], Awaitable[Project]]


class BreakpointEditor:
    """Breakpoint and notes mutations against a store's current project."""

    def __init__(self, store: ProjectStore, api: Optional[ProjectsApi] = None):
        self.store = store
        self.api = api or store.api
        self._generations: Dict[str, int] = {}
        self._tasks: Dict[str, Set[asyncio.Task]] = {}
        self._tails: Dict[str, asyncio.Task] = {}
        store.track_pending(self.pending)

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def _require_current(self, action: str) -> Project:
        current = self.store.current
        if current is None:
            self.store.set_error(f"No project selected, cannot {action}")
            raise NoCurrentProjectError(f"No project selected, cannot {action}")
        if not current.id:
            self.store.set_error("Invalid project: Missing ID")
            raise InvalidProjectError("Invalid project: Missing ID")
        return current

    @staticmethod
    def _require_index(current: Project, index: int) -> int:
        length = len(current.breakpoints)
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < length:
            raise BreakpointIndexError(index, length)
        return index

    @staticmethod
    def _running_loop() -> asyncio.AbstractEventLoop:
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            raise RuntimeError("Breakpoint operations must be called from a running event loop") from None

    # ------------------------------------------------------------------
    # Breakpoint operations
    # ------------------------------------------------------------------

    def add_breakpoint(self, breakpoint: Breakpoint | Mapping[str, Any]) -> Project:
        """Insert a breakpoint in time order and sync it in the background.

        Returns the updated current project. The remote step re-reads the
        server copy before appending, so the server result may contain
        breakpoints this session has not seen yet.
        """
        current = self._require_current("add breakpoint")
        new_bp = Breakpoint.coerce(breakpoint).with_id()
        loop = self._running_loop()
        self.store.clear_error()

        project_id = current.id
        self.store.replace_breakpoints(project_id, sort_breakpoints([*current.breakpoints, new_bp]))
        self._schedule(
            loop,
            project_id,
            "add_breakpoint",
            lambda: self.api.add_breakpoint(project_id, new_bp),
        )
        return self.store.current

    def update_breakpoint_at(self, index: int, partial: Mapping[str, Any]) -> Project:
        """Merge ``partial`` into the breakpoint at ``index``."""
        current = self._require_current("update breakpoint")
        index = self._require_index(current, index)
        if not isinstance(partial, Mapping):
            raise ValidationError("Breakpoint changes must be a mapping")
        target = current.breakpoints[index]
        merged = target.merged(partial)
        loop = self._running_loop()
        self.store.clear_error()

        project_id = current.id
        updated = list(current.breakpoints)
        updated[index] = merged
        self.store.replace_breakpoints(project_id, updated)
        changes = dict(partial)
        self._schedule(
            loop,
            project_id,
            "update_breakpoint",
            lambda: self.api.update_breakpoint(project_id, index, changes, breakpoint_id=target.id),
        )
        return self.store.current

    def remove_breakpoint_at(self, index: int) -> Project:
        """Remove the breakpoint at ``index``."""
        current = self._require_current("delete breakpoint")
        index = self._require_index(current, index)
        target = current.breakpoints[index]
        loop = self._running_loop()
        self.store.clear_error()

        project_id = current.id
        updated = [bp for i, bp in enumerate(current.breakpoints) if i != index]
        self.store.replace_breakpoints(project_id, updated)
        self._schedule(
            loop,
            project_id,
            "delete_breakpoint",
            lambda: self.api.delete_breakpoint(project_id, index, breakpoint_id=target.id),
        )
        return self.store.current

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    async def update_notes(self, notes_text: Optional[str]) -> Project:
        """Store the notes blob remotely and adopt the server's project."""
        current = self._require_current("update notes")
        project_id = current.id
        notes = "" if notes_text is None else str(notes_text)

        self.store.loading = True
        self.store.clear_error()
        try:
            project = await self.api.update_notes(project_id, notes)
        except Exception as e:
            logger.error(f"Failed to update notes for project {project_id}: {e}")
            self.store.set_error("Failed to update notes")
            raise
        finally:
            self.store.loading = False

        # Keep optimistic breakpoints that the server has not confirmed yet
        project = self.store.with_unconfirmed(project)
        self.store.refresh(project, event="notes_changed")
        return project

    # ------------------------------------------------------------------
    # Background synchronization
    # ------------------------------------------------------------------

    def pending(self, project_id: Optional[str] = None) -> int:
        """Number of background calls still running (for one project or all)."""
        if project_id is not None:
            return len(self._tasks.get(project_id, ()))
        return sum(len(tasks) for tasks in self._tasks.values())

    def generation(self, project_id: str) -> int:
        return self._generations.get(project_id, 0)

    async def wait_idle(self) -> None:
        """Wait until every background call has finished."""
        while True:
            tasks = {task for tasks in self._tasks.values() for task in tasks}
            if not tasks:
                return
            await asyncio.wait(tasks)

    def _schedule(
        self,
        loop: asyncio.AbstractEventLoop,
        project_id: str,
        operation: str,
        call: RemoteCall,
    ) -> asyncio.Task:
        generation = self._generations.get(project_id, 0) + 1
        self._generations[project_id] = generation
        previous = self._tails.get(project_id)

        task = loop.create_task(
            self._sync(project_id, generation, operation, call, previous),
            name=f"langreader-sync-{project_id}-{generation}",
        )
        self._tasks.setdefault(project_id, set()).add(task)
        self._tails[project_id] = task
        task.add_done_callback(lambda done: self._forget(project_id, done))
        logger.debug(f"Scheduled {operation} for project {project_id} (generation {generation})")
        return task

    def _forget(self, project_id: str, task: asyncio.Task) -> None:
        tasks = self._tasks.get(project_id)
        if tasks is not None:
            tasks.discard(task)
            if not tasks:
                del self._tasks[project_id]
        if self._tails.get(project_id) is task:
            del self._tails[project_id]

    async def _sync(
        self,
        project_id: str,
        generation: int,
        operation: str,
        call: RemoteCall,
        previous: Optional[asyncio.Task],
    ) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})

        try:
            server_project = await call()
        except Exception as e:
            log_error_with_context(e, {
                "operation": operation,
                "project_id": project_id,
                "generation": generation,
            })
            log_breakpoint_sync("failed", project_id, generation, operation=operation, error=str(e))
            return

        if generation != self._generations.get(project_id):
            logger.debug(
                f"Dropping stale {operation} result for project {project_id} "
                f"(generation {generation}, latest {self._generations.get(project_id)})"
            )
            log_breakpoint_sync("stale", project_id, generation, operation=operation)
            return

        changed = self._reconcile(project_id, server_project.breakpoints)
        log_breakpoint_sync("completed", project_id, generation, operation=operation, changed=changed)

    def _reconcile(self, project_id: str, server_breakpoints: List[Breakpoint]) -> bool:
        local = self.store.local_breakpoints(project_id)
        if local is None:
            logger.debug(f"Project {project_id} is no longer cached, nothing to reconcile")
            return False

        changed = list(server_breakpoints) != list(local)
        if changed:
            logger.info(f"Syncing breakpoints with server for project {project_id}")
        self.store.replace_breakpoints(
            project_id,
            server_breakpoints if changed else local,
            event="breakpoints_reconciled",
        )
        return changed
