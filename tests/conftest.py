"""Shared fixtures: a scripted in-memory remote behind httpx.MockTransport."""

import asyncio
import json
from typing import Any, Dict, List, Optional, Set, Tuple

import httpx
import pytest

from langreader.api import ProjectsApi
from langreader.config import ReaderSettings
from langreader.editor import BreakpointEditor
from langreader.reader_logging import performance_monitor
from langreader.store import ProjectStore

API_URL = "http://testserver/api"


class FakeRemote:
    """Minimal ``/projects`` document store used in place of the backend."""

    def __init__(self):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.requests: List[Tuple[str, str]] = []
        self.bodies: List[Any] = []
        self.fail_methods: Set[str] = set()
        self.put_gate: Optional[asyncio.Event] = None
        self._next_id = 0

    def seed(self, **document) -> Dict[str, Any]:
        """Store a document directly and return it."""
        self._next_id += 1
        doc = {
            "_id": document.pop("_id", f"p{self._next_id}"),
            "createdAt": document.pop("createdAt", f"2024-01-0{self._next_id}T00:00:00.000Z"),
            "breakpoints": document.pop("breakpoints", []),
            "notesText": document.pop("notesText", ""),
            **document,
        }
        self.documents[doc["_id"]] = doc
        return doc

    def calls(self, method: str) -> int:
        return sum(1 for m, _ in self.requests if m == method)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        body = json.loads(request.content) if request.content else None
        self.bodies.append(body)

        if request.method == "PUT" and self.put_gate is not None:
            await self.put_gate.wait()
        if request.method in self.fail_methods:
            return httpx.Response(500, json={"message": "An error occurred"})

        parts = request.url.path.rstrip("/").split("/")
        project_id = parts[3] if len(parts) > 3 else None

        if request.method == "GET" and project_id is None:
            return httpx.Response(200, json=list(self.documents.values()))
        if request.method == "POST":
            self._next_id += 1
            doc = {**body, "_id": f"p{self._next_id}"}
            self.documents[doc["_id"]] = doc
            return httpx.Response(201, json=doc)
        if project_id not in self.documents:
            return httpx.Response(404, json={"detail": "Project not found"})
        if request.method == "GET":
            return httpx.Response(200, json=self.documents[project_id])
        if request.method == "PUT":
            self.documents[project_id] = {**self.documents[project_id], **body}
            return httpx.Response(200, json=self.documents[project_id])
        if request.method == "DELETE":
            del self.documents[project_id]
            return httpx.Response(204)
        return httpx.Response(405)


@pytest.fixture
def remote():
    """A fresh fake remote store."""
    return FakeRemote()


@pytest.fixture
def settings():
    return ReaderSettings(api_url=API_URL, timeout=5.0)


@pytest.fixture
def build(remote, settings):
    """Factory returning ``(api, store, editor)`` wired to the fake remote."""
    def _build():
        api = ProjectsApi(settings, transport=httpx.MockTransport(remote.handler))
        store = ProjectStore(api)
        return api, store, BreakpointEditor(store, api)
    return _build


@pytest.fixture(autouse=True)
def reset_metrics():
    performance_monitor.clear()
    yield
    performance_monitor.clear()
