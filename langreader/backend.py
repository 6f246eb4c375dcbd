"""REST backend serving project documents under ``/api/projects``."""

from __future__ import annotations

import logging
from typing import List, Optional, Union

from fastapi import APIRouter, FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from .config import ReaderSettings
from .errors import ProjectNotFoundError, ValidationError
from .reader_logging import setup_logging
from .repository import ProjectRepository

logger = logging.getLogger("langreader.backend")


class BreakpointPayload(BaseModel):
    id: Optional[str] = None
    time: Union[int, float]
    note: str = ""


class ProjectPayload(BaseModel):
    """Full or partial project document; unknown fields are kept."""

    model_config = ConfigDict(extra="allow")

    createdAt: Optional[str] = None
    breakpoints: Optional[List[BreakpointPayload]] = None
    notesText: Optional[str] = None


def _fields(payload: ProjectPayload) -> dict:
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    data.pop("_id", None)
    return data


def create_app(repository: Optional[ProjectRepository] = None) -> FastAPI:
    """Build the API around ``repository`` (defaults to the configured storage root)."""
    if repository is None:
        repository = ProjectRepository(ReaderSettings.from_env().storage_root)

    app = FastAPI(title="Lang Reader API")
    app.state.repository = repository

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Allow all origins for dev
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    router = APIRouter(prefix="/api/projects")

    def _not_found(project_id: str) -> HTTPException:
        return HTTPException(status_code=404, detail="Project not found")

    @router.get("")
    def list_projects() -> list:
        return repository.list_all()

    @router.get("/{project_id}")
    def get_project(project_id: str) -> dict:
        try:
            return repository.get(project_id)
        except ProjectNotFoundError:
            raise _not_found(project_id)

    @router.post("", status_code=201)
    def create_project(payload: ProjectPayload) -> dict:
        try:
            return repository.create(_fields(payload))
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=str(e))

    @router.put("/{project_id}")
    def update_project(project_id: str, payload: ProjectPayload) -> dict:
        try:
            return repository.update(project_id, _fields(payload))
        except ProjectNotFoundError:
            raise _not_found(project_id)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=str(e))

    @router.delete("/{project_id}", status_code=204)
    def delete_project(project_id: str) -> Response:
        try:
            repository.delete(project_id)
        except ProjectNotFoundError:
            raise _not_found(project_id)
        return Response(status_code=204)

    app.include_router(router)

    @app.get("/")
    def status() -> dict:
        return {"message": "Lang Reader API is running"}

    return app


def run() -> None:
    """Serve the backend with uvicorn using environment settings."""
    import uvicorn

    settings = ReaderSettings.from_env()
    setup_logging(settings.log_level, settings.log_file)
    app = create_app(ProjectRepository(settings.storage_root))
    logger.info(f"Server running on port {settings.port}")
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
