"""File-backed project documents for the Lang Reader backend.

Each project is one JSON document under ``<root>/.lang-reader/projects``.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Dict, List, Mapping

from .errors import ProjectNotFoundError, ValidationError
from .models import Project, utc_timestamp
from .reader_logging import log_error_with_context, log_operation, log_performance

logger = logging.getLogger("langreader.repository")


class ProjectRepository:
    """Store project documents as JSON files."""

    STORAGE_DIR_ENV = "LANG_READER_STORAGE_DIR"
    DEFAULT_STORAGE_DIR = ".lang-reader"

    def __init__(self, root: Path | str):
        self.root = Path(root).resolve()
        self.base_dir = self.root / (os.getenv(self.STORAGE_DIR_ENV) or self.DEFAULT_STORAGE_DIR)
        self.projects_dir = self.base_dir / "projects"

        try:
            self.projects_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create storage directories: {e}")
            raise RuntimeError(f"Could not initialize project storage at {self.root}: {e}")

        logger.info(f"Project repository initialized at {self.projects_dir}")

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _path(self, project_id: str) -> Path:
        if not project_id or not all(c.isalnum() or c in "-_" for c in project_id):
            raise ProjectNotFoundError(project_id)
        return self.projects_dir / f"{project_id}.json"

    def _read(self, path: Path) -> Dict[str, Any]:
        return json.loads(path.read_text(encoding="utf-8"))

    def _write(self, document: Mapping[str, Any]) -> None:
        path = self._path(document["_id"])
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(document, indent=2), encoding="utf-8")
        tmp_path.replace(path)

    @staticmethod
    def _normalize(document: Mapping[str, Any]) -> Dict[str, Any]:
        # Round-trip through the model so breakpoints and notes keep their shape
        try:
            project = Project.from_dict(document)
        except ValidationError:
            raise
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid project document: {e}") from e

        issues = project.validate()
        if issues:
            raise ValidationError(f"Invalid project document: {'; '.join(issues)}")
        return project.to_dict()

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def list_all(self) -> List[Dict[str, Any]]:
        """All documents, newest first."""
        documents = []
        for path in self.projects_dir.glob("*.json"):
            try:
                documents.append(self._read(path))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable project file {path.name}: {e}")
        documents.sort(key=lambda doc: doc.get("createdAt") or "", reverse=True)
        return documents

    def get(self, project_id: str) -> Dict[str, Any]:
        path = self._path(project_id)
        if not path.exists():
            raise ProjectNotFoundError(project_id)
        return self._read(path)

    @log_performance("repository_create")
    def create(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Store a new document; the identifier is always assigned here."""
        document = dict(data)
        document["_id"] = uuid.uuid4().hex
        document.setdefault("createdAt", utc_timestamp())
        document = self._normalize(document)

        try:
            with log_operation("create_project", project_id=document["_id"]):
                self._write(document)
        except OSError as e:
            log_error_with_context(e, {"operation": "create_project", "project_id": document["_id"]})
            raise

        return document

    @log_performance("repository_update")
    def update(self, project_id: str, data: Mapping[str, Any]) -> Dict[str, Any]:
        """Merge top-level fields into a stored document."""
        document = self.get(project_id)
        document.update({k: v for k, v in data.items() if k != "_id"})
        document = self._normalize(document)

        try:
            with log_operation("update_project", project_id=project_id, fields=sorted(data)):
                self._write(document)
        except OSError as e:
            log_error_with_context(e, {"operation": "update_project", "project_id": project_id})
            raise

        return document

    def delete(self, project_id: str) -> None:
        path = self._path(project_id)
        if not path.exists():
            raise ProjectNotFoundError(project_id)
        path.unlink()
        logger.info(f"Deleted project {project_id}")
