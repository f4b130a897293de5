"""File-backed store: one JSON file per project plus a JSON-lines log."""

import json
import logging
from pathlib import Path
from threading import RLock
from typing import List, Optional

from pydantic import ValidationError

from ..errors import ProjectNotFoundError
from ..models import LogEntry, LogFilter, Project
from .base import ProjectStore

logger = logging.getLogger(__name__)


class FileProjectStore(ProjectStore):
    """Persists projects under <root>/projects and logs in <root>/logs.jsonl."""

    def __init__(self, root: Path, log_buffer_size: int = 500) -> None:
        self._root = Path(root)
        self._projects_dir = self._root / "projects"
        self._projects_dir.mkdir(parents=True, exist_ok=True)
        self._log_file = self._root / "logs.jsonl"
        self._log_buffer_size = log_buffer_size
        self._log_count: Optional[int] = None
        self._lock = RLock()

    def _project_file(self, project_id: str) -> Path:
        return self._projects_dir / f"{project_id}.json"

    def load_project(self, project_id: str) -> Project:
        project_file = self._project_file(project_id)
        with self._lock:
            if not project_file.exists():
                raise ProjectNotFoundError(f"Project not found: {project_id}")
            return Project.model_validate_json(project_file.read_text(encoding="utf-8"))

    def save_project(self, project: Project) -> None:
        project_file = self._project_file(project.id)
        tmp_file = project_file.with_suffix(".json.tmp")
        with self._lock:
            tmp_file.write_text(project.model_dump_json(indent=2), encoding="utf-8")
            tmp_file.replace(project_file)

    def list_projects(self) -> List[Project]:
        projects = []
        with self._lock:
            for project_file in self._projects_dir.glob("*.json"):
                try:
                    projects.append(Project.model_validate_json(project_file.read_text(encoding="utf-8")))
                except ValidationError as e:
                    logger.warning(f"Skipping unreadable project {project_file.name}: {e}")
        return sorted(projects, key=lambda p: p.updated_at, reverse=True)

    def delete_project(self, project_id: str) -> None:
        project_file = self._project_file(project_id)
        with self._lock:
            if not project_file.exists():
                raise ProjectNotFoundError(f"Project not found: {project_id}")
            project_file.unlink()
            entries = self._read_logs()
            for entry in entries:
                if entry.project_id == project_id:
                    entry.project_id = None
            self._write_logs(entries)

    def _read_logs(self) -> List[LogEntry]:
        if not self._log_file.exists():
            return []
        entries = []
        with open(self._log_file, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip():
                    entries.append(LogEntry.model_validate(json.loads(line)))
        return entries

    def _write_logs(self, entries: List[LogEntry]) -> None:
        with open(self._log_file, "w", encoding="utf-8") as f:
            for entry in entries:
                f.write(entry.model_dump_json() + "\n")

    def append_log(self, entry: LogEntry) -> None:
        with self._lock:
            if self._log_count is None:
                self._log_count = len(self._read_logs())
            with open(self._log_file, "a", encoding="utf-8") as f:
                f.write(entry.model_dump_json() + "\n")
            self._log_count += 1
            if self._log_count > self._log_buffer_size:
                # Compact to the newest entries so the file stays bounded
                entries = self._read_logs()[-self._log_buffer_size:]
                self._write_logs(entries)
                self._log_count = len(entries)

    def list_logs(self, log_filter: Optional[LogFilter] = None) -> List[LogEntry]:
        log_filter = log_filter or LogFilter()
        with self._lock:
            entries = self._read_logs()
        entries = entries[-self._log_buffer_size:]
        matches = [e for e in reversed(entries) if log_filter.matches(e)]
        return matches[:log_filter.limit]

    def clear_logs(self) -> int:
        with self._lock:
            count = len(self._read_logs())
            self._log_file.unlink(missing_ok=True)
            self._log_count = 0
        return count
