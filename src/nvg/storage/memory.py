"""In-memory store used by tests and one-off CLI runs."""

from collections import deque
from threading import RLock
from typing import Deque, Dict, List, Optional

from ..errors import ProjectNotFoundError
from ..models import LogEntry, LogFilter, Project
from .base import ProjectStore


class MemoryProjectStore(ProjectStore):
    """Keeps projects in a dict and the log in a bounded ring buffer."""

    def __init__(self, log_buffer_size: int = 500) -> None:
        self._projects: Dict[str, Project] = {}
        self._logs: Deque[LogEntry] = deque(maxlen=log_buffer_size)
        self._lock = RLock()

    def load_project(self, project_id: str) -> Project:
        with self._lock:
            project = self._projects.get(project_id)
            if project is None:
                raise ProjectNotFoundError(f"Project not found: {project_id}")
            return project.model_copy(deep=True)

    def save_project(self, project: Project) -> None:
        with self._lock:
            self._projects[project.id] = project.model_copy(deep=True)

    def list_projects(self) -> List[Project]:
        with self._lock:
            projects = [p.model_copy(deep=True) for p in self._projects.values()]
        return sorted(projects, key=lambda p: p.updated_at, reverse=True)

    def delete_project(self, project_id: str) -> None:
        with self._lock:
            if self._projects.pop(project_id, None) is None:
                raise ProjectNotFoundError(f"Project not found: {project_id}")
            for entry in self._logs:
                if entry.project_id == project_id:
                    entry.project_id = None

    def append_log(self, entry: LogEntry) -> None:
        with self._lock:
            self._logs.append(entry.model_copy())

    def list_logs(self, log_filter: Optional[LogFilter] = None) -> List[LogEntry]:
        log_filter = log_filter or LogFilter()
        with self._lock:
            matches = [e.model_copy() for e in reversed(self._logs) if log_filter.matches(e)]
        return matches[:log_filter.limit]

    def clear_logs(self) -> int:
        with self._lock:
            count = len(self._logs)
            self._logs.clear()
        return count
