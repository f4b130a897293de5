"""Persistence interface consumed by the pipeline."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models import LogEntry, LogFilter, Project


class ProjectStore(ABC):
    """Stores projects (manifest nested) and the event log.

    Implementations return copies: mutating a loaded Project never changes
    stored state until save_project is called.
    """

    @abstractmethod
    def load_project(self, project_id: str) -> Project:
        """Load a project.

        Raises:
            ProjectNotFoundError: If no project has this id.
        """

    @abstractmethod
    def save_project(self, project: Project) -> None:
        """Insert or fully replace a project."""

    @abstractmethod
    def list_projects(self) -> List[Project]:
        """All projects, most recently updated first."""

    @abstractmethod
    def delete_project(self, project_id: str) -> None:
        """Delete a project and detach its log entries.

        Raises:
            ProjectNotFoundError: If no project has this id.
        """

    @abstractmethod
    def append_log(self, entry: LogEntry) -> None:
        ...

    @abstractmethod
    def list_logs(self, log_filter: Optional[LogFilter] = None) -> List[LogEntry]:
        """Matching entries, newest first, at most log_filter.limit."""

    @abstractmethod
    def clear_logs(self) -> int:
        """Delete every log entry and return how many were removed."""
