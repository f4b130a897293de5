"""Leveled, categorized event emission tied to projects."""

import logging
from typing import Any, Dict, List, Optional

from ..models import LogEntry, LogFilter, LogLevel
from ..storage import ProjectStore

logger = logging.getLogger(__name__)

CATEGORIES = ("script", "tts", "image", "render", "api", "system")

_STDLIB_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class EventLog:
    """Writes each event to stdlib logging and to the store's log."""

    def __init__(self, store: ProjectStore) -> None:
        self._store = store

    def emit(
        self,
        level: LogLevel,
        category: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        project_id: Optional[str] = None,
    ) -> LogEntry:
        entry = LogEntry(
            level=level,
            category=category.lower(),
            message=message,
            details=details,
            project_id=project_id,
        )
        prefix = f"[{entry.category}]" + (f" {project_id}:" if project_id else "")
        logger.log(_STDLIB_LEVELS[level], f"{prefix} {message}")
        self._store.append_log(entry)
        return entry

    def debug(self, category: str, message: str, details: Optional[Dict[str, Any]] = None,
              project_id: Optional[str] = None) -> LogEntry:
        return self.emit(LogLevel.DEBUG, category, message, details, project_id)

    def info(self, category: str, message: str, details: Optional[Dict[str, Any]] = None,
             project_id: Optional[str] = None) -> LogEntry:
        return self.emit(LogLevel.INFO, category, message, details, project_id)

    def warn(self, category: str, message: str, details: Optional[Dict[str, Any]] = None,
             project_id: Optional[str] = None) -> LogEntry:
        return self.emit(LogLevel.WARN, category, message, details, project_id)

    def error(self, category: str, message: str, details: Optional[Dict[str, Any]] = None,
              project_id: Optional[str] = None) -> LogEntry:
        return self.emit(LogLevel.ERROR, category, message, details, project_id)

    def list_logs(self, log_filter: Optional[LogFilter] = None) -> List[LogEntry]:
        return self._store.list_logs(log_filter)

    def clear_logs(self) -> int:
        count = self._store.clear_logs()
        logger.info(f"Cleared {count} log entries")
        return count
