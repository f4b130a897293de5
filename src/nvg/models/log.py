"""Log entry model for the pipeline's event log."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4
from pydantic import BaseModel, Field


class LogLevel(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    DEBUG = "debug"


class LogEntry(BaseModel):
    """One leveled, categorized event, optionally tied to a project."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    level: LogLevel = LogLevel.INFO
    category: str = "system"
    message: str
    details: Optional[Dict[str, Any]] = None
    project_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class LogFilter(BaseModel):
    level: Optional[LogLevel] = None
    category: Optional[str] = None
    project_id: Optional[str] = None
    limit: int = Field(default=100, ge=1)

    def matches(self, entry: LogEntry) -> bool:
        if self.level is not None and entry.level != self.level:
            return False
        if self.category is not None and entry.category != self.category.lower():
            return False
        if self.project_id is not None and entry.project_id != self.project_id:
            return False
        return True
