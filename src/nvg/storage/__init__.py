"""Persistence for projects and log entries."""

from .base import ProjectStore
from .memory import MemoryProjectStore
from .files import FileProjectStore

__all__ = [
    "ProjectStore",
    "MemoryProjectStore",
    "FileProjectStore",
]
