"""Data models for the narrated video generator."""

from .scene import Scene, MotionEffect, TransitionEffect, MOTION_CYCLE
from .manifest import Manifest
from .project import Project, ProjectStatus, Chapter, SceneOverride
from .log import LogEntry, LogFilter, LogLevel

__all__ = [
    "Scene",
    "MotionEffect",
    "TransitionEffect",
    "MOTION_CYCLE",
    "Manifest",
    "Project",
    "ProjectStatus",
    "Chapter",
    "SceneOverride",
    "LogEntry",
    "LogFilter",
    "LogLevel",
]
