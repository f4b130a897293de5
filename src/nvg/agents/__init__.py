"""AI agents for script generation."""

from .base import BaseAgent
from .script_writer import ScriptRequest, ScriptWriterAgent

__all__ = [
    "BaseAgent",
    "ScriptRequest",
    "ScriptWriterAgent",
]
