"""Project state model."""

from datetime import datetime, timezone
from typing import Dict, List, Optional
from enum import Enum
from uuid import uuid4
from pydantic import BaseModel, Field

from .manifest import Manifest
from .scene import MotionEffect, TransitionEffect


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ProjectStatus(str, Enum):
    """Project state enum."""
    DRAFT = "draft"
    QUEUED = "queued"
    GENERATING = "generating"
    READY = "ready"
    ERROR = "error"


class Chapter(BaseModel):
    """A chapter marker derived from scene boundaries after render."""

    title: str
    start_time: float = Field(..., ge=0)
    end_time: Optional[float] = None


class SceneOverride(BaseModel):
    """User-chosen effects for one scene, applied when the manifest is assembled."""

    motion: Optional[MotionEffect] = None
    transition: Optional[TransitionEffect] = None


class Project(BaseModel):
    """Project state tracking."""

    id: str = Field(default_factory=lambda: str(uuid4()), description="Project id")
    title: str = Field(..., description="Project title")
    script: str = Field(default="", description="Narration script")
    topic: Optional[str] = Field(None, description="Topic used when the script is generated")
    script_style: Optional[str] = Field(None, description="Script writing style")
    target_duration: Optional[float] = Field(None, description="Requested video length in seconds", gt=0)

    status: ProjectStatus = Field(default=ProjectStatus.DRAFT, description="Current state")
    progress: int = Field(default=0, description="Progress of the active run", ge=0, le=100)
    progress_message: Optional[str] = Field(None, description="Current step")
    error_message: Optional[str] = Field(None, description="Set only in error")

    # Generation settings
    script_provider: str = Field(default="anthropic")
    voice_id: Optional[str] = Field(None, description="Narration voice")
    tts_provider: str = Field(default="speechify")
    image_style: str = Field(default="cinematic")
    custom_style_text: Optional[str] = Field(None, description="Style text when image_style is 'custom'")
    image_generator: str = Field(default="wavespeed")
    resolution: str = Field(default="720p")
    transition: Optional[TransitionEffect] = Field(None, description="Project-wide default transition")
    scene_overrides: Dict[str, SceneOverride] = Field(default_factory=dict)

    # Outputs
    manifest: Optional[Manifest] = None
    output_path: Optional[str] = None
    thumbnail_path: Optional[str] = None
    chapters: Optional[List[Chapter]] = None
    total_duration: Optional[float] = None

    run_id: int = Field(default=0, description="Latest generation run admitted for this project")
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    class Config:
        """Pydantic config."""
        frozen = False

    def touch(self) -> None:
        self.updated_at = _now()
