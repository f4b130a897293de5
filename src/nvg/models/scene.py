"""Scene data model."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class MotionEffect(str, Enum):
    """Ken Burns style motion applied across a scene."""
    ZOOM_IN = "zoom-in"
    ZOOM_OUT = "zoom-out"
    PAN_LEFT = "pan-left"
    PAN_RIGHT = "pan-right"
    PAN_UP = "pan-up"
    PAN_DOWN = "pan-down"


class TransitionEffect(str, Enum):
    """Transition applied at a scene's trailing edge."""
    NONE = "none"
    FADE = "fade"
    DISSOLVE = "dissolve"
    WIPE_LEFT = "wipe-left"
    WIPE_RIGHT = "wipe-right"
    WIPE_UP = "wipe-up"
    WIPE_DOWN = "wipe-down"


# Cycled in order when assembling a manifest
MOTION_CYCLE = list(MotionEffect)


class Scene(BaseModel):
    """Represents a single narrated scene in the video."""

    id: str = Field(..., description="Scene identifier, unique within a manifest")
    text: str = Field(..., description="Narration text")
    audio_file: Optional[str] = Field(None, description="Narration audio asset reference")
    image_file: Optional[str] = Field(None, description="Scene image asset reference")
    duration: float = Field(..., description="Scene duration in seconds", gt=0)
    motion: Optional[MotionEffect] = Field(None, description="Motion effect")
    transition: Optional[TransitionEffect] = Field(None, description="Trailing transition")

    class Config:
        """Pydantic config."""
        frozen = False

    @property
    def is_renderable(self) -> bool:
        return bool(self.audio_file or self.image_file)
