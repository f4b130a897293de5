"""Manifest data model."""

from typing import List, Optional
from pathlib import Path
from pydantic import BaseModel, Field, field_validator
import yaml

from .scene import Scene


class Manifest(BaseModel):
    """Renderable description of a video: global settings plus ordered scenes."""

    fps: int = Field(default=30, description="Frame rate", gt=0)
    width: int = Field(default=1280, description="Frame width in pixels", gt=0)
    height: int = Field(default=720, description="Frame height in pixels", gt=0)
    scenes: List[Scene] = Field(default_factory=list, description="Scenes in playback order")
    transition_duration: float = Field(
        default=0.5, description="Transition overlap between scenes in seconds", ge=0
    )

    class Config:
        """Pydantic config."""
        frozen = False

    @field_validator("scenes")
    @classmethod
    def _unique_scene_ids(cls, scenes: List[Scene]) -> List[Scene]:
        seen: set[str] = set()
        for scene in scenes:
            if scene.id in seen:
                raise ValueError(f"Duplicate scene id: {scene.id}")
            seen.add(scene.id)
        return scenes

    @property
    def duration(self) -> float:
        """Sum of scene durations, before transition overlap."""
        return sum(scene.duration for scene in self.scenes)

    def get_scene(self, scene_id: str) -> Optional[Scene]:
        for scene in self.scenes:
            if scene.id == scene_id:
                return scene
        return None

    def replace_scene(self, scene: Scene) -> "Manifest":
        """Return a copy with one scene swapped out, keeping every other scene as is."""
        if self.get_scene(scene.id) is None:
            raise KeyError(scene.id)
        scenes = [(scene if s.id == scene.id else s).model_copy() for s in self.scenes]
        return self.model_copy(update={"scenes": scenes})

    def missing_assets(self) -> list[str]:
        """Ids of scenes lacking both audio and image."""
        return [scene.id for scene in self.scenes if not scene.is_renderable]

    @classmethod
    def from_yaml(cls, path: Path) -> "Manifest":
        """Load manifest from YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls(**data)

    def to_yaml(self, path: Path) -> None:
        """Save manifest to YAML file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(self.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False)
