"""Configuration management."""

import os
from pathlib import Path
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


class Config(BaseModel):
    """Application configuration."""

    # API Keys
    anthropic_api_key: str = Field(
        default_factory=lambda: os.getenv("ANTHROPIC_API_KEY", ""),
        description="Anthropic API key (script generation)"
    )
    speechify_api_key: str = Field(
        default_factory=lambda: os.getenv("SPEECHIFY_API_KEY", ""),
        description="Speechify API key"
    )
    inworld_api_key: str = Field(
        default_factory=lambda: os.getenv("INWORLD_API_KEY", ""),
        description="Inworld TTS API key (base64 basic credential)"
    )
    wavespeed_api_key: str = Field(
        default_factory=lambda: os.getenv("WAVESPEED_API_KEY", ""),
        description="WaveSpeed image API key"
    )
    pollinations_api_key: str = Field(
        default_factory=lambda: os.getenv("POLLINATIONS_API_KEY", ""),
        description="Pollinations API key (optional, public endpoint otherwise)"
    )
    google_cloud_project: str = Field(
        default_factory=lambda: os.getenv("GOOGLE_CLOUD_PROJECT", ""),
        description="Google Cloud project ID (Imagen)"
    )

    # Paths
    workspace: Path = Field(
        default_factory=lambda: Path(os.getenv("NVG_WORKSPACE", ".")),
        description="Workspace directory"
    )

    # Model settings
    default_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Default Claude model"
    )

    # Provider call policy
    max_concurrency: int = Field(
        default_factory=lambda: _env_int("NVG_MAX_CONCURRENCY", 3),
        description="Concurrent provider calls per stage",
        ge=1,
    )
    max_retries: int = Field(
        default_factory=lambda: _env_int("NVG_MAX_RETRIES", 2),
        description="Retries per asset for transient failures",
        ge=0,
    )
    retry_base_delay: float = Field(
        default_factory=lambda: _env_float("NVG_RETRY_BASE_DELAY", 1.0),
        description="First backoff delay in seconds, doubled per attempt",
        ge=0,
    )
    retry_max_delay: float = Field(
        default_factory=lambda: _env_float("NVG_RETRY_MAX_DELAY", 30.0),
        description="Upper bound on a single backoff delay",
        ge=0,
    )
    provider_timeout: float = Field(
        default_factory=lambda: _env_float("NVG_PROVIDER_TIMEOUT", 120.0),
        description="Timeout for a single provider call in seconds",
        gt=0,
    )

    # Scene segmentation
    min_scene_duration: float = Field(
        default_factory=lambda: _env_float("NVG_MIN_SCENE_DURATION", 2.0),
        description="Minimum estimated scene duration in seconds",
        gt=0,
    )
    scene_target_words: int = Field(default=50, description="Close a scene once it reaches this many words")
    scene_max_words: int = Field(default=60, description="Never grow a scene past this many words")
    words_per_minute: int = Field(default=150, description="Narration pace used for duration estimates")

    # Manifest defaults
    fps: int = Field(default=30, description="Output frame rate")
    default_resolution: str = Field(default="720p", description="Resolution id for new projects")
    default_transition: str = Field(default="fade", description="Transition applied between scenes")
    transition_duration: float = Field(default=0.5, description="Transition overlap in seconds", ge=0)

    # Render
    render_encode_retries: int = Field(default=1, description="Automatic retries after an encode failure", ge=0)

    # Event log
    log_buffer_size: int = Field(default=500, description="Entries kept by the log store")

    class Config:
        """Pydantic config."""
        frozen = False

    @property
    def projects_dir(self) -> Path:
        return self.workspace / "projects"

    @property
    def assets_dir(self) -> Path:
        return self.workspace / "assets"

    def project_assets_dir(self, project_id: str) -> Path:
        """Directory holding a project's scene assets and rendered output."""
        return self.assets_dir / project_id

    def resolve_asset(self, reference: str) -> Path:
        """Turn a stored asset reference into a filesystem path."""
        path = Path(reference)
        if path.is_absolute():
            return path
        return self.workspace / path

    def asset_reference(self, path: Path) -> str:
        """Store paths inside the workspace relative to it."""
        try:
            return path.relative_to(self.workspace).as_posix()
        except ValueError:
            return str(path)


# Global config instance
config = Config()
