"""Video editing and assembly module."""

from .compositor import (
    motion_transform,
    cover_size,
    wipe_coverage,
    build_scene_clip,
    assemble_timeline,
    export,
    save_thumbnail,
    close_clips,
)
from .audio import (
    load_audio,
    fit_audio,
    fade_audio,
    get_audio_duration,
    measure_duration,
)

__all__ = [
    # Compositor
    "motion_transform",
    "cover_size",
    "wipe_coverage",
    "build_scene_clip",
    "assemble_timeline",
    "export",
    "save_thumbnail",
    "close_clips",
    # Audio
    "load_audio",
    "fit_audio",
    "fade_audio",
    "get_audio_duration",
    "measure_duration",
]
