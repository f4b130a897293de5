"""Static option tables: resolutions, export qualities, styles and durations."""

from typing import Optional
from pydantic import BaseModel


class Resolution(BaseModel):
    id: str
    width: int
    height: int
    label: str


class ExportQuality(BaseModel):
    id: str
    width: int
    height: int
    bitrate: str
    label: str


RESOLUTIONS = {
    r.id: r
    for r in [
        Resolution(id="1080p", width=1920, height=1080, label="1080p (Full HD)"),
        Resolution(id="720p", width=1280, height=720, label="720p (HD)"),
        Resolution(id="480p", width=854, height=480, label="480p (SD)"),
        Resolution(id="4k", width=3840, height=2160, label="4K (Ultra HD)"),
        Resolution(id="vertical", width=1080, height=1920, label="Vertical (9:16)"),
        Resolution(id="square", width=1080, height=1080, label="Square (1:1)"),
    ]
}

EXPORT_QUALITIES = {
    q.id: q
    for q in [
        ExportQuality(id="720p", width=1280, height=720, bitrate="4M", label="HD (720p)"),
        ExportQuality(id="1080p", width=1920, height=1080, bitrate="8M", label="Full HD (1080p)"),
        ExportQuality(id="4k", width=3840, height=2160, bitrate="20M", label="4K Ultra HD"),
    ]
}

IMAGE_STYLES = {
    "cinematic": "cinematic film still, dramatic lighting, shallow depth of field",
    "anime": "Japanese anime illustration, clean line art, vivid cel shading",
    "realistic": "photorealistic photograph, natural light, high detail",
    "illustration": "digital illustration, painterly textures, rich colour",
    "abstract": "abstract art, bold shapes, expressive colour fields",
    "pixar": "3D Pixar-style animation, expressive characters, soft global illumination",
}

SCRIPT_STYLES = ("educational", "entertaining", "documentary", "storytelling")

# Named durations accepted wherever a target duration is given
SCRIPT_DURATIONS = {
    "30s": 30.0,
    "1min": 60.0,
    "2min": 120.0,
    "10min": 600.0,
}


def get_resolution(resolution_id: Optional[str]) -> Resolution:
    """Look up a resolution, falling back to 720p for unknown ids."""
    return RESOLUTIONS.get(resolution_id or "", RESOLUTIONS["720p"])


def get_export_quality(quality_id: str) -> ExportQuality:
    """Look up an export quality.

    Raises:
        ValueError: If the id is not one of EXPORT_QUALITIES.
    """
    try:
        return EXPORT_QUALITIES[quality_id]
    except KeyError:
        raise ValueError(
            f"Unknown export quality: {quality_id}. "
            f"Expected one of: {', '.join(EXPORT_QUALITIES)}"
        )


def parse_duration(value) -> float:
    """Parse '30s', '1min', '2min', '10min', '45' or a number into seconds."""
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip().lower()
        if text in SCRIPT_DURATIONS:
            return SCRIPT_DURATIONS[text]
        if text.endswith("min"):
            seconds = float(text[:-3]) * 60
        elif text.endswith("s"):
            seconds = float(text[:-1])
        else:
            seconds = float(text)
    if seconds <= 0:
        raise ValueError(f"Duration must be positive: {value}")
    return seconds


def image_dimensions(width: int, height: int) -> tuple[int, int]:
    """1024-based image size matching the aspect ratio of the output frame."""
    aspect_ratio = width / height
    if aspect_ratio > 1:
        return 1024, round(1024 / aspect_ratio)
    if aspect_ratio < 1:
        return round(1024 * aspect_ratio), 1024
    return 1024, 1024
