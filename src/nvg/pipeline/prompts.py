"""Image prompt and seed construction."""

import zlib
from typing import Optional

from ..errors import InvalidInputError
from ..models.options import IMAGE_STYLES


def style_text(image_style: str, custom_style_text: Optional[str] = None) -> str:
    """Prompt fragment for a project's image style."""
    if image_style == "custom":
        if not custom_style_text or not custom_style_text.strip():
            raise InvalidInputError("Custom image style needs style text", category="image")
        return custom_style_text.strip()
    try:
        return IMAGE_STYLES[image_style]
    except KeyError:
        raise InvalidInputError(
            f"Unknown image style: {image_style}. Expected one of: {', '.join(IMAGE_STYLES)}, custom",
            category="image",
        )


def build_image_prompt(scene_text: str, image_style: str, custom_style_text: Optional[str] = None) -> str:
    return f"{style_text(image_style, custom_style_text)}. {scene_text.strip()} No text, no captions, no watermark."


def image_seed(project_id: str, scene_id: str) -> int:
    """Stable seed so re-generating a scene stays close to its previous look."""
    return zlib.crc32(f"{project_id}:{scene_id}".encode("utf-8"))
