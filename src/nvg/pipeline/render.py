"""Render stage: turns a manifest into a video file with chapters.

Timeline arithmetic is pure (build_timeline, build_chapters) so duration and
chapter boundaries depend only on the manifest. Encoding is delegated to an
encoder callable; the default one composites with moviepy.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from ..config import Config
from ..editor import assemble_timeline, build_scene_clip, close_clips, export, save_thumbnail
from ..errors import EncodeFailureError, IncompleteSceneError, InvalidInputError, InvalidStateError, RenderError
from ..models import Chapter, Manifest, TransitionEffect
from ..models.options import get_export_quality

logger = logging.getLogger(__name__)

DEFAULT_BITRATE = "8M"


@dataclass(frozen=True)
class TimelineEntry:
    """Placement of one scene on the output timeline."""

    scene_id: str
    start: float
    duration: float
    overlap: float
    transition: Optional[TransitionEffect]

    @property
    def end(self) -> float:
        return self.start + self.duration


@dataclass(frozen=True)
class Timeline:
    entries: Tuple[TimelineEntry, ...]
    duration: float


@dataclass
class RenderResult:
    """What a successful render produced."""

    output_path: Path
    duration: float
    chapters: List[Chapter]
    thumbnail_path: Optional[Path] = None


Encoder = Callable[[Manifest, Timeline, Tuple[int, int], str, Path, Optional[Path]], None]


def _is_cut(transition: Optional[TransitionEffect]) -> bool:
    return transition is None or transition == TransitionEffect.NONE


def build_timeline(manifest: Manifest) -> Timeline:
    """Place scenes on the timeline.

    The overlap after scene i is min(transition_duration, d_i, d_{i+1}), or 0
    for a cut and for the last scene. Scene i + 1 starts at
    start_i + d_i - overlap_i, so the total is the sum of scene durations
    minus the applied overlaps.
    """
    entries = []
    start = 0.0
    scenes = manifest.scenes
    for i, scene in enumerate(scenes):
        overlap = 0.0
        if i < len(scenes) - 1 and not _is_cut(scene.transition):
            overlap = min(manifest.transition_duration, scene.duration, scenes[i + 1].duration)
        entries.append(TimelineEntry(
            scene_id=scene.id,
            start=round(start, 3),
            duration=scene.duration,
            overlap=overlap,
            transition=scene.transition,
        ))
        start += scene.duration - overlap
    total = round(entries[-1].start + entries[-1].duration, 3) if entries else 0.0
    return Timeline(entries=tuple(entries), duration=total)


def build_chapters(timeline: Timeline) -> List[Chapter]:
    """One chapter per scene; each ends where the next begins."""
    chapters = []
    for i, entry in enumerate(timeline.entries):
        if i + 1 < len(timeline.entries):
            end = timeline.entries[i + 1].start
        else:
            end = timeline.duration
        chapters.append(Chapter(title=f"Scene {i + 1}", start_time=entry.start, end_time=end))
    return chapters


def output_size(manifest: Manifest, export_quality: Optional[str]) -> Tuple[Tuple[int, int], str]:
    """Frame size and bitrate for a render.

    An export quality fixes the short side and bitrate; the manifest's
    orientation is kept. Without one the manifest's own size is used.

    Raises:
        InvalidInputError: Unknown export quality.
    """
    if export_quality is None:
        width, height, bitrate = manifest.width, manifest.height, DEFAULT_BITRATE
    else:
        try:
            quality = get_export_quality(export_quality)
        except ValueError as e:
            raise InvalidInputError(str(e), category="render")
        short_side = min(quality.width, quality.height)
        aspect = manifest.width / manifest.height
        if aspect >= 1:
            width, height = round(short_side * aspect), short_side
        else:
            width, height = short_side, round(short_side / aspect)
        bitrate = quality.bitrate
    # libx264 needs even dimensions
    return (width - width % 2, height - height % 2), bitrate


class MoviePyEncoder:
    """Composites scenes with moviepy and writes an H.264 file."""

    def __init__(self, config: Config, preset: str = "medium") -> None:
        self._config = config
        self._preset = preset

    def __call__(
        self,
        manifest: Manifest,
        timeline: Timeline,
        size: Tuple[int, int],
        bitrate: str,
        output_path: Path,
        thumbnail_path: Optional[Path],
    ) -> None:
        clips = []
        try:
            for scene in manifest.scenes:
                clips.append(build_scene_clip(
                    image_path=self._config.resolve_asset(scene.image_file) if scene.image_file else None,
                    audio_path=self._config.resolve_asset(scene.audio_file) if scene.audio_file else None,
                    duration=scene.duration,
                    size=size,
                    motion=scene.motion,
                ))
            video = assemble_timeline(
                clips,
                starts=[e.start for e in timeline.entries],
                overlaps=[e.overlap for e in timeline.entries],
                transitions=[e.transition for e in timeline.entries],
                size=size,
                fps=manifest.fps,
            )
            export(video, output_path, fps=manifest.fps, bitrate=bitrate, preset=self._preset)
            if thumbnail_path is not None:
                save_thumbnail(video, thumbnail_path)
        finally:
            close_clips(clips)


class RenderStage:
    """Validates a manifest, encodes it and reports duration and chapters."""

    def __init__(self, config: Config, encoder: Optional[Encoder] = None) -> None:
        self._config = config
        self._encoder = encoder or MoviePyEncoder(config)

    def validate(self, manifest: Manifest) -> None:
        """Fail fast before any encoding work.

        Raises:
            InvalidStateError: The manifest has no scenes.
            IncompleteSceneError: A scene has no assets, or an asset file is missing.
        """
        if not manifest.scenes:
            raise InvalidStateError("Manifest has no scenes", category="render")
        for scene in manifest.scenes:
            if not scene.is_renderable:
                raise IncompleteSceneError(
                    f"Scene {scene.id} has neither audio nor image", scene_id=scene.id
                )
            for reference in (scene.audio_file, scene.image_file):
                if reference and not self._config.resolve_asset(reference).exists():
                    raise IncompleteSceneError(
                        f"Asset for scene {scene.id} is missing: {reference}", scene_id=scene.id
                    )

    def render(
        self,
        manifest: Manifest,
        export_quality: Optional[str],
        output_path: Path,
        thumbnail_path: Optional[Path] = None,
    ) -> RenderResult:
        """Render a manifest to a video file.

        Args:
            manifest: Complete manifest.
            export_quality: Export quality id, None for the manifest's own size.
            output_path: Destination video file.
            thumbnail_path: Where to save a thumbnail frame, if wanted.

        Returns:
            RenderResult with the output path, duration and chapters.

        Raises:
            IncompleteSceneError: A scene cannot be rendered.
            EncodeFailureError: Encoding failed on every allowed attempt.
        """
        self.validate(manifest)
        size, bitrate = output_size(manifest, export_quality)
        timeline = build_timeline(manifest)

        attempts = 1 + self._config.render_encode_retries
        for attempt in range(1, attempts + 1):
            try:
                logger.info(
                    f"Encoding {len(manifest.scenes)} scenes at {size[0]}x{size[1]} "
                    f"(attempt {attempt}/{attempts})"
                )
                self._encoder(manifest, timeline, size, bitrate, output_path, thumbnail_path)
                break
            except RenderError:
                raise
            except Exception as e:
                logger.warning(f"Encode attempt {attempt} failed: {e}")
                if attempt == attempts:
                    raise EncodeFailureError(f"Encoding failed after {attempts} attempts: {e}") from e

        return RenderResult(
            output_path=output_path,
            duration=timeline.duration,
            chapters=build_chapters(timeline),
            thumbnail_path=thumbnail_path,
        )
