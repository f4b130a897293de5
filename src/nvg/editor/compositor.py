"""Scene compositing: Ken Burns motion, transitions and export."""

from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np
from moviepy import ColorClip, CompositeVideoClip, ImageClip, VideoClip
from moviepy.video.fx import CrossFadeIn, CrossFadeOut

from ..models.scene import MotionEffect, TransitionEffect
from .audio import fit_audio, load_audio

ZOOM_START = 1.0
ZOOM_END = 1.25

WIPES = {
    TransitionEffect.WIPE_LEFT,
    TransitionEffect.WIPE_RIGHT,
    TransitionEffect.WIPE_UP,
    TransitionEffect.WIPE_DOWN,
}


def motion_transform(motion: Optional[MotionEffect], progress: float) -> Tuple[float, float, float]:
    """Scale and viewport anchor for a motion effect at a point in the scene.

    Args:
        motion: Motion effect, None for a static frame.
        progress: Fraction of the scene elapsed, clamped to [0, 1].

    Returns:
        (scale, x_anchor, y_anchor). Anchors are 0..1 fractions of the
        overflow: 0 shows the left/top edge, 1 the right/bottom edge.
    """
    p = min(1.0, max(0.0, progress))
    span = ZOOM_END - ZOOM_START
    if motion == MotionEffect.ZOOM_IN:
        return ZOOM_START + span * p, 0.5, 0.5
    if motion == MotionEffect.ZOOM_OUT:
        return ZOOM_END - span * p, 0.5, 0.5
    if motion == MotionEffect.PAN_LEFT:
        return ZOOM_END, 1.0 - p, 0.5
    if motion == MotionEffect.PAN_RIGHT:
        return ZOOM_END, p, 0.5
    if motion == MotionEffect.PAN_UP:
        return ZOOM_END, 0.5, 1.0 - p
    if motion == MotionEffect.PAN_DOWN:
        return ZOOM_END, 0.5, p
    return ZOOM_START, 0.5, 0.5


def cover_size(src_w: int, src_h: int, width: int, height: int) -> Tuple[int, int]:
    """Smallest size with the source aspect ratio that covers the frame."""
    scale = max(width / src_w, height / src_h)
    return max(width, round(src_w * scale)), max(height, round(src_h * scale))


def wipe_coverage(
    transition: TransitionEffect,
    progress: float,
    width: int,
    height: int,
) -> np.ndarray:
    """Mask revealing the incoming scene during a wipe.

    wipe-left moves the edge from right to left, wipe-up from bottom to top.
    """
    p = min(1.0, max(0.0, progress))
    mask = np.zeros((height, width), dtype=float)
    if transition == TransitionEffect.WIPE_LEFT:
        mask[:, width - round(width * p):] = 1.0
    elif transition == TransitionEffect.WIPE_RIGHT:
        mask[:, :round(width * p)] = 1.0
    elif transition == TransitionEffect.WIPE_UP:
        mask[height - round(height * p):, :] = 1.0
    elif transition == TransitionEffect.WIPE_DOWN:
        mask[:round(height * p), :] = 1.0
    else:
        mask[:, :] = 1.0
    return mask


def build_scene_clip(
    image_path: Optional[Path],
    audio_path: Optional[Path],
    duration: float,
    size: Tuple[int, int],
    motion: Optional[MotionEffect] = None,
) -> VideoClip:
    """Build one scene: a moving still (or black frame) with its narration.

    Args:
        image_path: Scene image, None for a black frame.
        audio_path: Narration, None for a silent scene.
        duration: Scene duration in seconds.
        size: Output (width, height).
        motion: Motion applied across the scene.

    Returns:
        Clip of exactly `duration` seconds at the output size.
    """
    width, height = size
    if image_path is None:
        clip = ColorClip(size=size, color=(0, 0, 0)).with_duration(duration)
    else:
        image = ImageClip(str(image_path)).with_duration(duration)
        cover_w, cover_h = cover_size(image.w, image.h, width, height)
        image = image.resized((cover_w, cover_h))

        def scale(t: float) -> float:
            return motion_transform(motion, t / duration)[0]

        def position(t: float) -> Tuple[int, int]:
            s, x_anchor, y_anchor = motion_transform(motion, t / duration)
            x = -(cover_w * s - width) * x_anchor
            y = -(cover_h * s - height) * y_anchor
            return int(round(x)), int(round(y))

        moving = image.resized(scale).with_position(position)
        clip = CompositeVideoClip([moving], size=size).with_duration(duration)

    if audio_path is not None:
        clip = clip.with_audio(fit_audio(load_audio(audio_path), duration))
    return clip


def _wipe_mask(transition: TransitionEffect, overlap: float, clip: VideoClip) -> VideoClip:
    width, height = clip.size

    def frame(t: float) -> np.ndarray:
        return wipe_coverage(transition, t / overlap, width, height)

    return VideoClip(frame, is_mask=True, duration=clip.duration)


def assemble_timeline(
    clips: List[VideoClip],
    starts: List[float],
    overlaps: List[float],
    transitions: List[Optional[TransitionEffect]],
    size: Tuple[int, int],
    fps: int = 30,
) -> CompositeVideoClip:
    """Place scene clips on a shared timeline with their transitions.

    Each scene's transition is its outgoing one: it blends the trailing
    `overlaps[i]` seconds of scene i with the start of scene i + 1.

    Args:
        clips: Scene clips in playback order.
        starts: Start time of each clip.
        overlaps: Outgoing overlap of each clip (0 for a hard cut).
        transitions: Outgoing transition of each clip.
        size: Output (width, height).
        fps: Output frame rate.

    Returns:
        CompositeVideoClip spanning the whole timeline.

    Raises:
        ValueError: If no clips are given.
    """
    if not clips:
        raise ValueError("No clips to assemble")

    timeline = []
    for i, clip in enumerate(clips):
        effects = []

        # Incoming: how the previous scene hands over to this one
        if i > 0 and overlaps[i - 1] > 0:
            incoming = transitions[i - 1]
            overlap = overlaps[i - 1]
            if incoming in WIPES:
                clip = clip.with_mask(_wipe_mask(incoming, overlap, clip))
            else:
                effects.append(CrossFadeIn(overlap))

        # Outgoing: fade also fades this scene out; dissolve leaves it opaque
        if i < len(clips) - 1 and overlaps[i] > 0 and transitions[i] == TransitionEffect.FADE:
            effects.append(CrossFadeOut(overlaps[i]))

        if effects:
            clip = clip.with_effects(effects)
        timeline.append(clip.with_start(starts[i]))

    total_duration = max(c.start + c.duration for c in timeline)
    return CompositeVideoClip(timeline, size=size).with_duration(total_duration).with_fps(fps)


def export(
    video: VideoClip,
    output_path: Path,
    fps: int = 30,
    codec: str = "libx264",
    audio_codec: str = "aac",
    bitrate: Optional[str] = None,
    preset: str = "medium",
    logger: Optional[str] = None,
) -> Path:
    """Export video to file with proper encoding.

    Args:
        video: Video clip to export.
        output_path: Path for output file.
        fps: Frames per second (default 30).
        codec: Video codec (default libx264).
        audio_codec: Audio codec (default aac).
        bitrate: Video bitrate (e.g., "8M"). None for auto.
        preset: Encoding preset (ultrafast, fast, medium, slow, slower).
        logger: moviepy progress logger, "bar" or None.

    Returns:
        Path to the exported video file.
    """
    # Ensure output directory exists
    output_path.parent.mkdir(parents=True, exist_ok=True)

    # Build export parameters
    export_params = {
        "fps": fps,
        "codec": codec,
        "audio_codec": audio_codec,
        "preset": preset,
        "logger": logger,
    }

    if bitrate:
        export_params["bitrate"] = bitrate

    video.write_videofile(str(output_path), **export_params)

    return output_path


def save_thumbnail(video: VideoClip, output_path: Path, t: Optional[float] = None) -> Path:
    """Save a single frame (default: one second in, or the middle of short videos)."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if t is None:
        t = min(1.0, video.duration / 2)
    video.save_frame(str(output_path), t=t)
    return output_path


def close_clips(clips: List[VideoClip]) -> None:
    """Release ffmpeg readers held by scene clips."""
    for clip in clips:
        clip.close()
