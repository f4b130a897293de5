"""Narration audio helpers for scene clips."""

import logging
from pathlib import Path
from typing import Optional

from moviepy import AudioFileClip
from moviepy.audio.fx import AudioFadeIn, AudioFadeOut

logger = logging.getLogger(__name__)


def load_audio(audio_path: Path) -> AudioFileClip:
    """Open a narration file.

    Raises:
        FileNotFoundError: If the file is missing.
    """
    if not audio_path.exists():
        raise FileNotFoundError(f"Narration file not found: {audio_path}")
    return AudioFileClip(str(audio_path))


def fade_audio(audio: AudioFileClip, fade_in: float = 0.0, fade_out: float = 0.0) -> AudioFileClip:
    """Soften the start and/or end of a narration clip.

    Args:
        audio: Narration clip.
        fade_in: Fade-in length in seconds, 0 to skip.
        fade_out: Fade-out length in seconds, 0 to skip.

    Returns:
        The faded clip, or the input unchanged when both lengths are 0.
    """
    effects = []
    if fade_in > 0:
        effects.append(AudioFadeIn(fade_in))
    if fade_out > 0:
        effects.append(AudioFadeOut(fade_out))
    return audio.with_effects(effects) if effects else audio


def fit_audio(audio: AudioFileClip, duration: float, fade_out: float = 0.05) -> AudioFileClip:
    """Trim narration that runs past its scene and soften the cut.

    Args:
        audio: Narration clip.
        duration: Scene duration in seconds.
        fade_out: Fade applied when the clip had to be trimmed.

    Returns:
        Audio no longer than the scene.
    """
    if audio.duration <= duration:
        return audio
    trimmed = audio.subclipped(0, duration)
    return fade_audio(trimmed, fade_out=min(fade_out, duration))


def get_audio_duration(audio_path: Path) -> float:
    """Length of a narration file in seconds; the reader is closed afterwards."""
    audio = load_audio(audio_path)
    try:
        return audio.duration
    finally:
        audio.close()


def measure_duration(audio_path: Path) -> Optional[float]:
    """Duration of a narration file, or None when ffmpeg cannot read it."""
    try:
        return get_audio_duration(audio_path)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not measure {audio_path}: {e}")
        return None
