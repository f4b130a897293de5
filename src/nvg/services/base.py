"""Provider capability interfaces.

Every provider implements one or more of the three capabilities below. The
orchestrator only ever talks to these interfaces, so adding a provider means
registering a new implementation in the ProviderRegistry.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class ScriptText:
    """Result of a script generation call."""

    title: str
    script: str


@dataclass
class AudioAsset:
    """Narration written to disk, with its duration in seconds."""

    path: Path
    duration: float


@dataclass
class ImageAsset:
    """Scene image written to disk."""

    path: Path


class ScriptProvider(ABC):
    """Generates narration scripts from a topic."""

    name: str = "script"

    @abstractmethod
    def generate_script(
        self,
        topic: str,
        style: Optional[str] = None,
        target_duration: Optional[float] = None,
    ) -> ScriptText:
        """Write a narration script.

        Args:
            topic: What the video is about.
            style: One of the script styles (educational, storytelling, ...).
            target_duration: Requested narration length in seconds.

        Returns:
            ScriptText with a title and the narration.

        Raises:
            ProviderError: Classified failure.
        """


class SpeechProvider(ABC):
    """Turns one line of narration into an audio file."""

    name: str = "tts"

    @abstractmethod
    def synthesize_speech(self, text: str, voice_id: Optional[str], output_path: Path) -> AudioAsset:
        """Synthesize narration for a scene.

        Args:
            text: Narration text.
            voice_id: Provider voice identifier, None for the provider default.
            output_path: Where to write the audio file.

        Returns:
            AudioAsset with the written path and its duration.

        Raises:
            ProviderError: Classified failure.
        """


class ImageProvider(ABC):
    """Turns a prompt into a scene image."""

    name: str = "image"
    extension: str = ".png"

    @abstractmethod
    def synthesize_image(
        self,
        prompt: str,
        width: int,
        height: int,
        seed: int,
        output_path: Path,
    ) -> ImageAsset:
        """Synthesize an image.

        Args:
            prompt: Full image prompt including style.
            width: Requested width in pixels.
            height: Requested height in pixels.
            seed: Deterministic seed for the generator.
            output_path: Where to write the image file.

        Returns:
            ImageAsset with the written path.

        Raises:
            ProviderError: Classified failure.
        """


def count_words(text: str) -> int:
    return len(re.findall(r"\S+", text))


def estimate_speech_duration(text: str, words_per_minute: int = 150, minimum: float = 2.0) -> float:
    """Estimate narration length from word count."""
    seconds = count_words(text) / words_per_minute * 60
    return max(minimum, round(seconds, 2))
