"""Speechify text-to-speech client."""

import base64
import logging
from pathlib import Path
from typing import Optional

from ..config import Config
from ..errors import InvalidInputError
from . import http
from .base import AudioAsset, SpeechProvider, estimate_speech_duration
from .credentials import CredentialResolver
from ..editor.audio import measure_duration

logger = logging.getLogger(__name__)


class SpeechifyClient(SpeechProvider):
    """Speechify REST API (returns base64 mp3 plus duration, or raw audio)."""

    name = "speechify"
    API_URL = "https://api.sws.speechify.com/v1/audio/speech"
    DEFAULT_VOICE = "george"

    def __init__(self, credentials: CredentialResolver, config: Config) -> None:
        self._credentials = credentials
        self._config = config

    def synthesize_speech(self, text: str, voice_id: Optional[str], output_path: Path) -> AudioAsset:
        if not text.strip():
            raise InvalidInputError("Cannot synthesize empty text", provider=self.name, category="tts")
        api_key = self._credentials.require(self.name, category="tts")

        logger.info(f"Synthesizing speech with Speechify: {text[:50]}...")
        response = http.send(
            "POST",
            self.API_URL,
            provider=self.name,
            category="tts",
            timeout=self._config.provider_timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            json={
                "input": text,
                "voice_id": voice_id or self.DEFAULT_VOICE,
                "audio_format": "mp3",
            },
        )

        duration = None
        if "application/json" in response.headers.get("content-type", ""):
            data = response.json()
            audio_data = data.get("audio_data")
            if not audio_data:
                raise InvalidInputError("No audio data in Speechify response", provider=self.name, category="tts")
            audio_bytes = base64.b64decode(audio_data)
            duration = data.get("duration")
        else:
            audio_bytes = response.content

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "wb") as f:
            f.write(audio_bytes)

        if not duration:
            duration = measure_duration(output_path)
        if not duration:
            duration = estimate_speech_duration(text, self._config.words_per_minute)
        logger.info(f"Saved narration to {output_path} ({float(duration):.2f}s)")
        return AudioAsset(path=output_path, duration=float(duration))
