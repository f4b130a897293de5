"""Inworld text-to-speech client."""

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


class InworldClient(SpeechProvider):
    """Inworld TTS REST API with word-level timestamps."""

    name = "inworld"
    API_URL = "https://api.inworld.ai/tts/v1/voice"
    MODEL_ID = "inworld-tts-1.5-max"
    DEFAULT_VOICE = "Dennis"

    def __init__(self, credentials: CredentialResolver, config: Config) -> None:
        self._credentials = credentials
        self._config = config

    def synthesize_speech(self, text: str, voice_id: Optional[str], output_path: Path) -> AudioAsset:
        if not text.strip():
            raise InvalidInputError("Cannot synthesize empty text", provider=self.name, category="tts")
        api_key = self._credentials.require(self.name, category="tts")

        logger.info(f"Synthesizing speech with Inworld: {text[:50]}...")
        response = http.send(
            "POST",
            self.API_URL,
            provider=self.name,
            category="tts",
            timeout=self._config.provider_timeout,
            headers={
                "Authorization": f"Basic {api_key}",
                "Content-Type": "application/json",
            },
            json={
                "text": text,
                "voiceId": voice_id or self.DEFAULT_VOICE,
                "modelId": self.MODEL_ID,
                "timestampType": "WORD",
            },
        )

        data = response.json()
        audio_content = data.get("audioContent")
        if not audio_content:
            raise InvalidInputError("No audio content in Inworld response", provider=self.name, category="tts")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "wb") as f:
            f.write(base64.b64decode(audio_content))

        duration = self._duration_from_timestamps(data)
        if duration is None:
            duration = measure_duration(output_path)
        if not duration:
            duration = estimate_speech_duration(text, self._config.words_per_minute)
        logger.info(f"Saved narration to {output_path} ({duration:.2f}s)")
        return AudioAsset(path=output_path, duration=float(duration))

    @staticmethod
    def _duration_from_timestamps(data: dict) -> Optional[float]:
        """End time of the last aligned word, if the response carries alignment."""
        alignment = (data.get("timestampInfo") or {}).get("wordAlignment") or {}
        end_times = alignment.get("wordEndTimeSeconds") or []
        if not end_times:
            return None
        return float(end_times[-1])
