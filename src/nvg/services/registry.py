"""Provider registry keyed by provider id."""

import logging
from typing import Dict, List

from ..errors import InvalidInputError
from .base import ImageProvider, ScriptProvider, SpeechProvider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Maps provider ids to capability implementations.

    Projects store provider ids (script_provider, tts_provider,
    image_generator); the orchestrator resolves them here.
    """

    def __init__(self) -> None:
        self._script: Dict[str, ScriptProvider] = {}
        self._speech: Dict[str, SpeechProvider] = {}
        self._image: Dict[str, ImageProvider] = {}

    def register_script(self, name: str, provider: ScriptProvider) -> None:
        self._script[name] = provider

    def register_speech(self, name: str, provider: SpeechProvider) -> None:
        self._speech[name] = provider

    def register_image(self, name: str, provider: ImageProvider) -> None:
        self._image[name] = provider

    def script(self, name: str) -> ScriptProvider:
        return self._lookup(self._script, name, "script")

    def speech(self, name: str) -> SpeechProvider:
        return self._lookup(self._speech, name, "tts")

    def image(self, name: str) -> ImageProvider:
        return self._lookup(self._image, name, "image")

    def available(self) -> Dict[str, List[str]]:
        return {
            "script": sorted(self._script),
            "tts": sorted(self._speech),
            "image": sorted(self._image),
        }

    @staticmethod
    def _lookup(providers: dict, name: str, category: str):
        try:
            return providers[name]
        except KeyError:
            raise InvalidInputError(
                f"Unknown {category} provider: {name}. Available: {', '.join(sorted(providers)) or 'none'}",
                provider=name,
                category=category,
            )
