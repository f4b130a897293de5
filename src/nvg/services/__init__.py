"""External service integrations."""

from .base import (
    AudioAsset,
    ImageAsset,
    ImageProvider,
    ScriptProvider,
    ScriptText,
    SpeechProvider,
    estimate_speech_duration,
)
from .credentials import CredentialResolver
from .registry import ProviderRegistry
from .anthropic import AnthropicClient
from .speechify import SpeechifyClient
from .inworld import InworldClient
from .imagen import ImagenClient
from .wavespeed import WaveSpeedClient
from .pollinations import PollinationsClient

__all__ = [
    "AudioAsset",
    "ImageAsset",
    "ImageProvider",
    "ScriptProvider",
    "ScriptText",
    "SpeechProvider",
    "estimate_speech_duration",
    "CredentialResolver",
    "ProviderRegistry",
    "AnthropicClient",
    "SpeechifyClient",
    "InworldClient",
    "ImagenClient",
    "WaveSpeedClient",
    "PollinationsClient",
]
