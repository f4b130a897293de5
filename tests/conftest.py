"""Shared fixtures: fake providers, an isolated config and a wired runtime."""

import random
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from nvg.config import Config
from nvg.errors import TransientError
from nvg.runtime import build_runtime
from nvg.services import (
    AudioAsset,
    ImageAsset,
    ImageProvider,
    ProviderRegistry,
    ScriptProvider,
    ScriptText,
    SpeechProvider,
)
from nvg.storage import MemoryProjectStore


class FakeScriptProvider(ScriptProvider):
    name = "fake"

    def __init__(self, script: str = "A cat explores a city at night.") -> None:
        self.script = script
        self.calls: List[tuple] = []

    def generate_script(self, topic, style=None, target_duration=None) -> ScriptText:
        self.calls.append((topic, style, target_duration))
        return ScriptText(title=f"About {topic}", script=self.script)


class _FakeAssetProvider:
    """Behaviour shared by the fake speech and image providers.

    Attributes:
        failures: Text -> number of transient failures before success.
        fatal: Text -> exception raised on every call.
        gate: When set, the first call waits on this event before returning.
        latency: Upper bound for a random per-call delay in seconds.
    """

    def __init__(self, latency: float = 0.0, seed: int = 7) -> None:
        self.failures: Dict[str, int] = {}
        self.fatal: Dict[str, Exception] = {}
        self.gate: Optional[threading.Event] = None
        self.started = threading.Event()
        self.latency = latency
        self.calls: List[str] = []
        self.completed: List[str] = []
        self._random = random.Random(seed)
        self._lock = threading.Lock()

    def _before(self, text: str) -> None:
        with self._lock:
            first_call = not self.calls
            self.calls.append(text)
            delay = self._random.uniform(0, self.latency) if self.latency else 0.0
            remaining = self.failures.get(text, 0)
            if remaining:
                self.failures[text] = remaining - 1
        self.started.set()
        if first_call and self.gate is not None:
            self.gate.wait(timeout=5)
        if delay:
            time.sleep(delay)
        if text in self.fatal:
            raise self.fatal[text]
        if remaining:
            raise TransientError(f"rate limited ({remaining} left)")

    def _after(self, text: str) -> None:
        with self._lock:
            self.completed.append(text)


class FakeSpeechProvider(_FakeAssetProvider, SpeechProvider):
    name = "fake"

    def __init__(self, duration: float = 3.0, **kwargs) -> None:
        super().__init__(**kwargs)
        self.duration = duration

    def synthesize_speech(self, text: str, voice_id: Optional[str], output_path: Path) -> AudioAsset:
        self._before(text)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(b"ID3" + text.encode("utf-8"))
        self._after(text)
        return AudioAsset(path=output_path, duration=self.duration)


class FakeImageProvider(_FakeAssetProvider, ImageProvider):
    name = "fake"
    extension = ".png"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.requests: List[dict] = []

    def synthesize_image(self, prompt, width, height, seed, output_path: Path) -> ImageAsset:
        # Prompts carry the style prefix; key failures on the scene text inside
        text = next((t for t in list(self.failures) + list(self.fatal) if t in prompt), prompt)
        self._before(text)
        with self._lock:
            self.requests.append({"prompt": prompt, "width": width, "height": height, "seed": seed})
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(b"PNG" + prompt.encode("utf-8"))
        self._after(text)
        return ImageAsset(path=output_path)


class FakeEncoder:
    """Stands in for the moviepy encoder; can fail a given number of times."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls: List[dict] = []

    def __call__(self, manifest, timeline, size, bitrate, output_path, thumbnail_path) -> None:
        self.calls.append({"size": size, "bitrate": bitrate, "scenes": len(manifest.scenes)})
        if self.failures:
            self.failures -= 1
            raise RuntimeError("ffmpeg exited with status 1")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(b"mp4")
        if thumbnail_path is not None:
            thumbnail_path.write_bytes(b"jpg")


@pytest.fixture
def config(tmp_path):
    """Config rooted in a temp workspace with no backoff delays."""
    return Config(
        workspace=tmp_path,
        max_concurrency=3,
        max_retries=2,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        provider_timeout=5.0,
        min_scene_duration=2.0,
        anthropic_api_key="",
        speechify_api_key="",
        inworld_api_key="",
        wavespeed_api_key="",
        pollinations_api_key="",
        google_cloud_project="",
    )


@pytest.fixture
def script_provider():
    return FakeScriptProvider()


@pytest.fixture
def speech():
    return FakeSpeechProvider()


@pytest.fixture
def images():
    return FakeImageProvider()


@pytest.fixture
def encoder():
    return FakeEncoder()


@pytest.fixture
def registry(script_provider, speech, images):
    registry = ProviderRegistry()
    registry.register_script("fake", script_provider)
    registry.register_speech("fake", speech)
    registry.register_image("fake", images)
    return registry


@pytest.fixture
def runtime(config, registry, encoder):
    return build_runtime(
        config,
        store=MemoryProjectStore(log_buffer_size=config.log_buffer_size),
        registry=registry,
        encoder=encoder,
    )


@pytest.fixture
def make_project(runtime):
    """Create a project wired to the fake providers."""

    def _make(script: str = "A cat explores a city at night.", **settings):
        settings.setdefault("script_provider", "fake")
        settings.setdefault("tts_provider", "fake")
        settings.setdefault("image_generator", "fake")
        return runtime.projects.create_project(settings.pop("title", "Night cat"), script, **settings)

    return _make


LONG_SCRIPT = (
    "The city sleeps under a blanket of fog. A small grey cat slips out of an alley.\n\n"
    "She pads past shuttered bakeries and humming vending machines. Neon signs flicker above her.\n\n"
    "On a rooftop she finds a pigeon, asleep. She decides it is not worth the effort.\n\n"
    "Down by the river the water reflects a thousand windows. A night bus rumbles past.\n\n"
    "At a corner shop the owner leaves out a saucer of milk. The cat accepts the tribute.\n\n"
    "As dawn arrives she curls up on a warm car bonnet and falls asleep."
)


@pytest.fixture
def long_script():
    return LONG_SCRIPT
