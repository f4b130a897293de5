"""Wiring: builds the store, providers, pipeline and services from a Config."""

from dataclasses import dataclass
from typing import Dict, Optional

from .agents import ScriptWriterAgent
from .config import Config, config as default_config
from .pipeline import EventLog, Orchestrator, ProjectService, RenderStage
from .pipeline.render import Encoder
from .services import (
    AnthropicClient,
    CredentialResolver,
    ImagenClient,
    InworldClient,
    PollinationsClient,
    ProviderRegistry,
    SpeechifyClient,
    WaveSpeedClient,
)
from .storage import FileProjectStore, ProjectStore


@dataclass
class Runtime:
    """Everything the CLI and API need, built once per process."""

    config: Config
    store: ProjectStore
    events: EventLog
    registry: ProviderRegistry
    renderer: RenderStage
    projects: ProjectService
    orchestrator: Orchestrator


def build_registry(config: Config, credentials: CredentialResolver) -> ProviderRegistry:
    """Register every built-in provider. Keys are resolved at call time."""
    registry = ProviderRegistry()
    registry.register_script(
        "anthropic",
        ScriptWriterAgent(AnthropicClient(credentials, config), words_per_minute=config.words_per_minute),
    )
    registry.register_speech("speechify", SpeechifyClient(credentials, config))
    registry.register_speech("inworld", InworldClient(credentials, config))
    registry.register_image("wavespeed", WaveSpeedClient(credentials, config))
    registry.register_image("pollinations", PollinationsClient(credentials, config))
    registry.register_image("imagen", ImagenClient(credentials, config))
    return registry


def build_runtime(
    config: Optional[Config] = None,
    store: Optional[ProjectStore] = None,
    registry: Optional[ProviderRegistry] = None,
    encoder: Optional[Encoder] = None,
    credential_overrides: Optional[Dict[str, str]] = None,
) -> Runtime:
    """Assemble a runtime, substituting any collaborator that is passed in."""
    config = config or default_config
    store = store or FileProjectStore(config.workspace, log_buffer_size=config.log_buffer_size)
    events = EventLog(store)
    if registry is None:
        registry = build_registry(config, CredentialResolver(config, credential_overrides))
    renderer = RenderStage(config, encoder=encoder)
    return Runtime(
        config=config,
        store=store,
        events=events,
        registry=registry,
        renderer=renderer,
        projects=ProjectService(store, config, events),
        orchestrator=Orchestrator(store, registry, config, events, renderer),
    )
