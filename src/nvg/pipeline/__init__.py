"""Generation pipeline: segmentation, state machine, orchestration and render."""

from .events import EventLog
from .orchestrator import GenerationOptions, GenerationRun, Orchestrator
from .projects import ProjectService
from .render import RenderResult, RenderStage, Timeline, build_chapters, build_timeline
from .retry import RetryPolicy, call_with_retry
from .segmentation import SceneDraft, segment_script
from .state import Actor, apply_transition, can_transition

__all__ = [
    "EventLog",
    "GenerationOptions",
    "GenerationRun",
    "Orchestrator",
    "ProjectService",
    "RenderResult",
    "RenderStage",
    "Timeline",
    "build_chapters",
    "build_timeline",
    "RetryPolicy",
    "call_with_retry",
    "SceneDraft",
    "segment_script",
    "Actor",
    "apply_transition",
    "can_transition",
]
