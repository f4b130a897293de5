"""Error taxonomy shared by providers, the orchestrator and the render stage."""

from typing import Any, Optional


class NvgError(Exception):
    """Base class for all pipeline errors.

    Attributes:
        category: Log category the failure belongs to (script, tts, image, render, ...).
        scene_id: Scene the failure is tied to, when there is one.
        details: Structured context forwarded to the event log.
    """

    default_category = "system"

    def __init__(
        self,
        message: str,
        category: Optional[str] = None,
        scene_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.scene_id = scene_id
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ProjectNotFoundError(NvgError):
    """No project is stored under the requested id."""


# Provider failures


class ProviderError(NvgError):
    """A capability call failed."""

    retryable = False

    def __init__(self, message: str, provider: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.provider = provider


class TransientError(ProviderError):
    """Network, timeout or rate-limit failure. Eligible for retry."""

    retryable = True


class InvalidInputError(ProviderError):
    """Bad prompt, voice, style or caller argument. Never retried."""


class ProviderUnavailableError(ProviderError):
    """Missing or rejected credential. Never retried."""


# Render failures


class RenderError(NvgError):
    default_category = "render"


class IncompleteSceneError(RenderError):
    """A scene has neither an audio nor an image asset to render."""


class EncodeFailureError(RenderError):
    """The encoder failed while writing the output video."""


# State machine misuse


class StateError(NvgError):
    """Rejected synchronously; never mutates stored state."""


class InvalidTransitionError(StateError):
    """The requested status change is not an edge of the state machine."""


class ConflictError(StateError):
    """The project (or scene) is busy with another operation."""


class InvalidStateError(StateError):
    """The operation does not make sense for the project's current data."""
