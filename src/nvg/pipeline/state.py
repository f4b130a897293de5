"""Project status state machine.

Legal edges:
    draft -> queued -> generating -> {ready | error}
    generating -> draft   (generation finished without a render)
    ready -> generating   (re-render or regeneration)
    error -> queued       (retry from scratch)

Re-entering queued or generating is a no-op edge, used when a newer run
supersedes an active one.
"""

from enum import Enum
from typing import Optional

from ..errors import InvalidStateError, InvalidTransitionError
from ..models import Project, ProjectStatus

S = ProjectStatus

TRANSITIONS = {
    S.DRAFT: {S.QUEUED},
    S.QUEUED: {S.QUEUED, S.GENERATING},
    S.GENERATING: {S.GENERATING, S.READY, S.ERROR, S.DRAFT},
    S.READY: {S.GENERATING},
    S.ERROR: {S.QUEUED},
}

ACTIVE_STATUSES = {S.QUEUED, S.GENERATING}


class Actor(str, Enum):
    """Who is asking to write status."""
    ORCHESTRATOR = "orchestrator"
    RENDERER = "renderer"
    USER = "user"


WRITERS = {
    Actor.ORCHESTRATOR: {S.QUEUED, S.GENERATING, S.ERROR, S.DRAFT},
    Actor.RENDERER: {S.READY, S.ERROR},
    Actor.USER: set(),
}


def can_transition(source: ProjectStatus, target: ProjectStatus) -> bool:
    return target in TRANSITIONS[source]


def is_active(project: Project) -> bool:
    return project.status in ACTIVE_STATUSES


def apply_transition(
    project: Project,
    target: ProjectStatus,
    actor: Actor,
    error_message: Optional[str] = None,
) -> Project:
    """Move a project to a new status, keeping the status invariants.

    The project is validated before anything is changed, so a rejected
    transition leaves it untouched.

    Args:
        project: Project to mutate.
        target: New status.
        actor: Component requesting the change.
        error_message: Required when entering error.

    Returns:
        The same project, mutated.

    Raises:
        InvalidTransitionError: Not an edge, or the actor may not write target.
        InvalidStateError: Entering ready without manifest and output, or
            entering error without a message.
    """
    if target not in WRITERS[actor]:
        raise InvalidTransitionError(
            f"{actor.value} may not set status to {target.value}"
        )
    if not can_transition(project.status, target):
        raise InvalidTransitionError(
            f"Illegal transition {project.status.value} -> {target.value}"
        )
    if target == S.READY and (project.manifest is None or not project.output_path):
        raise InvalidStateError("A ready project needs a manifest and an output file")
    if target == S.ERROR and not error_message:
        raise InvalidStateError("An error status needs an error message")

    project.status = target
    project.error_message = error_message if target == S.ERROR else None
    if target != S.READY:
        project.output_path = None
        project.chapters = None
    project.touch()
    return project
