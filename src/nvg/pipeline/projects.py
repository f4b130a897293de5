"""Project service: create, read, edit and delete projects."""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..config import Config
from ..errors import ConflictError, InvalidInputError, InvalidTransitionError
from ..models import Project
from ..models.options import IMAGE_STYLES, RESOLUTIONS, SCRIPT_STYLES, parse_duration
from ..storage import ProjectStore
from .events import EventLog
from .state import is_active

logger = logging.getLogger(__name__)

# Fields callers may edit; everything else is owned by the pipeline
EDITABLE_FIELDS = {
    "title",
    "script",
    "topic",
    "script_style",
    "target_duration",
    "script_provider",
    "voice_id",
    "tts_provider",
    "image_style",
    "custom_style_text",
    "image_generator",
    "resolution",
    "transition",
    "scene_overrides",
}


def _validate_settings(values: Dict[str, Any]) -> None:
    """Reject option ids outside the known tables."""
    resolution = values.get("resolution")
    if resolution is not None and resolution not in RESOLUTIONS:
        raise InvalidInputError(f"Unknown resolution: {resolution}. Expected one of: {', '.join(RESOLUTIONS)}")
    style = values.get("script_style")
    if style is not None and style not in SCRIPT_STYLES:
        raise InvalidInputError(f"Unknown script style: {style}. Expected one of: {', '.join(SCRIPT_STYLES)}")
    image_style = values.get("image_style")
    if image_style is not None and image_style != "custom" and image_style not in IMAGE_STYLES:
        raise InvalidInputError(
            f"Unknown image style: {image_style}. Expected one of: {', '.join(IMAGE_STYLES)}, custom"
        )


def _normalize(values: Dict[str, Any]) -> Dict[str, Any]:
    if values.get("target_duration") is not None:
        try:
            values["target_duration"] = parse_duration(values["target_duration"])
        except ValueError as e:
            raise InvalidInputError(str(e))
    return values


class ProjectService:
    """User-facing project operations.

    Callers never write status, progress or outputs; those belong to the
    orchestrator and the render stage.
    """

    def __init__(self, store: ProjectStore, config: Config, events: EventLog) -> None:
        self._store = store
        self._config = config
        self._events = events

    def create_project(self, title: str, script: str = "", **settings: Any) -> Project:
        """Create a draft project.

        Args:
            title: Project title.
            script: Narration script, empty when it will be generated from a topic.
            **settings: Any editable field (topic, voice_id, image_style, ...).

        Returns:
            The stored project.

        Raises:
            InvalidInputError: Unknown field or invalid value.
        """
        unknown = set(settings) - EDITABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Unknown project fields: {', '.join(sorted(unknown))}")
        values = _normalize({k: v for k, v in settings.items() if v is not None})
        values.setdefault("resolution", self._config.default_resolution)
        _validate_settings(values)
        try:
            project = Project(title=title, script=script, **values)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid project: {e}")
        self._store.save_project(project)
        self._events.info("system", f"Project created: {project.title}", project_id=project.id)
        return project

    def get_project(self, project_id: str) -> Project:
        """Status read: the latest persisted project."""
        return self._store.load_project(project_id)

    def list_projects(self) -> List[Project]:
        return self._store.list_projects()

    def update_project(self, project_id: str, changes: Dict[str, Any]) -> Project:
        """Edit draft-state fields.

        Raises:
            InvalidTransitionError: The changes try to write status.
            InvalidInputError: Unknown, pipeline-owned or invalid field.
            ConflictError: The project is queued or generating.
        """
        if "status" in changes:
            raise InvalidTransitionError("Status is managed by the pipeline and cannot be edited")
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        project = self._store.load_project(project_id)
        if is_active(project):
            raise ConflictError(f"Project {project_id} is {project.status.value}; wait for it to finish")

        changes = _normalize(dict(changes))
        _validate_settings(changes)
        try:
            updated = Project.model_validate({**project.model_dump(), **changes})
        except ValidationError as e:
            raise InvalidInputError(f"Invalid project update: {e}")
        updated.touch()
        self._store.save_project(updated)
        self._events.debug("system", f"Project updated: {', '.join(sorted(changes))}", project_id=project_id)
        return updated

    def delete_project(self, project_id: str) -> None:
        """Delete a project. Its log entries stay, detached from it.

        Raises:
            ConflictError: The project is queued or generating.
        """
        project = self._store.load_project(project_id)
        if is_active(project):
            raise ConflictError(f"Project {project_id} is {project.status.value}; wait for it to finish")
        self._store.delete_project(project_id)
        self._events.info("system", f"Project deleted: {project.title}")

    def find_project(self, prefix: str) -> Optional[Project]:
        """Look a project up by id or unique id prefix (CLI convenience)."""
        projects = self._store.list_projects()
        for project in projects:
            if project.id == prefix:
                return project
        matches = [p for p in projects if p.id.startswith(prefix)]
        return matches[0] if len(matches) == 1 else None
