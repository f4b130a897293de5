"""
FastAPI app exposing project status and generation triggers.

Project Endpoints:
  POST   /projects                                   - Create project
  GET    /projects                                   - List projects
  GET    /projects/{id}                              - Status read
  PATCH  /projects/{id}                              - Edit draft fields
  DELETE /projects/{id}                              - Delete project
  POST   /projects/{id}/generate                     - Start a generation run
  POST   /projects/{id}/scenes/{scene_id}/regenerate - Regenerate one scene asset
  POST   /projects/{id}/render                       - Render the manifest

Log Endpoints:
  GET    /logs                                       - List log entries
  DELETE /logs                                       - Clear the log

  GET    /options                                    - Resolutions, styles, providers
"""

import logging
from typing import Any, Dict, List, Literal, Optional, Union

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .errors import (
    InvalidInputError,
    NvgError,
    ProjectNotFoundError,
    ProviderUnavailableError,
    StateError,
    TransientError,
)
from .models import LogEntry, LogFilter, LogLevel, MotionEffect, Project, Scene, SceneOverride, TransitionEffect
from .models.options import EXPORT_QUALITIES, IMAGE_STYLES, RESOLUTIONS, SCRIPT_DURATIONS, SCRIPT_STYLES
from .pipeline import GenerationOptions
from .pipeline.events import CATEGORIES
from .runtime import Runtime

logger = logging.getLogger(__name__)

ERROR_STATUS = [
    (ProjectNotFoundError, 404),
    (StateError, 409),
    (ProviderUnavailableError, 503),
    (TransientError, 502),
    (InvalidInputError, 400),
]


def status_for(error: NvgError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 500


# Request models


class ProjectCreateRequest(BaseModel):
    title: str = Field(..., min_length=1)
    script: str = ""
    topic: Optional[str] = None
    script_style: Optional[str] = None
    target_duration: Optional[Union[float, str]] = None
    script_provider: Optional[str] = None
    voice_id: Optional[str] = None
    tts_provider: Optional[str] = None
    image_style: Optional[str] = None
    custom_style_text: Optional[str] = None
    image_generator: Optional[str] = None
    resolution: Optional[str] = None
    transition: Optional[TransitionEffect] = None
    scene_overrides: Optional[Dict[str, SceneOverride]] = None


class GenerateRequest(BaseModel):
    regenerate_script: bool = False
    render: bool = False
    export_quality: Optional[str] = None


class RegenerateRequest(BaseModel):
    field: Literal["audio", "image"]


class RenderRequest(BaseModel):
    export_quality: Optional[str] = None


class RunResponse(BaseModel):
    project_id: str
    run_id: int
    status: str


def create_app(runtime: Runtime) -> FastAPI:
    """Build the API around a runtime."""
    app = FastAPI(title="Narrated Video Generator")
    projects = runtime.projects
    orchestrator = runtime.orchestrator
    events = runtime.events

    @app.exception_handler(NvgError)
    async def handle_error(request: Request, exc: NvgError) -> JSONResponse:
        status_code = status_for(exc)
        if status_code >= 500:
            events.warn("api", f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": exc.message, "scene_id": exc.scene_id},
        )

    project_router = APIRouter(prefix="/projects", tags=["projects"])

    @project_router.post("", response_model=Project, status_code=201)
    async def create_project(request: ProjectCreateRequest):
        settings = request.model_dump(exclude={"title", "script"}, exclude_none=True)
        return projects.create_project(request.title, request.script, **settings)

    @project_router.get("", response_model=List[Project])
    async def list_projects():
        return projects.list_projects()

    @project_router.get("/{project_id}", response_model=Project)
    async def get_project(project_id: str):
        return projects.get_project(project_id)

    @project_router.patch("/{project_id}", response_model=Project)
    async def update_project(project_id: str, changes: Dict[str, Any]):
        return projects.update_project(project_id, changes)

    @project_router.delete("/{project_id}", status_code=204)
    async def delete_project(project_id: str):
        projects.delete_project(project_id)

    @project_router.post("/{project_id}/generate", response_model=RunResponse, status_code=202)
    async def generate(project_id: str, request: Optional[GenerateRequest] = None):
        request = request or GenerateRequest()
        run_id = await orchestrator.run_generation(
            project_id,
            GenerationOptions(
                regenerate_script=request.regenerate_script,
                render=request.render,
                export_quality=request.export_quality,
            ),
        )
        project = projects.get_project(project_id)
        return RunResponse(project_id=project_id, run_id=run_id, status=project.status.value)

    @project_router.post("/{project_id}/scenes/{scene_id}/regenerate", response_model=Scene)
    async def regenerate_scene(project_id: str, scene_id: str, request: RegenerateRequest):
        return await orchestrator.regenerate_scene(project_id, scene_id, request.field)

    @project_router.post("/{project_id}/render", response_model=RunResponse, status_code=202)
    async def render(project_id: str, request: Optional[RenderRequest] = None):
        request = request or RenderRequest()
        run_id = await orchestrator.render_project(project_id, request.export_quality)
        project = projects.get_project(project_id)
        return RunResponse(project_id=project_id, run_id=run_id, status=project.status.value)

    log_router = APIRouter(prefix="/logs", tags=["logs"])

    @log_router.get("", response_model=List[LogEntry])
    async def list_logs(
        level: Optional[LogLevel] = None,
        category: Optional[str] = None,
        project_id: Optional[str] = None,
        limit: int = Query(100, ge=1, le=500),
    ):
        return events.list_logs(LogFilter(level=level, category=category, project_id=project_id, limit=limit))

    @log_router.delete("")
    async def clear_logs():
        return {"cleared": events.clear_logs()}

    @app.get("/options")
    async def options():
        return {
            "resolutions": [r.model_dump() for r in RESOLUTIONS.values()],
            "export_qualities": [q.model_dump() for q in EXPORT_QUALITIES.values()],
            "image_styles": list(IMAGE_STYLES) + ["custom"],
            "script_styles": list(SCRIPT_STYLES),
            "script_durations": list(SCRIPT_DURATIONS),
            "motion_effects": [m.value for m in MotionEffect],
            "transitions": [t.value for t in TransitionEffect],
            "providers": runtime.registry.available(),
            "log_categories": list(CATEGORIES),
        }

    app.include_router(project_router)
    app.include_router(log_router)
    return app
