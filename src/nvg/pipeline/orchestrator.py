"""Generation orchestrator.

Drives a project from script to manifest (and optionally a rendered video)
in a background task per run. Every state write goes through `_commit`,
which drops the write when a newer run has been admitted for the project.
"""

import asyncio
import dataclasses
import itertools
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..config import Config
from ..errors import (
    ConflictError,
    InvalidInputError,
    InvalidStateError,
    NvgError,
    ProjectNotFoundError,
    ProviderError,
)
from ..models import (
    MOTION_CYCLE,
    Manifest,
    Project,
    ProjectStatus,
    Scene,
    SceneOverride,
    TransitionEffect,
)
from ..models.options import EXPORT_QUALITIES, get_resolution, image_dimensions
from ..services.base import AudioAsset, ImageAsset
from ..services.registry import ProviderRegistry
from ..storage import ProjectStore
from .events import EventLog
from .prompts import build_image_prompt, image_seed
from .render import RenderStage, build_timeline
from .retry import RetryPolicy, call_with_retry
from .segmentation import SceneDraft, segment_script
from .state import Actor, apply_transition, is_active

logger = logging.getLogger(__name__)

SCRIPT_PROGRESS = 10
AUDIO_RANGE = (10, 50)
IMAGE_RANGE = (50, 90)
ASSEMBLY_PROGRESS = 95

STAGE_LABELS = {
    "script": "Script generation",
    "tts": "Audio generation",
    "image": "Image generation",
    "render": "Render",
    "system": "Generation",
}


class StaleRunError(Exception):
    """A newer run owns the project; this run's writes are discarded."""


@dataclass
class GenerationOptions:
    """Caller options for a generation run."""

    regenerate_script: bool = False
    render: bool = False
    export_quality: Optional[str] = None


@dataclass
class GenerationRun:
    """One pass of the orchestrator over a project."""

    project_id: str
    run_id: int
    closed: bool = False
    drafts: List[SceneDraft] = field(default_factory=list)
    audio: List[Optional[AudioAsset]] = field(default_factory=list)
    images: List[Optional[ImageAsset]] = field(default_factory=list)


class Orchestrator:
    """Runs generation and render work for projects."""

    def __init__(
        self,
        store: ProjectStore,
        registry: ProviderRegistry,
        config: Config,
        events: EventLog,
        renderer: RenderStage,
    ) -> None:
        self._store = store
        self._registry = registry
        self._config = config
        self._events = events
        self._renderer = renderer
        self._policy = RetryPolicy.from_config(config)
        self._tasks: Dict[str, Set[asyncio.Task]] = {}
        self._regenerating: Set[Tuple[str, str]] = set()

    # Public operations

    async def run_generation(self, project_id: str, options: Optional[GenerationOptions] = None) -> int:
        """Start a generation run in the background.

        Args:
            project_id: Project to generate.
            options: Script regeneration and render handoff options.

        Returns:
            The new run id.

        Raises:
            ProjectNotFoundError: Unknown project.
            InvalidInputError: Unknown export quality.
        """
        options = options or GenerationOptions()
        if options.export_quality is not None:
            self._check_export_quality(options.export_quality)
        run = self._admit(project_id, "Queued for generation")
        self._events.info("system", f"Generation run {run.run_id} started", project_id=project_id)
        self._spawn(run, self._generate(run, options))
        return run.run_id

    async def render_project(self, project_id: str, export_quality: Optional[str] = None) -> int:
        """Render the project's current manifest in the background.

        Raises:
            ProjectNotFoundError: Unknown project.
            InvalidStateError: The project has no manifest.
            InvalidInputError: Unknown export quality.
            ConflictError: A generation or render run is in progress.
        """
        project = self._store.load_project(project_id)
        if project.manifest is None:
            raise InvalidStateError(f"Project {project_id} has no manifest to render")
        if is_active(project):
            raise ConflictError(f"Project {project_id} is {project.status.value}")
        if export_quality is not None:
            self._check_export_quality(export_quality)
        run = self._admit(project_id, "Queued for render")
        self._events.info("render", f"Render run {run.run_id} started", project_id=project_id)
        self._spawn(run, self._render_run(run, export_quality))
        return run.run_id

    async def regenerate_scene(self, project_id: str, scene_id: str, field: str) -> Scene:
        """Re-run one provider call for one scene and swap its asset in place.

        Other scenes and the project status are left untouched. A second
        request for a scene already being regenerated fails with ConflictError.

        Args:
            project_id: Project owning the scene.
            scene_id: Scene to regenerate.
            field: "audio" or "image".

        Returns:
            The updated scene.

        Raises:
            InvalidInputError: Unknown field or scene.
            InvalidStateError: The project has no manifest yet.
            ConflictError: The project is busy, the scene is already being
                regenerated, or the project changed before the result landed.
            ProviderError: The provider call failed.
        """
        if field not in ("audio", "image"):
            raise InvalidInputError(f"Field must be 'audio' or 'image', got {field!r}")
        project = self._store.load_project(project_id)
        if project.manifest is None:
            raise InvalidStateError(f"Project {project_id} has no manifest yet")
        if is_active(project):
            raise ConflictError(f"Project {project_id} is {project.status.value}")
        scene = project.manifest.get_scene(scene_id)
        if scene is None:
            raise InvalidInputError(f"Unknown scene: {scene_id}")
        key = (project_id, scene_id)
        if key in self._regenerating:
            raise ConflictError(f"Scene {scene_id} is already being regenerated")

        category = "tts" if field == "audio" else "image"
        self._regenerating.add(key)
        try:
            token = uuid.uuid4().hex[:8]
            if field == "audio":
                asset = await self._synthesize_audio(project, scene.id, scene.text, token)
                update = {"audio_file": self._config.asset_reference(asset.path)}
                if asset.duration > 0:
                    update["duration"] = asset.duration
            else:
                image = await self._synthesize_image(project, scene.id, scene.text, token)
                update = {"image_file": self._config.asset_reference(image.path)}

            current = self._store.load_project(project_id)
            current_scene = current.manifest.get_scene(scene_id) if current.manifest else None
            if (
                current.run_id != project.run_id
                or is_active(current)
                or current_scene is None
                or current_scene.text != scene.text
            ):
                raise ConflictError(
                    f"Project {project_id} changed while scene {scene_id} was regenerating; result discarded"
                )
            updated = current_scene.model_copy(update=update)
            current.manifest = current.manifest.replace_scene(updated)
            # A rendered project keeps the duration its chapters describe until the next render
            if current.output_path is None:
                current.total_duration = build_timeline(current.manifest).duration
            current.touch()
            self._store.save_project(current)
            self._write_manifest_file(current)
        except NvgError as e:
            e.scene_id = e.scene_id or scene_id
            self._events.error(
                category,
                f"Regenerating {field} failed for {scene_id}: {e}",
                details={"error": type(e).__name__},
                project_id=project_id,
            )
            raise
        finally:
            self._regenerating.discard(key)

        self._events.info(category, f"Regenerated {field} for {scene_id}", project_id=project_id)
        return updated

    async def wait(self, project_id: Optional[str] = None) -> None:
        """Wait for background runs (of one project, or all) to finish."""
        while True:
            if project_id is None:
                pending = [t for tasks in self._tasks.values() for t in tasks]
            else:
                pending = list(self._tasks.get(project_id, ()))
            pending = [t for t in pending if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # Run lifecycle

    def _admit(self, project_id: str, message: str) -> GenerationRun:
        """Bump the run counter and move the project into the pipeline."""
        project = self._store.load_project(project_id)
        if project.status in (ProjectStatus.DRAFT, ProjectStatus.ERROR):
            target = ProjectStatus.QUEUED
        elif project.status == ProjectStatus.READY:
            target = ProjectStatus.GENERATING
        else:
            # A newer run supersedes the active one
            target = project.status
            self._events.info(
                "system", f"Run {project.run_id} superseded", project_id=project_id
            )
        apply_transition(project, target, Actor.ORCHESTRATOR)
        project.run_id += 1
        project.progress = 0
        project.progress_message = message
        self._store.save_project(project)
        return GenerationRun(project_id=project_id, run_id=project.run_id)

    def _spawn(self, run: GenerationRun, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        tasks = self._tasks.setdefault(run.project_id, set())
        tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            tasks.discard(t)
            if not tasks:
                self._tasks.pop(run.project_id, None)

        task.add_done_callback(_done)

    def _commit(self, run: GenerationRun, mutate: Callable[[Project], None]) -> Project:
        """Apply a state change if this run still owns the project.

        Progress never moves backwards within a run.

        Raises:
            StaleRunError: A newer run was admitted, or the run has ended.
        """
        if run.closed:
            raise StaleRunError(run.run_id)
        try:
            project = self._store.load_project(run.project_id)
        except ProjectNotFoundError:
            raise StaleRunError(run.run_id)
        if project.run_id != run.run_id:
            raise StaleRunError(run.run_id)
        before = project.progress
        mutate(project)
        project.progress = max(before, project.progress)
        project.touch()
        self._store.save_project(project)
        return project

    def _progress(self, run: GenerationRun, progress: int, message: str) -> None:
        def mutate(project: Project) -> None:
            project.progress = progress
            project.progress_message = message

        self._commit(run, mutate)

    async def _generate(self, run: GenerationRun, options: GenerationOptions) -> None:
        stage = "system"
        try:
            self._start(run, "Starting generation")
            project = self._store.load_project(run.project_id)

            stage = "script"
            script = await self._script_stage(run, project, options)
            project = self._store.load_project(run.project_id)

            run.drafts = segment_script(
                script,
                project.target_duration,
                target_words=self._config.scene_target_words,
                max_words=self._config.scene_max_words,
                words_per_minute=self._config.words_per_minute,
                min_duration=self._config.min_scene_duration,
            )
            if not run.drafts:
                raise InvalidInputError("Script produced no scenes", category="script")
            self._events.info("script", f"Segmented script into {len(run.drafts)} scenes", project_id=run.project_id)
            run.audio = [None] * len(run.drafts)
            run.images = [None] * len(run.drafts)

            stage = "tts"
            await self._scene_stage(
                run, "Generating audio", AUDIO_RANGE, "tts", run.audio,
                lambda draft: self._synthesize_audio(project, draft.id, draft.text, f"r{run.run_id}"),
            )
            stage = "image"
            await self._scene_stage(
                run, "Generating images", IMAGE_RANGE, "image", run.images,
                lambda draft: self._synthesize_image(project, draft.id, draft.text, f"r{run.run_id}"),
            )

            stage = "system"
            manifest = self._assemble(project, run)

            def store_manifest(p: Project) -> None:
                p.manifest = manifest
                p.total_duration = build_timeline(manifest).duration
                p.progress = ASSEMBLY_PROGRESS
                p.progress_message = "Manifest assembled"

            project = self._commit(run, store_manifest)
            self._write_manifest_file(project)

            if options.render:
                stage = "render"
                await self._render_step(run, manifest, options.export_quality)
            else:
                def finish(p: Project) -> None:
                    apply_transition(p, ProjectStatus.DRAFT, Actor.ORCHESTRATOR)
                    p.progress = 100
                    p.progress_message = "Generation complete"

                self._commit(run, finish)
                self._events.info(
                    "system", f"Generation complete ({len(manifest.scenes)} scenes)", project_id=run.project_id
                )
        except StaleRunError:
            self._events.debug("system", f"Run {run.run_id} superseded; results discarded", project_id=run.project_id)
        except NvgError as e:
            self._fail(run, e, stage)
        except Exception as e:
            logger.exception(f"Unexpected error in run {run.run_id}")
            self._fail(run, NvgError(f"{type(e).__name__}: {e}"), stage)
        finally:
            run.closed = True

    async def _render_run(self, run: GenerationRun, export_quality: Optional[str]) -> None:
        try:
            project = self._start(run, "Preparing render")
            await self._render_step(run, project.manifest, export_quality)
        except StaleRunError:
            self._events.debug("render", f"Render run {run.run_id} superseded; result discarded", project_id=run.project_id)
        except NvgError as e:
            self._fail(run, e, "render")
        except Exception as e:
            logger.exception(f"Unexpected error in render run {run.run_id}")
            self._fail(run, NvgError(f"{type(e).__name__}: {e}"), "render")
        finally:
            run.closed = True

    def _start(self, run: GenerationRun, message: str) -> Project:
        def mutate(project: Project) -> None:
            if project.status == ProjectStatus.QUEUED:
                apply_transition(project, ProjectStatus.GENERATING, Actor.ORCHESTRATOR)
            project.progress_message = message

        return self._commit(run, mutate)

    def _fail(self, run: GenerationRun, error: NvgError, stage: str) -> None:
        category = error.category if stage == "system" else stage
        label = STAGE_LABELS.get(category, STAGE_LABELS["system"])
        if error.scene_id:
            message = f"{label} failed for {error.scene_id}: {error}"
        else:
            message = f"{label} failed: {error}"
        actor = Actor.RENDERER if category == "render" else Actor.ORCHESTRATOR

        def mutate(project: Project) -> None:
            if run.drafts:
                project.manifest = self._partial_manifest(project, run)
            apply_transition(project, ProjectStatus.ERROR, actor, error_message=message)
            project.progress_message = message

        try:
            project = self._commit(run, mutate)
        except StaleRunError:
            self._events.debug(category, f"Run {run.run_id} failed after being superseded: {error}",
                               project_id=run.project_id)
            return
        if project.manifest is not None:
            self._write_manifest_file(project)
        self._events.error(
            category,
            message,
            details={"error": type(error).__name__, "run_id": run.run_id, **error.details},
            project_id=run.project_id,
        )

    # Stages

    async def _script_stage(self, run: GenerationRun, project: Project, options: GenerationOptions) -> str:
        if project.script.strip() and not options.regenerate_script:
            self._progress(run, SCRIPT_PROGRESS, "Using existing script")
            return project.script
        if not (project.topic or "").strip():
            raise InvalidInputError("Project has no script and no topic to write one from", category="script")

        self._progress(run, 0, "Writing script")
        provider = self._registry.script(project.script_provider)
        result = await call_with_retry(
            provider.generate_script,
            project.topic,
            project.script_style,
            project.target_duration,
            policy=self._policy,
            on_retry=self._retry_logger(run.project_id, "script", None),
        )

        def store_script(p: Project) -> None:
            p.script = result.script
            if not p.title.strip():
                p.title = result.title
            p.progress = SCRIPT_PROGRESS
            p.progress_message = "Script ready"

        self._commit(run, store_script)
        self._events.info("script", f"Script written: {result.title}", project_id=run.project_id)
        return result.script

    async def _scene_stage(
        self,
        run: GenerationRun,
        label: str,
        progress_range: Tuple[int, int],
        category: str,
        results: list,
        work: Callable,
    ) -> None:
        """Run one provider call per scene with bounded concurrency.

        Results land in `results` by scene index, so completion order never
        affects scene order. The first fatal failure cancels the remaining
        scenes and propagates.
        """
        start, end = progress_range
        total = len(run.drafts)
        completed = 0
        semaphore = asyncio.Semaphore(self._config.max_concurrency)
        self._progress(run, start, f"{label} (0/{total})")

        async def process(index: int, draft: SceneDraft) -> None:
            nonlocal completed
            async with semaphore:
                if run.closed:
                    raise StaleRunError(run.run_id)
                try:
                    results[index] = await work(draft)
                except StaleRunError:
                    raise
                except NvgError as e:
                    e.scene_id = e.scene_id or draft.id
                    raise
                except Exception as e:
                    raise ProviderError(f"{type(e).__name__}: {e}", category=category, scene_id=draft.id) from e
            completed += 1
            self._progress(run, start + (end - start) * completed // total, f"{label} ({completed}/{total})")

        tasks = [asyncio.create_task(process(i, draft)) for i, draft in enumerate(run.drafts)]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _synthesize_audio(self, project: Project, scene_id: str, text: str, token: str) -> AudioAsset:
        provider = self._registry.speech(project.tts_provider)
        path = self._config.project_assets_dir(project.id) / f"{scene_id}-{token}.mp3"
        return await self._call_provider(
            provider.synthesize_speech,
            path,
            text,
            project.voice_id,
            on_retry=self._retry_logger(project.id, "tts", scene_id),
        )

    async def _synthesize_image(self, project: Project, scene_id: str, text: str, token: str) -> ImageAsset:
        provider = self._registry.image(project.image_generator)
        resolution = get_resolution(project.resolution)
        width, height = image_dimensions(resolution.width, resolution.height)
        prompt = build_image_prompt(text, project.image_style, project.custom_style_text)
        path = self._config.project_assets_dir(project.id) / f"{scene_id}-{token}{provider.extension}"
        return await self._call_provider(
            provider.synthesize_image,
            path,
            prompt,
            width,
            height,
            image_seed(project.id, scene_id),
            on_retry=self._retry_logger(project.id, "image", scene_id),
        )

    async def _call_provider(self, fn: Callable, output_path: Path, *args, on_retry=None):
        """Call an asset provider with retries and move the winning file to `output_path`.

        Each attempt writes to its own `.partN` file, so an attempt that
        timed out but finishes later can never overwrite the kept asset.
        """
        attempts = itertools.count(1)

        def attempt():
            part = output_path.with_name(f"{output_path.stem}.part{next(attempts)}{output_path.suffix}")
            return fn(*args, part)

        asset = await call_with_retry(attempt, policy=self._policy, on_retry=on_retry)
        Path(asset.path).replace(output_path)
        return dataclasses.replace(asset, path=output_path)

    def _retry_logger(self, project_id: str, category: str, scene_id: Optional[str]):
        def on_retry(attempt: int, delay: float, error: Exception) -> None:
            where = f" for {scene_id}" if scene_id else ""
            self._events.warn(
                category,
                f"Transient failure{where}, retry {attempt}/{self._policy.max_retries} in {delay:.1f}s: {error}",
                project_id=project_id,
            )

        return on_retry

    def _scene_effects(self, project: Project, index: int, scene_id: str):
        override = project.scene_overrides.get(scene_id) or SceneOverride()
        motion = override.motion or MOTION_CYCLE[index % len(MOTION_CYCLE)]
        transition = (
            override.transition
            or project.transition
            or TransitionEffect(self._config.default_transition)
        )
        return motion, transition

    def _assemble(self, project: Project, run: GenerationRun) -> Manifest:
        """Build the manifest from this run's assets in script order."""
        self._progress(run, ASSEMBLY_PROGRESS - 1, "Assembling manifest")
        return self._build_manifest(project, run)

    def _build_manifest(self, project: Project, run: GenerationRun) -> Manifest:
        resolution = get_resolution(project.resolution)
        scenes = []
        for i, draft in enumerate(run.drafts):
            audio = run.audio[i] if i < len(run.audio) else None
            image = run.images[i] if i < len(run.images) else None
            motion, transition = self._scene_effects(project, i, draft.id)
            scenes.append(Scene(
                id=draft.id,
                text=draft.text,
                audio_file=self._config.asset_reference(audio.path) if audio else None,
                image_file=self._config.asset_reference(image.path) if image else None,
                duration=audio.duration if audio and audio.duration > 0 else draft.duration,
                motion=motion,
                transition=transition,
            ))
        return Manifest(
            fps=self._config.fps,
            width=resolution.width,
            height=resolution.height,
            scenes=scenes,
            transition_duration=self._config.transition_duration,
        )

    def _partial_manifest(self, project: Project, run: GenerationRun) -> Manifest:
        """Manifest kept after a failed run.

        Scenes take this run's assets; a scene the run did not reach keeps the
        assets of the previous manifest's scene with the same id and text.
        """
        manifest = self._build_manifest(project, run)
        previous = project.manifest
        if previous is None:
            return manifest
        scenes = []
        for scene in manifest.scenes:
            old = previous.get_scene(scene.id)
            if old is not None and old.text == scene.text:
                update = {
                    "audio_file": scene.audio_file or old.audio_file,
                    "image_file": scene.image_file or old.image_file,
                }
                if not scene.audio_file and old.audio_file:
                    update["duration"] = old.duration
                scene = scene.model_copy(update=update)
            scenes.append(scene)
        return manifest.model_copy(update={"scenes": scenes})

    async def _render_step(self, run: GenerationRun, manifest: Manifest, export_quality: Optional[str]) -> None:
        self._progress(run, ASSEMBLY_PROGRESS, "Rendering video")
        self._renderer.validate(manifest)
        assets_dir = self._config.project_assets_dir(run.project_id)
        output_path = assets_dir / f"video-r{run.run_id}.mp4"
        thumbnail_path = assets_dir / f"thumbnail-r{run.run_id}.jpg"
        result = await asyncio.to_thread(
            self._renderer.render, manifest, export_quality, output_path, thumbnail_path
        )

        def finish(project: Project) -> None:
            project.manifest = manifest
            project.output_path = self._config.asset_reference(result.output_path)
            if result.thumbnail_path is not None:
                project.thumbnail_path = self._config.asset_reference(result.thumbnail_path)
            project.total_duration = result.duration
            apply_transition(project, ProjectStatus.READY, Actor.RENDERER)
            project.chapters = result.chapters
            project.progress = 100
            project.progress_message = "Video ready"

        self._commit(run, finish)
        self._events.info(
            "render",
            f"Rendered {result.duration:.1f}s video with {len(result.chapters)} chapters",
            details={"output_path": str(result.output_path)},
            project_id=run.project_id,
        )

    # Helpers

    def _check_export_quality(self, export_quality: str) -> None:
        if export_quality not in EXPORT_QUALITIES:
            raise InvalidInputError(
                f"Unknown export quality: {export_quality}. Expected one of: {', '.join(EXPORT_QUALITIES)}",
                category="render",
            )

    def _write_manifest_file(self, project: Project) -> None:
        if project.manifest is not None:
            project.manifest.to_yaml(self._config.project_assets_dir(project.id) / "manifest.yaml")
