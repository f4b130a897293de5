"""Tests for regenerating a single scene's asset."""

import asyncio
import threading

import pytest

from nvg.errors import ConflictError, InvalidInputError, InvalidStateError, TransientError
from nvg.models import LogFilter, LogLevel, Manifest, ProjectStatus
from nvg.pipeline import GenerationOptions


async def _generated(runtime, make_project, script, **options):
    project = make_project(script)
    await runtime.orchestrator.run_generation(project.id, GenerationOptions(**options))
    await runtime.orchestrator.wait(project.id)
    return runtime.projects.get_project(project.id)


@pytest.mark.asyncio
async def test_only_target_scene_changes(runtime, make_project, long_script):
    before = await _generated(runtime, make_project, long_script)

    scene = await runtime.orchestrator.regenerate_scene(before.id, "scene-2", "image")

    after = runtime.projects.get_project(before.id)
    assert scene.image_file != before.manifest.scenes[1].image_file
    assert after.manifest.scenes[1].image_file == scene.image_file
    assert after.manifest.scenes[1].audio_file == before.manifest.scenes[1].audio_file
    for old, new in zip(before.manifest.scenes, after.manifest.scenes):
        if old.id != "scene-2":
            assert new == old
    assert runtime.config.resolve_asset(scene.image_file).exists()


@pytest.mark.asyncio
async def test_status_is_unchanged(runtime, make_project, long_script):
    draft = await _generated(runtime, make_project, long_script)
    await runtime.orchestrator.regenerate_scene(draft.id, "scene-1", "audio")
    assert runtime.projects.get_project(draft.id).status == ProjectStatus.DRAFT

    ready = await _generated(runtime, make_project, long_script, render=True)
    await runtime.orchestrator.regenerate_scene(ready.id, "scene-1", "image")
    after = runtime.projects.get_project(ready.id)
    assert after.status == ProjectStatus.READY
    assert after.output_path == ready.output_path
    assert after.run_id == ready.run_id


@pytest.mark.asyncio
async def test_audio_regeneration_updates_duration(runtime, make_project, speech, long_script):
    project = await _generated(runtime, make_project, long_script)
    speech.duration = 5.5

    scene = await runtime.orchestrator.regenerate_scene(project.id, "scene-3", "audio")

    assert scene.duration == 5.5
    after = runtime.projects.get_project(project.id)
    assert after.total_duration > project.total_duration


@pytest.mark.asyncio
async def test_manifest_file_is_rewritten(runtime, make_project):
    project = await _generated(runtime, make_project, "A cat explores a city at night.")

    scene = await runtime.orchestrator.regenerate_scene(project.id, "scene-1", "image")

    on_disk = Manifest.from_yaml(runtime.config.project_assets_dir(project.id) / "manifest.yaml")
    assert on_disk.scenes[0].image_file == scene.image_file


@pytest.mark.asyncio
async def test_without_manifest(runtime, make_project):
    project = make_project()
    with pytest.raises(InvalidStateError):
        await runtime.orchestrator.regenerate_scene(project.id, "scene-1", "audio")


@pytest.mark.asyncio
async def test_unknown_scene_and_field(runtime, make_project):
    project = await _generated(runtime, make_project, "A cat explores a city at night.")
    with pytest.raises(InvalidInputError):
        await runtime.orchestrator.regenerate_scene(project.id, "scene-9", "audio")
    with pytest.raises(InvalidInputError):
        await runtime.orchestrator.regenerate_scene(project.id, "scene-1", "video")


@pytest.mark.asyncio
async def test_busy_project_conflicts(runtime, make_project, speech):
    project = await _generated(runtime, make_project, "A cat explores a city at night.")
    speech.calls.clear()
    speech.gate = threading.Event()

    await runtime.orchestrator.run_generation(project.id)
    with pytest.raises(ConflictError):
        await runtime.orchestrator.regenerate_scene(project.id, "scene-1", "image")

    speech.gate.set()
    await runtime.orchestrator.wait(project.id)


@pytest.mark.asyncio
async def test_same_scene_twice_conflicts(runtime, make_project, speech):
    project = await _generated(runtime, make_project, "A cat explores a city at night.")
    speech.calls.clear()
    speech.started.clear()
    speech.gate = threading.Event()

    first = asyncio.create_task(runtime.orchestrator.regenerate_scene(project.id, "scene-1", "audio"))
    await asyncio.to_thread(speech.started.wait, 5)

    with pytest.raises(ConflictError):
        await runtime.orchestrator.regenerate_scene(project.id, "scene-1", "audio")

    speech.gate.set()
    scene = await first
    assert scene.audio_file is not None


@pytest.mark.asyncio
async def test_provider_failure_leaves_manifest(runtime, make_project, speech):
    text = "A cat explores a city at night."
    project = await _generated(runtime, make_project, text)
    speech.failures[text] = 10

    with pytest.raises(TransientError) as exc_info:
        await runtime.orchestrator.regenerate_scene(project.id, "scene-1", "audio")

    assert exc_info.value.scene_id == "scene-1"
    after = runtime.projects.get_project(project.id)
    assert after.manifest == project.manifest
    assert after.status == ProjectStatus.DRAFT
    errors = runtime.events.list_logs(LogFilter(level=LogLevel.ERROR, project_id=project.id))
    assert errors[0].category == "tts"
    assert "scene-1" in errors[0].message


@pytest.mark.asyncio
async def test_rendered_project_keeps_video_timing(runtime, make_project, speech, long_script):
    ready = await _generated(runtime, make_project, long_script, render=True)
    speech.duration = 5.5

    await runtime.orchestrator.regenerate_scene(ready.id, "scene-3", "audio")

    after = runtime.projects.get_project(ready.id)
    assert after.manifest.scenes[2].duration == 5.5
    assert after.total_duration == ready.total_duration
    assert after.chapters == ready.chapters
    assert after.output_path == ready.output_path
