"""Tests for the generation orchestrator."""

import asyncio
import threading
import time

import pytest

from nvg.errors import ConflictError, InvalidInputError, InvalidStateError, ProjectNotFoundError, ProviderUnavailableError
from nvg.models import LogFilter, LogLevel, MOTION_CYCLE, MotionEffect, ProjectStatus, SceneOverride, TransitionEffect
from nvg.pipeline import GenerationOptions
from nvg.pipeline.segmentation import segment_script
from nvg.services import AudioAsset, SpeechProvider


async def _generate(runtime, project_id, **options):
    run_id = await runtime.orchestrator.run_generation(project_id, GenerationOptions(**options))
    await runtime.orchestrator.wait(project_id)
    return run_id, runtime.projects.get_project(project_id)


class TestRunGeneration:
    @pytest.mark.asyncio
    async def test_completes_to_draft_with_manifest(self, runtime, make_project, long_script):
        project = make_project(long_script, target_duration=60)

        run_id, project = await _generate(runtime, project.id)

        assert run_id == 1
        assert project.status == ProjectStatus.DRAFT
        assert project.progress == 100
        assert project.error_message is None
        assert project.output_path is None
        manifest = project.manifest
        assert len(manifest.scenes) == 6
        assert all(s.audio_file and s.image_file for s in manifest.scenes)
        assert (manifest.width, manifest.height) == (1280, 720)
        assert (runtime.config.project_assets_dir(project.id) / "manifest.yaml").exists()

    @pytest.mark.asyncio
    async def test_returns_before_work_finishes(self, runtime, make_project, speech):
        speech.gate = threading.Event()
        project = make_project()

        await runtime.orchestrator.run_generation(project.id)
        queued = runtime.projects.get_project(project.id)
        assert queued.status == ProjectStatus.QUEUED
        assert queued.progress == 0

        speech.gate.set()
        await runtime.orchestrator.wait(project.id)
        assert runtime.projects.get_project(project.id).status == ProjectStatus.DRAFT

    @pytest.mark.asyncio
    async def test_scene_order_ignores_completion_order(self, runtime, make_project, speech, images, long_script):
        speech.latency = 0.05
        images.latency = 0.05
        project = make_project(long_script, target_duration=60)

        _, project = await _generate(runtime, project.id)

        drafts = segment_script(long_script, 60.0)
        assert [s.id for s in project.manifest.scenes] == [d.id for d in drafts]
        assert [s.text for s in project.manifest.scenes] == [d.text for d in drafts]
        for scene in project.manifest.scenes:
            assert f"/{scene.id}-r1." in scene.audio_file
            assert f"/{scene.id}-r1." in scene.image_file

    @pytest.mark.asyncio
    async def test_measured_audio_duration_overrides_estimate(self, runtime, make_project, speech):
        speech.duration = 4.25
        project = make_project(target_duration=30)

        _, project = await _generate(runtime, project.id)

        assert project.manifest.scenes[0].duration == 4.25

    @pytest.mark.asyncio
    async def test_motion_cycles_and_transition_defaults_to_fade(self, runtime, make_project, long_script):
        project = make_project(long_script)

        _, project = await _generate(runtime, project.id)

        scenes = project.manifest.scenes
        assert [s.motion for s in scenes] == [MOTION_CYCLE[i % len(MOTION_CYCLE)] for i in range(len(scenes))]
        assert all(s.transition == TransitionEffect.FADE for s in scenes)
        assert project.manifest.transition_duration == 0.5

    @pytest.mark.asyncio
    async def test_scene_and_project_overrides(self, runtime, make_project, long_script):
        project = make_project(
            long_script,
            transition=TransitionEffect.DISSOLVE,
            scene_overrides={
                "scene-2": SceneOverride(motion=MotionEffect.PAN_UP, transition=TransitionEffect.WIPE_LEFT),
            },
        )

        _, project = await _generate(runtime, project.id)

        scenes = project.manifest.scenes
        assert scenes[1].motion == MotionEffect.PAN_UP
        assert scenes[1].transition == TransitionEffect.WIPE_LEFT
        assert scenes[0].transition == TransitionEffect.DISSOLVE

    @pytest.mark.asyncio
    async def test_resolution_and_image_size(self, runtime, make_project, images):
        project = make_project(resolution="vertical")

        _, project = await _generate(runtime, project.id)

        assert (project.manifest.width, project.manifest.height) == (1080, 1920)
        assert (images.requests[0]["width"], images.requests[0]["height"]) == (576, 1024)

    @pytest.mark.asyncio
    async def test_image_seed_is_stable(self, runtime, make_project, images):
        project = make_project()
        await _generate(runtime, project.id)
        await _generate(runtime, project.id)
        assert images.requests[0]["seed"] == images.requests[1]["seed"]

    @pytest.mark.asyncio
    async def test_unknown_project(self, runtime):
        with pytest.raises(ProjectNotFoundError):
            await runtime.orchestrator.run_generation("missing")

    @pytest.mark.asyncio
    async def test_unknown_export_quality_rejected_synchronously(self, runtime, make_project):
        project = make_project()
        with pytest.raises(InvalidInputError):
            await runtime.orchestrator.run_generation(project.id, GenerationOptions(render=True, export_quality="8k"))
        assert runtime.projects.get_project(project.id).status == ProjectStatus.DRAFT


class TestScriptStage:
    @pytest.mark.asyncio
    async def test_writes_script_from_topic(self, runtime, make_project, script_provider):
        project = make_project("", topic="cats at night", script_style="storytelling", target_duration="30s")

        _, project = await _generate(runtime, project.id)

        assert script_provider.calls == [("cats at night", "storytelling", 30.0)]
        assert project.script == script_provider.script
        assert project.status == ProjectStatus.DRAFT

    @pytest.mark.asyncio
    async def test_existing_script_is_kept(self, runtime, make_project, script_provider):
        project = make_project("Already written.", topic="cats")
        _, project = await _generate(runtime, project.id)
        assert script_provider.calls == []
        assert project.script == "Already written."

    @pytest.mark.asyncio
    async def test_regenerate_script_option(self, runtime, make_project, script_provider):
        project = make_project("Already written.", topic="cats")
        _, project = await _generate(runtime, project.id, regenerate_script=True)
        assert len(script_provider.calls) == 1
        assert project.script == script_provider.script

    @pytest.mark.asyncio
    async def test_no_script_and_no_topic_is_an_error(self, runtime, make_project):
        project = make_project("")

        _, project = await _generate(runtime, project.id)

        assert project.status == ProjectStatus.ERROR
        assert "topic" in project.error_message
        errors = runtime.events.list_logs(LogFilter(level=LogLevel.ERROR, project_id=project.id))
        assert errors[0].category == "script"


class TestRetries:
    @pytest.mark.asyncio
    async def test_two_transient_failures_then_success(self, runtime, make_project, speech):
        text = "A cat explores a city at night."
        speech.failures[text] = 2
        project = make_project(text)

        _, project = await _generate(runtime, project.id)

        assert project.status == ProjectStatus.DRAFT
        assert project.error_message is None
        assert project.manifest.scenes[0].audio_file is not None
        assert len(speech.calls) == 3
        warnings = runtime.events.list_logs(LogFilter(level=LogLevel.WARN, category="tts"))
        assert len(warnings) == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_fail_the_project(self, runtime, make_project, speech):
        text = "A cat explores a city at night."
        speech.failures[text] = 3
        project = make_project(text)

        _, project = await _generate(runtime, project.id)

        assert project.status == ProjectStatus.ERROR
        assert project.error_message.startswith("Audio generation failed for scene-1")
        errors = runtime.events.list_logs(LogFilter(level=LogLevel.ERROR, project_id=project.id))
        assert [e.category for e in errors] == ["tts"]

    @pytest.mark.asyncio
    async def test_image_failure_category(self, runtime, make_project, images):
        text = "A cat explores a city at night."
        images.failures[text] = 5
        project = make_project(text)

        _, project = await _generate(runtime, project.id)

        assert project.status == ProjectStatus.ERROR
        errors = runtime.events.list_logs(LogFilter(level=LogLevel.ERROR, project_id=project.id))
        assert errors[0].category == "image"

    @pytest.mark.asyncio
    async def test_non_transient_failure_is_not_retried(self, runtime, make_project, speech):
        text = "A cat explores a city at night."
        speech.fatal[text] = ProviderUnavailableError("No credential configured for speechify")
        project = make_project(text)

        _, project = await _generate(runtime, project.id)

        assert project.status == ProjectStatus.ERROR
        assert len(speech.calls) == 1
        assert "No credential configured" in project.error_message


class _SlowFirstSpeech(SpeechProvider):
    """The first call outlives the provider timeout, then writes anyway."""

    name = "fake"

    def __init__(self) -> None:
        self.calls = 0
        self.late_write_done = threading.Event()
        self._lock = threading.Lock()

    def synthesize_speech(self, text, voice_id, output_path):
        with self._lock:
            self.calls += 1
            first = self.calls == 1
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if first:
            time.sleep(0.5)
            output_path.write_bytes(b"LATE")
            self.late_write_done.set()
            return AudioAsset(path=output_path, duration=9.0)
        output_path.write_bytes(b"FRESH")
        return AudioAsset(path=output_path, duration=3.0)


class TestTimedOutAttempts:
    @pytest.fixture
    def config(self, config):
        config.provider_timeout = 0.2
        return config

    @pytest.fixture
    def speech(self):
        return _SlowFirstSpeech()

    @pytest.mark.asyncio
    async def test_late_attempt_cannot_replace_kept_asset(self, runtime, make_project, speech):
        project = make_project()

        _, project = await _generate(runtime, project.id)
        await asyncio.to_thread(speech.late_write_done.wait, 5)

        scene = project.manifest.scenes[0]
        assert project.status == ProjectStatus.DRAFT
        assert speech.calls == 2
        assert scene.duration == 3.0
        assert runtime.config.resolve_asset(scene.audio_file).read_bytes() == b"FRESH"


class TestPartialManifest:
    @pytest.mark.asyncio
    async def test_assets_kept_when_image_stage_fails(self, runtime, make_project, images, long_script):
        drafts = segment_script(long_script, None)
        images.fatal[drafts[3].text] = InvalidInputError("prompt rejected by safety filter")
        project = make_project(long_script)

        _, project = await _generate(runtime, project.id)

        assert project.status == ProjectStatus.ERROR
        assert "scene-4" in project.error_message
        manifest = project.manifest
        assert manifest is not None
        assert len(manifest.scenes) == len(drafts)
        assert all(s.audio_file for s in manifest.scenes)
        assert manifest.get_scene("scene-4").image_file is None

    @pytest.mark.asyncio
    async def test_previous_assets_carry_over(self, runtime, make_project, images):
        text = "A cat explores a city at night."
        project = make_project(text)
        _, first = await _generate(runtime, project.id)
        old_image = first.manifest.scenes[0].image_file

        images.fatal[text] = InvalidInputError("rejected")
        _, project = await _generate(runtime, project.id)

        assert project.status == ProjectStatus.ERROR
        scene = project.manifest.scenes[0]
        assert scene.image_file == old_image
        assert scene.audio_file.endswith("-r2.mp3")

    @pytest.mark.asyncio
    async def test_retry_from_error(self, runtime, make_project, speech):
        text = "A cat explores a city at night."
        speech.failures[text] = 3
        project = make_project(text)
        _, project = await _generate(runtime, project.id)
        assert project.status == ProjectStatus.ERROR

        _, project = await _generate(runtime, project.id)

        assert project.status == ProjectStatus.DRAFT
        assert project.error_message is None
        assert project.run_id == 2


class TestSupersession:
    @pytest.mark.asyncio
    async def test_stale_run_never_overwrites_newer_run(self, runtime, make_project, speech):
        speech.gate = threading.Event()
        project = make_project()

        run_a = await runtime.orchestrator.run_generation(project.id)
        await asyncio.to_thread(speech.started.wait, 5)

        run_b = await runtime.orchestrator.run_generation(project.id)
        # B's calls are not gated; wait for it to finish while A is stuck
        for _ in range(200):
            if runtime.projects.get_project(project.id).status == ProjectStatus.DRAFT:
                break
            await asyncio.sleep(0.01)
        after_b = runtime.projects.get_project(project.id)
        assert after_b.status == ProjectStatus.DRAFT

        speech.gate.set()
        await runtime.orchestrator.wait(project.id)

        final = runtime.projects.get_project(project.id)
        assert (run_a, run_b) == (1, 2)
        assert final.run_id == 2
        assert final.model_dump() == after_b.model_dump()
        assert final.manifest.scenes[0].audio_file.endswith("-r2.mp3")
        messages = [e.message for e in runtime.events.list_logs(LogFilter(project_id=project.id))]
        assert any("Run 1 superseded" in m for m in messages)

    @pytest.mark.asyncio
    async def test_new_run_resets_progress(self, runtime, make_project):
        project = make_project()
        await _generate(runtime, project.id)

        await runtime.orchestrator.run_generation(project.id)
        restarted = runtime.projects.get_project(project.id)

        assert restarted.progress == 0
        assert restarted.status == ProjectStatus.QUEUED
        await runtime.orchestrator.wait(project.id)


class TestRenderHandoff:
    @pytest.mark.asyncio
    async def test_generate_and_render(self, runtime, make_project, encoder, long_script):
        project = make_project(long_script)

        _, project = await _generate(runtime, project.id, render=True, export_quality="1080p")

        assert project.status == ProjectStatus.READY
        assert project.progress == 100
        assert project.output_path.endswith("video-r1.mp4")
        assert project.thumbnail_path is not None
        assert len(project.chapters) == len(project.manifest.scenes)
        assert encoder.calls[0]["bitrate"] == "8M"
        assert encoder.calls[0]["size"] == (1920, 1080)

    @pytest.mark.asyncio
    async def test_render_existing_manifest(self, runtime, make_project):
        project = make_project()
        await _generate(runtime, project.id)

        await runtime.orchestrator.render_project(project.id)
        await runtime.orchestrator.wait(project.id)
        project = runtime.projects.get_project(project.id)

        assert project.status == ProjectStatus.READY
        starts = [c.start_time for c in project.chapters]
        assert starts == sorted(starts)

    @pytest.mark.asyncio
    async def test_rerender_from_ready(self, runtime, make_project):
        project = make_project()
        await _generate(runtime, project.id, render=True)

        run_id = await runtime.orchestrator.render_project(project.id, "720p")
        await runtime.orchestrator.wait(project.id)
        project = runtime.projects.get_project(project.id)

        assert run_id == 2
        assert project.status == ProjectStatus.READY
        assert project.output_path.endswith("video-r2.mp4")

    @pytest.mark.asyncio
    async def test_render_without_manifest(self, runtime, make_project):
        project = make_project()
        with pytest.raises(InvalidStateError):
            await runtime.orchestrator.render_project(project.id)
        assert runtime.projects.get_project(project.id).status == ProjectStatus.DRAFT

    @pytest.mark.asyncio
    async def test_render_rejected_while_generating(self, runtime, make_project, speech):
        project = make_project()
        await _generate(runtime, project.id)
        speech.calls.clear()
        speech.started.clear()
        speech.gate = threading.Event()

        run_id = await runtime.orchestrator.run_generation(project.id)
        await asyncio.to_thread(speech.started.wait, 5)
        with pytest.raises(ConflictError):
            await runtime.orchestrator.render_project(project.id)
        speech.gate.set()
        await runtime.orchestrator.wait(project.id)

        project = runtime.projects.get_project(project.id)
        assert run_id == 2
        assert project.run_id == 2
        assert project.status == ProjectStatus.DRAFT
        assert project.output_path is None
        assert project.manifest.scenes[0].audio_file.endswith("-r2.mp3")

    @pytest.mark.asyncio
    async def test_missing_asset_fails_render(self, runtime, make_project):
        project = make_project()
        _, project = await _generate(runtime, project.id)
        runtime.config.resolve_asset(project.manifest.scenes[0].image_file).unlink()

        await runtime.orchestrator.render_project(project.id)
        await runtime.orchestrator.wait(project.id)
        project = runtime.projects.get_project(project.id)

        assert project.status == ProjectStatus.ERROR
        assert project.error_message.startswith("Render failed for scene-1")
        assert project.output_path is None
        errors = runtime.events.list_logs(LogFilter(level=LogLevel.ERROR, project_id=project.id))
        assert errors[0].category == "render"

    @pytest.mark.asyncio
    async def test_encode_failure_retried_once(self, runtime, make_project, encoder):
        encoder.failures = 1
        project = make_project()

        _, project = await _generate(runtime, project.id, render=True)

        assert project.status == ProjectStatus.READY
        assert len(encoder.calls) == 2

    @pytest.mark.asyncio
    async def test_encode_failure_surfaces_after_retry(self, runtime, make_project, encoder):
        encoder.failures = 2
        project = make_project()

        _, project = await _generate(runtime, project.id, render=True)

        assert project.status == ProjectStatus.ERROR
        assert "Encoding failed" in project.error_message
        assert project.manifest is not None


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_cat_at_night(self, runtime, make_project):
        script = "A cat explores a city at night."
        drafts = segment_script(script, 30.0)
        assert len(drafts) >= 1
        assert all(d.duration >= 2.0 for d in drafts)
        assert sum(d.duration for d in drafts) == pytest.approx(30.0, abs=0.05)

        project = make_project(script, target_duration="30s")
        _, project = await _generate(runtime, project.id, render=True)

        assert project.status == ProjectStatus.READY
        assert project.manifest is not None and project.output_path is not None
        scenes = project.manifest.scenes
        assert len([s.audio_file for s in scenes if s.audio_file]) == len(scenes)
        assert len([s.image_file for s in scenes if s.image_file]) == len(scenes)
        assert len(project.chapters) == len(scenes)
        starts = [c.start_time for c in project.chapters]
        assert starts == sorted(starts)
