"""CLI entry point for the narrated video generator."""

import asyncio
import logging
import typer
from pathlib import Path
from typing import Optional

from . import __version__
from .config import config
from .errors import NvgError
from .models import LogFilter, LogLevel, Project, ProjectStatus, TransitionEffect
from .models.options import EXPORT_QUALITIES, parse_duration
from .pipeline import GenerationOptions
from .pipeline.state import is_active
from .runtime import Runtime, build_runtime

app = typer.Typer(
    name="nvg",
    help="AI-powered narrated video generator",
    no_args_is_help=True
)

STATUS_ICONS = {
    ProjectStatus.DRAFT: "📝",
    ProjectStatus.QUEUED: "⏳",
    ProjectStatus.GENERATING: "⚙️ ",
    ProjectStatus.READY: "✅",
    ProjectStatus.ERROR: "❌",
}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"nvg version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    ),
    workspace: Optional[Path] = typer.Option(
        None,
        "--workspace",
        "-w",
        help="Workspace directory (defaults to NVG_WORKSPACE or the current directory)"
    ),
) -> None:
    """Narrated Video Generator - Turn a script or topic into a narrated video."""
    if workspace is not None:
        config.workspace = workspace


def _runtime() -> Runtime:
    return build_runtime(config)


def _resolve(runtime: Runtime, project_id: str) -> Project:
    project = runtime.projects.find_project(project_id)
    if project is None:
        typer.echo(f"❌ No project matches '{project_id}'")
        raise typer.Exit(1)
    return project


def _show_project(project: Project) -> None:
    typer.echo(f"{STATUS_ICONS[project.status]} {project.title} ({project.id})")
    typer.echo(f"   Status: {project.status.value} ({project.progress}%)")
    if project.progress_message:
        typer.echo(f"   Step: {project.progress_message}")
    if project.error_message:
        typer.echo(f"   Error: {project.error_message}")
    if project.output_path:
        typer.echo(f"   Output: {project.output_path}")
    if project.total_duration:
        typer.echo(f"   Duration: {project.total_duration:.1f}s")


async def _follow(runtime: Runtime, project_id: str, poll_interval: float = 0.5) -> Project:
    """Echo progress until the project leaves queued/generating."""
    last = None
    while True:
        project = runtime.projects.get_project(project_id)
        line = (project.status, project.progress, project.progress_message)
        if line != last:
            typer.echo(f"   [{project.progress:3d}%] {project.progress_message or project.status.value}")
            last = line
        if not is_active(project):
            await runtime.orchestrator.wait(project_id)
            return runtime.projects.get_project(project_id)
        await asyncio.sleep(poll_interval)


@app.command()
def create(
    title: str = typer.Argument(
        ...,
        help="Project title"
    ),
    script_file: Optional[Path] = typer.Option(
        None,
        "--script",
        "-s",
        help="Text file with the narration script",
        exists=True,
        file_okay=True,
        dir_okay=False
    ),
    topic: Optional[str] = typer.Option(
        None,
        "--topic",
        "-t",
        help="Topic to write a script from when no script is given"
    ),
    duration: Optional[str] = typer.Option(
        None,
        "--duration",
        "-d",
        help="Target duration (30s, 1min, 2min, 10min or seconds)"
    ),
    style: Optional[str] = typer.Option(
        None,
        "--style",
        help="Script style (educational, entertaining, documentary, storytelling)"
    ),
    voice: Optional[str] = typer.Option(
        None,
        "--voice",
        help="Narration voice id"
    ),
    tts_provider: Optional[str] = typer.Option(
        None,
        "--tts",
        help="Text-to-speech provider (speechify, inworld)"
    ),
    image_style: Optional[str] = typer.Option(
        None,
        "--image-style",
        help="Image style (cinematic, anime, realistic, ... or custom)"
    ),
    custom_style: Optional[str] = typer.Option(
        None,
        "--custom-style",
        help="Style text used when --image-style is custom"
    ),
    generator: Optional[str] = typer.Option(
        None,
        "--generator",
        "-g",
        help="Image generator (wavespeed, pollinations, imagen)"
    ),
    resolution: Optional[str] = typer.Option(
        None,
        "--resolution",
        "-r",
        help="Resolution (1080p, 720p, 480p, 4k, vertical, square)"
    ),
    transition: Optional[TransitionEffect] = typer.Option(
        None,
        "--transition",
        help="Default transition between scenes"
    ),
) -> None:
    """Create a new draft project."""
    runtime = _runtime()
    script = script_file.read_text(encoding="utf-8") if script_file else ""
    if not script and not topic:
        typer.echo("❌ Provide --script or --topic")
        raise typer.Exit(1)

    try:
        project = runtime.projects.create_project(
            title,
            script,
            topic=topic,
            target_duration=duration,
            script_style=style,
            voice_id=voice,
            tts_provider=tts_provider,
            image_style=image_style,
            custom_style_text=custom_style,
            image_generator=generator,
            resolution=resolution,
            transition=transition,
        )
    except NvgError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)

    typer.echo(f"✅ Project created: {project.id}")
    typer.echo(f"   Next: nvg generate {project.id[:8]}")


@app.command()
def script(
    topic: str = typer.Argument(
        ...,
        help="What the video is about"
    ),
    style: str = typer.Option(
        "educational",
        "--style",
        "-s",
        help="Script style (educational, entertaining, documentary, storytelling)"
    ),
    duration: str = typer.Option(
        "1min",
        "--duration",
        "-d",
        help="Target duration (30s, 1min, 2min, 10min or seconds)"
    ),
    provider: str = typer.Option(
        "anthropic",
        "--provider",
        help="Script provider"
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the script to this file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Write a narration script from a topic using AI."""
    setup_logging(verbose)
    runtime = _runtime()
    typer.echo(f"✍️  Writing {style} script: {topic}")

    try:
        seconds = parse_duration(duration)
        result = runtime.registry.script(provider).generate_script(topic, style, seconds)
    except ValueError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)
    except NvgError as e:
        typer.echo(f"❌ Script generation failed: {e}")
        raise typer.Exit(1)

    typer.echo(f"\n📋 {result.title}\n")
    typer.echo(result.script)
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(result.script, encoding="utf-8")
        typer.echo(f"\n✅ Script saved: {output}")


@app.command()
def generate(
    project_id: str = typer.Argument(
        ...,
        help="Project id (or unique prefix)"
    ),
    regenerate_script: bool = typer.Option(
        False,
        "--regenerate-script",
        help="Write a new script from the topic even if one exists"
    ),
    render: bool = typer.Option(
        False,
        "--render",
        help="Render the video as soon as the assets are ready"
    ),
    quality: Optional[str] = typer.Option(
        None,
        "--quality",
        "-q",
        help=f"Export quality when rendering ({', '.join(EXPORT_QUALITIES)})"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Generate narration, images and the manifest for a project."""
    setup_logging(verbose)
    runtime = _runtime()
    project = _resolve(runtime, project_id)
    typer.echo(f"🎬 Generating: {project.title}")

    async def run() -> Project:
        await runtime.orchestrator.run_generation(
            project.id,
            GenerationOptions(regenerate_script=regenerate_script, render=render, export_quality=quality),
        )
        return await _follow(runtime, project.id)

    try:
        final = asyncio.run(run())
    except NvgError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)

    typer.echo("")
    _show_project(final)
    if final.status == ProjectStatus.ERROR:
        raise typer.Exit(1)


@app.command()
def regenerate(
    project_id: str = typer.Argument(
        ...,
        help="Project id (or unique prefix)"
    ),
    scene_id: str = typer.Argument(
        ...,
        help="Scene id, e.g. scene-3"
    ),
    field: str = typer.Option(
        "image",
        "--field",
        "-f",
        help="Asset to regenerate: audio or image"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Regenerate one scene's audio or image, leaving the rest untouched."""
    setup_logging(verbose)
    runtime = _runtime()
    project = _resolve(runtime, project_id)
    typer.echo(f"🔁 Regenerating {field} for {scene_id}")

    try:
        scene = asyncio.run(runtime.orchestrator.regenerate_scene(project.id, scene_id, field))
    except NvgError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)

    asset = scene.audio_file if field == "audio" else scene.image_file
    typer.echo(f"✅ {scene.id}: {asset} ({scene.duration:.2f}s)")


@app.command()
def render(
    project_id: str = typer.Argument(
        ...,
        help="Project id (or unique prefix)"
    ),
    quality: Optional[str] = typer.Option(
        None,
        "--quality",
        "-q",
        help=f"Export quality ({', '.join(EXPORT_QUALITIES)}); defaults to the project resolution"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Render the project's manifest into a video."""
    setup_logging(verbose)
    runtime = _runtime()
    project = _resolve(runtime, project_id)
    typer.echo(f"📼 Rendering: {project.title}")

    async def run() -> Project:
        await runtime.orchestrator.render_project(project.id, quality)
        return await _follow(runtime, project.id)

    try:
        final = asyncio.run(run())
    except NvgError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)

    typer.echo("")
    _show_project(final)
    if final.chapters:
        typer.echo("\n📑 Chapters:")
        for chapter in final.chapters:
            typer.echo(f"   {chapter.start_time:7.2f}s  {chapter.title}")
    if final.status == ProjectStatus.ERROR:
        raise typer.Exit(1)


@app.command()
def status(
    project_id: Optional[str] = typer.Argument(
        None,
        help="Project id (or unique prefix); lists all projects when omitted"
    ),
) -> None:
    """Show project status."""
    runtime = _runtime()
    if project_id is None:
        projects = runtime.projects.list_projects()
        if not projects:
            typer.echo("No projects yet. Run 'nvg create' to start one.")
            return
        for project in projects:
            typer.echo(
                f"{STATUS_ICONS[project.status]} {project.id[:8]}  {project.status.value:<10} "
                f"{project.progress:3d}%  {project.title}"
            )
        return

    project = _resolve(runtime, project_id)
    _show_project(project)
    if project.manifest:
        typer.echo("\n📽️  Scenes:")
        for scene in project.manifest.scenes:
            audio_icon = "🔊" if scene.audio_file else "  "
            image_icon = "🖼️ " if scene.image_file else "  "
            typer.echo(f"   {audio_icon}{image_icon} {scene.id}: {scene.duration:.2f}s")
            preview = scene.text[:60] + "..." if len(scene.text) > 60 else scene.text
            typer.echo(f"      → {preview}")
        missing = project.manifest.missing_assets()
        if missing:
            typer.echo(f"\n⚠️  Scenes without assets: {', '.join(missing)}")


@app.command()
def logs(
    project_id: Optional[str] = typer.Option(
        None,
        "--project",
        "-p",
        help="Only entries for this project"
    ),
    level: Optional[LogLevel] = typer.Option(
        None,
        "--level",
        "-l",
        help="Only entries at this level"
    ),
    category: Optional[str] = typer.Option(
        None,
        "--category",
        "-c",
        help="Only entries in this category (script, tts, image, render, api, system)"
    ),
    limit: int = typer.Option(
        100,
        "--limit",
        "-n",
        help="Maximum entries to show",
        min=1,
    ),
    clear: bool = typer.Option(
        False,
        "--clear",
        help="Delete all log entries"
    ),
) -> None:
    """Show (or clear) the event log, newest first."""
    runtime = _runtime()
    if clear:
        count = runtime.events.clear_logs()
        typer.echo(f"🧹 Cleared {count} log entries")
        return

    if project_id is not None:
        project_id = _resolve(runtime, project_id).id
    entries = runtime.events.list_logs(
        LogFilter(level=level, category=category, project_id=project_id, limit=limit)
    )
    for entry in entries:
        timestamp = entry.created_at.strftime("%Y-%m-%d %H:%M:%S")
        typer.echo(f"{timestamp}  {entry.level.value:<5}  {entry.category:<7}  {entry.message}")


@app.command()
def serve(
    host: str = typer.Option(
        "127.0.0.1",
        "--host",
        help="Bind address"
    ),
    port: int = typer.Option(
        8000,
        "--port",
        "-p",
        help="Port"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Serve the HTTP API."""
    import uvicorn
    from .api import create_app

    setup_logging(verbose)
    typer.echo(f"🌐 Serving on http://{host}:{port}")
    uvicorn.run(create_app(_runtime()), host=host, port=port)


if __name__ == "__main__":
    app()
