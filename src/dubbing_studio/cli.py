"""Command-line entrypoints for Dubbing Studio."""

from __future__ import annotations

import json
from typing import Any, Optional

import typer

from dubbing_studio.config.load import ConfigError, get_section
from dubbing_studio.exceptions import ConfigurationError, DubbingError
from dubbing_studio.models import StatusEvent
from dubbing_studio.pipelines.orchestrator import (
    PipelineContext,
    build_default_context,
    build_default_orchestrator,
    build_project_store,
)
from dubbing_studio.pipelines.progress import build_stage_checklist, progress_percent
from dubbing_studio.pipelines.transcript import summarize_transcript, write_transcript_exports
from dubbing_studio.storage.db import DatabaseError
from dubbing_studio.storage.repository import ProjectStore
from dubbing_studio.utils.logging import configure_logging

app = typer.Typer(help="Dub audio files into another language.")

ENV_HELP = "Configuration environment (defaults to $DUBBING_STUDIO_ENV, then dev)."

_EXIT_FAILED = 1
_EXIT_CONFIG = 2

_STATE_MARKS = {"pending": " ", "active": ">", "completed": "x", "failed": "!"}


def _load_context(env: str | None) -> PipelineContext:
    try:
        context = build_default_context(env)
    except (ConfigError, ConfigurationError, OSError, ValueError) as exc:
        typer.echo(f"Failed to load configuration: {exc}", err=True)
        raise typer.Exit(code=_EXIT_CONFIG) from exc
    configure_logging(get_section(context.config, "logging"), base_dir=context.paths.project_root)
    return context


def _open_store(context: PipelineContext) -> ProjectStore:
    try:
        return build_project_store(context)
    except DatabaseError as exc:
        typer.echo(f"Failed to open project database: {exc}", err=True)
        raise typer.Exit(code=_EXIT_CONFIG) from exc


def _echo_json(payload: dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False))


def _progress_printer(event: StatusEvent) -> None:
    percent = f"{progress_percent(event.status):5.1f}%"
    detail = f" {event.detail}" if event.detail else ""
    typer.echo(f"[{event.status.value}] {percent}{detail}", err=True)


@app.command("init-db")
def init_db(
    env: Optional[str] = typer.Option(None, "--env", help=ENV_HELP),
) -> None:
    """Create the project database and apply outstanding migrations."""
    context = _load_context(env)
    store = _open_store(context)
    typer.echo(f"Database ready at {store.database.db_path}")


@app.command("create-project")
def create_project(
    name: str = typer.Argument(..., help="Display name of the project."),
    audio_url: str = typer.Argument(..., help="URL of the source audio file."),
    source: str = typer.Option("en", "--source", "-s", help="Source language code."),
    target: str = typer.Option("ar", "--target", "-t", help="Target language code."),
    env: Optional[str] = typer.Option(None, "--env", help=ENV_HELP),
) -> None:
    """Register an uploaded audio file as a new project and print its id."""
    context = _load_context(env)
    store = _open_store(context)
    project = store.create_project(name, source, target, original_audio_url=audio_url)
    typer.echo(project.id)


@app.command()
def run(
    project_id: str = typer.Argument(..., help="Project to process."),
    audio_url: Optional[str] = typer.Option(
        None, "--audio-url", help="Source audio URL (defaults to the project's upload)."
    ),
    source: Optional[str] = typer.Option(
        None, "--source", "-s", help="Source language (defaults to the project's)."
    ),
    target: Optional[str] = typer.Option(
        None, "--target", "-t", help="Target language (defaults to the project's)."
    ),
    env: Optional[str] = typer.Option(None, "--env", help=ENV_HELP),
    watch: bool = typer.Option(
        True,
        "--watch/--no-watch",
        help="Stream status changes to stderr.",
    ),
) -> None:
    """Run transcription, translation and synthesis for a project."""
    context = _load_context(env)
    store = _open_store(context)

    project = store.get_project(project_id)
    if project is None:
        _echo_json({"error": f"Project {project_id} does not exist."})
        raise typer.Exit(code=_EXIT_FAILED)

    try:
        orchestrator = build_default_orchestrator(context, store=store)
    except ConfigurationError as exc:
        _echo_json({"error": str(exc)})
        raise typer.Exit(code=_EXIT_CONFIG) from exc

    if watch:
        orchestrator.notifier.add_listener(project_id, _progress_printer)

    try:
        result = orchestrator.run_pipeline(
            project_id,
            audio_url or project.original_audio_url or "",
            source or project.source_language,
            target or project.target_language,
        )
    except DubbingError as exc:
        _echo_json({"error": str(exc)})
        raise typer.Exit(code=_EXIT_FAILED) from exc

    _echo_json(result.to_dict())
    if not result.success:
        raise typer.Exit(code=_EXIT_FAILED)


@app.command()
def status(
    project_id: str = typer.Argument(..., help="Project to inspect."),
    env: Optional[str] = typer.Option(None, "--env", help=ENV_HELP),
) -> None:
    """Print a project's status, stage checklist and transcript summary."""
    context = _load_context(env)
    store = _open_store(context)
    project = store.get_project(project_id)
    if project is None:
        typer.echo(f"Project {project_id} does not exist.", err=True)
        raise typer.Exit(code=_EXIT_FAILED)

    typer.echo(f"{project.name} ({project.id})")
    typer.echo(f"Status: {project.status.value} ({progress_percent(project.status):.0f}%)")
    for entry in build_stage_checklist(project.status):
        typer.echo(f"  [{_STATE_MARKS[entry.state]}] {entry.label}")

    summary = summarize_transcript(store.list_segments(project_id), store.list_speakers(project_id))
    typer.echo(
        "Speakers: {speaker_count}  Segments: {segment_count}  "
        "Translated: {translated_count}  Words: {word_count}".format(**summary)
    )
    if project.dubbed_audio_url:
        typer.echo(f"Dubbed audio: {project.dubbed_audio_url}")


@app.command()
def export(
    project_id: str = typer.Argument(..., help="Project whose transcript to export."),
    env: Optional[str] = typer.Option(None, "--env", help=ENV_HELP),
) -> None:
    """Write original text, translation and SRT subtitles for a project."""
    context = _load_context(env)
    store = _open_store(context)
    project = store.get_project(project_id)
    if project is None:
        typer.echo(f"Project {project_id} does not exist.", err=True)
        raise typer.Exit(code=_EXIT_FAILED)

    segments = store.list_segments(project_id)
    if not segments:
        typer.echo(f"Project {project_id} has no transcript yet.", err=True)
        raise typer.Exit(code=_EXIT_FAILED)

    written = write_transcript_exports(
        project, segments, context.paths.project_exports_dir(project_id)
    )
    for kind, path in written.items():
        typer.echo(f"{kind}: {path}")


def main() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    main()
