"""
longscribe.cli - Typer CLI entry point.

Provides the transcribe, segments, init-config and doctor subcommands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from longscribe import __version__
from longscribe.config import (
    CONFIG_FILENAME,
    TranscriptionConfig,
    create_default_config,
    load_config,
    write_config,
)
from longscribe.exceptions import ConfigError, LongscribeError
from longscribe.logging import configure_logging
from longscribe.utils import format_duration, format_size

app = typer.Typer(
    name="longscribe",
    help="Chunked transcription of long audio recordings.\n\n"
    "Splits audio into fixed-length segments, recognizes them in parallel "
    "with on-device to online fallback, and merges the text in order.",
    add_completion=False,
)
console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"longscribe {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Longscribe - chunked transcription of long audio recordings."""
    pass


def resolve_config(config_path: Path | None, **overrides: Any) -> TranscriptionConfig:
    """Load config from --config, ./longscribe.yaml, or defaults, then apply CLI overrides."""
    if config_path is not None:
        config = load_config(config_path)
    elif (Path.cwd() / CONFIG_FILENAME).exists():
        config = load_config(Path.cwd())
    else:
        config = TranscriptionConfig()

    updates = {key: value for key, value in overrides.items() if value is not None}
    if not updates:
        return config
    try:
        return TranscriptionConfig(**{**config.model_dump(), **updates})
    except ValueError as e:
        raise ConfigError(f"Invalid option: {e}") from e


@app.command("transcribe")
def transcribe(
    source: Path = typer.Argument(..., help="Audio file to transcribe"),
    locale: str | None = typer.Option(
        None, "--locale", "-l", help="Recognition locale (default ko-KR)"
    ),
    online_fallback: bool | None = typer.Option(
        None,
        "--online-fallback/--no-online-fallback",
        help="Retry failed on-device segments online",
    ),
    segment_length: float | None = typer.Option(
        None, "--segment-length", "-s", help="Segment length in seconds"
    ),
    concurrency: int | None = typer.Option(
        None, "--concurrency", "-c", help="Maximum segments recognized at once"
    ),
    config_path: Path | None = typer.Option(None, "--config", help="Path to longscribe.yaml"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write transcript to file"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Transcribe an audio file segment by segment."""
    configure_logging(verbose)

    try:
        config = resolve_config(
            config_path,
            segment_length=segment_length,
            concurrency=concurrency,
        )
    except (FileNotFoundError, ConfigError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    from longscribe.pipeline.job import TranscriptionJob

    progress = Progress(
        TextColumn("[cyan]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )

    try:
        job = TranscriptionJob(source, locale, online_fallback, config=config)
        with progress:
            task = progress.add_task(f"Transcribing {source.name}", total=None)
            job.subscribe(
                lambda snapshot: progress.update(
                    task, total=snapshot.total, completed=snapshot.completed
                )
            )
            transcript = job.run()
    except LongscribeError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if output is not None:
        from longscribe.io import write_text

        write_text(output, transcript + "\n")
        console.print(
            f"[green]✓[/green] Transcribed {len(job.segments)} segment(s), "
            f"{len(transcript)} chars → {output}"
        )
    else:
        typer.echo(transcript)


@app.command("segments")
def show_segments(
    source: Path = typer.Argument(..., help="Audio file to inspect"),
    segment_length: float | None = typer.Option(
        None, "--segment-length", "-s", help="Segment length in seconds"
    ),
    config_path: Path | None = typer.Option(None, "--config", help="Path to longscribe.yaml"),
) -> None:
    """Show how a file would be segmented, without transcribing it."""
    from longscribe.extract.audio import FFmpegExporter
    from longscribe.segment.segmenter import compute_segments

    if not source.exists():
        console.print(f"[red]Error: Audio file not found: {source}[/red]")
        raise typer.Exit(1)

    try:
        config = resolve_config(config_path, segment_length=segment_length)
        duration = FFmpegExporter(sample_rate=config.sample_rate).probe_duration(source)
        segments = compute_segments(duration, config.segment_length)
    except (FileNotFoundError, LongscribeError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"{source.name} ({format_size(source.stat().st_size)}, {format_duration(duration)})")
    table.add_column("#", style="cyan")
    table.add_column("Start", style="green")
    table.add_column("End", style="green")
    table.add_column("Duration", style="yellow")

    for segment in segments:
        table.add_row(
            str(segment.index),
            format_duration(segment.start),
            format_duration(segment.end),
            f"{segment.duration:.1f}s",
        )

    console.print(table)
    console.print(f"\n{len(segments)} segment(s) of up to {config.segment_length:g}s")


@app.command("init-config")
def init_config(
    path: Path = typer.Argument(Path("."), help="Directory to write longscribe.yaml into"),
    locale: str | None = typer.Option(None, "--locale", "-l", help="Default locale"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
) -> None:
    """Write a default longscribe.yaml."""
    config_file = path / CONFIG_FILENAME
    if config_file.exists() and not force:
        console.print(f"[red]Error: '{config_file}' already exists[/red]")
        raise typer.Exit(1)

    write_config(create_default_config(locale=locale), config_file)
    console.print(f"[green]✓[/green] Wrote {config_file}")


@app.command("doctor")
def run_doctor(
    config_path: Path | None = typer.Option(None, "--config", help="Path to longscribe.yaml"),
) -> None:
    """Check dependencies and environment setup."""
    console.print("[cyan]Running preflight checks...[/cyan]\n")

    from longscribe.exceptions import DependencyError
    from longscribe.validation import check_ffmpeg, check_online_backend, check_whisper

    table = Table(title="Dependency Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Version/Details")

    all_passed = True

    try:
        versions = check_ffmpeg()
        table.add_row("FFmpeg", "✓ Installed", versions.get("ffmpeg_version", "unknown"))
        table.add_row("FFprobe", "✓ Installed", versions.get("ffprobe_version", "unknown"))
    except DependencyError as e:
        table.add_row(e.dependency, "✗ Missing", e.install_hint or "")
        all_passed = False

    try:
        table.add_row("faster-whisper", "✓ " + check_whisper().capitalize(), "on-device recognition")
    except DependencyError as e:
        table.add_row("faster-whisper", "✗ Missing", e.install_hint or "")
        all_passed = False

    try:
        config = resolve_config(config_path)
        table.add_row("Online fallback", config.online_backend, check_online_backend(config))
    except DependencyError as e:
        table.add_row("Online fallback", "⚠ Unavailable", e.install_hint or e.message)
    except (FileNotFoundError, ConfigError) as e:
        table.add_row("Config", "✗ Invalid", str(e))
        all_passed = False

    console.print(table)

    if all_passed:
        console.print("\n[green]✓ All checks passed[/green]")
    else:
        console.print("\n[yellow]⚠ Some checks failed[/yellow]")
        raise typer.Exit(1)
