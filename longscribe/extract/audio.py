"""
longscribe.extract.audio - FFmpeg audio export.

Implements the media exporter capability with ffmpeg/ffprobe:
- whole-file transcode into a speech-friendly encoding (pre-pass)
- time-ranged export of one segment into its own audio file
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Protocol

from longscribe.exceptions import ExportFailedError, InvalidDurationError
from longscribe.extract.artifacts import ArtifactStore, SegmentArtifact
from longscribe.segment.segmenter import Segment

logger = logging.getLogger(__name__)

CODEC_ARGS: dict[str, list[str]] = {
    "wav": ["-acodec", "pcm_s16le"],
    "m4a": ["-c:a", "aac", "-b:a", "128k"],
    "flac": ["-c:a", "flac"],
}


class MediaExporter(Protocol):
    def probe_duration(self, source: Path) -> float: ...

    def supports(self, encoding: str) -> bool: ...

    def export(
        self,
        source: Path,
        destination: Path,
        time_range: tuple[float, float] | None = None,
        encoding: str = "wav",
    ) -> Path: ...


class FFmpegExporter:
    """Media exporter backed by the ffmpeg and ffprobe binaries."""

    def __init__(
        self,
        sample_rate: int = 16000,
        ffmpeg: str = "ffmpeg",
        ffprobe: str = "ffprobe",
    ) -> None:
        self.sample_rate = sample_rate
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe

    def supports(self, encoding: str) -> bool:
        return encoding in CODEC_ARGS

    def probe_duration(self, source: Path) -> float:
        """Return the duration of an audio file in seconds.

        Raises:
            InvalidDurationError: If ffprobe fails or reports no duration
        """
        cmd = [
            self.ffprobe,
            "-v",
            "quiet",
            "-print_format",
            "json",
            "-show_format",
            str(source),
        ]
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise InvalidDurationError(f"ffprobe could not run for {source}: {e}") from e
        if proc.returncode != 0:
            raise InvalidDurationError(f"ffprobe failed for {source}: {proc.stderr.strip()}")

        try:
            data = json.loads(proc.stdout or "{}")
            return float(data.get("format", {}).get("duration", 0) or 0)
        except (ValueError, TypeError) as e:
            raise InvalidDurationError(f"Unable to parse duration for {source}") from e

    def export(
        self,
        source: Path,
        destination: Path,
        time_range: tuple[float, float] | None = None,
        encoding: str = "wav",
    ) -> Path:
        """Export audio from source to destination.

        Args:
            source: Input media file
            destination: Output audio file
            time_range: Optional (start, duration) in seconds; whole file if None
            encoding: Target encoding (wav, m4a, flac)

        Returns:
            The destination path

        Raises:
            ExportFailedError: If the encoding is unsupported or ffmpeg fails
        """
        if not self.supports(encoding):
            raise ExportFailedError(f"Unsupported target encoding: {encoding}")

        cmd = [self.ffmpeg, "-y", "-v", "error"]
        if time_range is not None:
            start, duration = time_range
            cmd += ["-ss", f"{start:.3f}", "-t", f"{duration:.3f}"]
        cmd += [
            "-i",
            str(source),
            "-vn",
            "-ac",
            "1",
            "-ar",
            str(self.sample_rate),
            *CODEC_ARGS[encoding],
            str(destination),
        ]

        try:
            proc = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise ExportFailedError(f"ffmpeg could not run: {e}") from e
        if proc.returncode != 0:
            raise ExportFailedError(f"ffmpeg export failed: {proc.stderr.strip()}")
        if not destination.exists():
            raise ExportFailedError(f"ffmpeg produced no output at {destination}")
        return destination


def prepare_source(
    source: Path,
    exporter: MediaExporter,
    store: ArtifactStore,
    encoding: str = "wav",
    speech_friendly_extensions: list[str] | None = None,
) -> Path:
    """Normalize the whole source into a speech-friendly encoding if needed.

    Sources that already have a speech-friendly extension are returned
    unchanged. A failed or unsupported transcode is not fatal: the
    original source is used instead.

    Returns:
        Path of the audio file to segment
    """
    friendly = set(speech_friendly_extensions or [])
    if source.suffix.lower().lstrip(".") in friendly:
        return source

    if not exporter.supports(encoding):
        logger.warning("Encoding %s unsupported, using %s as-is", encoding, source.name)
        return source

    artifact = store.create(None, encoding, stem="prepared")
    try:
        exporter.export(source, artifact.path, None, encoding)
    except ExportFailedError as e:
        logger.warning("Pre-pass transcode of %s failed, using original: %s", source.name, e)
        artifact.discard()
        return source

    logger.debug("Prepared %s -> %s", source.name, artifact.path.name)
    return artifact.path


def export_segment(
    source: Path,
    segment: Segment,
    exporter: MediaExporter,
    store: ArtifactStore,
    encoding: str = "wav",
) -> SegmentArtifact:
    """Export one segment into its own artifact.

    The artifact is registered with the store before ffmpeg runs, and a
    partially written file is removed straight away on failure.

    Raises:
        ExportFailedError: Tagged with the segment index
    """
    artifact = store.create(segment, encoding)
    try:
        exporter.export(source, artifact.path, (segment.start, segment.duration), encoding)
    except ExportFailedError as e:
        artifact.discard()
        raise ExportFailedError(e.message, segment.index) from e
    except Exception as e:
        artifact.discard()
        raise ExportFailedError(f"Export failed: {e}", segment.index) from e
    return artifact
