"""
longscribe.pipeline.job - One transcription request, end to end.

A job checks its preconditions, normalizes the source if needed, cuts
it into segments, exports and recognizes them under a concurrency cap,
and merges the texts in segment order. Every temporary file it creates
is removed before run() returns or raises.
"""

from __future__ import annotations

import functools
import logging
import threading
from collections.abc import Callable
from pathlib import Path

from longscribe.config import TranscriptionConfig, resolve_locale
from longscribe.exceptions import (
    CapabilityUnavailableError,
    PermissionDeniedError,
    SourceNotFoundError,
    TranscriptionCancelledError,
)
from longscribe.extract.artifacts import ArtifactStore, SegmentArtifact
from longscribe.extract.audio import FFmpegExporter, MediaExporter, export_segment, prepare_source
from longscribe.pipeline.merge import merge_outcomes
from longscribe.pipeline.scheduler import OutcomeTable, ParallelScheduler, ProgressSnapshot
from longscribe.recognize.adapter import RecognitionAdapter
from longscribe.recognize.base import Recognizer
from longscribe.segment.segmenter import Segment, compute_segments

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressSnapshot], None]


class TranscriptionJob:
    """Transcribes one audio file into a single transcript.

    Args:
        source: Audio file to transcribe
        locale: Recognition locale; blank or None uses the configured default
        allow_online_fallback: Retry empty/failed on-device results online;
            None uses the configured default
        config: Job configuration (defaults if None)
        recognizer: Recognizer capability (built from config if None)
        exporter: Media exporter capability (ffmpeg if None)
        temp_dir: Parent directory for temporary audio (system temp if None)
    """

    def __init__(
        self,
        source: Path,
        locale: str | None = None,
        allow_online_fallback: bool | None = None,
        *,
        config: TranscriptionConfig | None = None,
        recognizer: Recognizer | None = None,
        exporter: MediaExporter | None = None,
        temp_dir: Path | None = None,
    ) -> None:
        self.config = config or TranscriptionConfig()
        self.source = Path(source)
        self.locale = resolve_locale(locale, self.config.locale)
        self.allow_online_fallback = (
            self.config.allow_online_fallback
            if allow_online_fallback is None
            else allow_online_fallback
        )

        if recognizer is None:
            from longscribe.recognize.engines import build_recognizer

            recognizer = build_recognizer(self.config)
        self.recognizer = recognizer
        self.exporter = exporter or FFmpegExporter(sample_rate=self.config.sample_rate)
        self.scheduler = ParallelScheduler(self.config.concurrency)

        self.segments: list[Segment] = []
        self.table: OutcomeTable | None = None
        self.store = ArtifactStore(root=temp_dir)

        self._subscribers: list[ProgressCallback] = []
        self._artifacts: dict[int, SegmentArtifact] = {}
        self._lock = threading.Lock()
        self._cancelled = False
        self._started = False

    def subscribe(self, callback: ProgressCallback) -> None:
        """Receive a ProgressSnapshot after every accepted segment result."""
        self._subscribers.append(callback)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, abort_in_flight: bool = False) -> None:
        """Stop admitting segments; the job fails with TranscriptionCancelledError.

        Segments already running are allowed to finish and their results
        are discarded. With abort_in_flight, the recognizer is also asked
        to cancel its active requests.
        """
        with self._lock:
            self._cancelled = True
            table = self.table
        if table is not None:
            table.record_failure(TranscriptionCancelledError("Transcription cancelled"))
        if abort_in_flight:
            self.recognizer.cancel_all()
        logger.info("Cancellation requested for %s", self.source.name)

    def run(self) -> str:
        """Run the job and return the transcript.

        Raises:
            LongscribeError: Exactly one typed failure
        """
        with self._lock:
            if self._started:
                raise RuntimeError("A TranscriptionJob can only be run once")
            self._started = True

        self._check_preconditions()
        logger.info("Transcribing %s (locale %s)", self.source.name, self.locale)
        try:
            transcript = self._run()
        finally:
            self.store.close()
            logger.debug("Removed %d temporary file(s)", len(self.store.artifacts))
        logger.info("Transcribed %s: %d chars", self.source.name, len(transcript))
        return transcript

    def _check_preconditions(self) -> None:
        if not self.source.exists():
            raise SourceNotFoundError(f"Audio file not found: {self.source}")
        if not self.recognizer.is_authorized():
            raise PermissionDeniedError("Speech recognition permission is required")
        if not self.recognizer.is_available():
            raise CapabilityUnavailableError("Speech recognition is not available right now")

    def _run(self) -> str:
        self.store.open()
        prepared = prepare_source(
            self.source,
            self.exporter,
            self.store,
            encoding=self.config.target_encoding,
            speech_friendly_extensions=self.config.speech_friendly_extensions,
        )
        self._raise_if_cancelled()

        duration = self.exporter.probe_duration(prepared)
        self.segments = compute_segments(duration, self.config.segment_length)
        logger.debug("Audio is %.1fs, %d segment(s)", duration, len(self.segments))
        table = self._open_table(len(self.segments))

        def export_one(segment: Segment) -> SegmentArtifact:
            return export_segment(
                prepared,
                segment,
                self.exporter,
                self.store,
                encoding=self.config.target_encoding,
            )

        self.scheduler.run(self.segments, export_one, table, self._keep_artifact)

        if not table.failed:
            adapter = RecognitionAdapter(self.recognizer, self.locale, self.config.request_timeout)
            prefer_on_device = self.config.prefer_on_device and self.recognizer.supports_on_device()

            def recognize_one(segment: Segment) -> str:
                logger.debug("Recognizing segment %d/%d", segment.index + 1, len(self.segments))
                return adapter.recognize(
                    self._artifacts[segment.index],
                    prefer_on_device,
                    self.allow_online_fallback,
                )

            self.scheduler.run(self.segments, recognize_one, table, functools.partial(self._accept, table))

        return merge_outcomes(table, len(self.segments))

    def _open_table(self, total: int) -> OutcomeTable:
        table = OutcomeTable(total)
        with self._lock:
            self.table = table
            cancelled = self._cancelled
        if cancelled:
            table.record_failure(TranscriptionCancelledError("Transcription cancelled"))
        return table

    def _raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise TranscriptionCancelledError("Transcription cancelled")

    def _keep_artifact(self, segment: Segment, artifact: SegmentArtifact) -> None:
        with self._lock:
            self._artifacts[segment.index] = artifact

    def _accept(self, table: OutcomeTable, segment: Segment, text: str) -> None:
        snapshot = table.record_success(segment.index, text)
        if snapshot is None:
            logger.debug("Discarded result for segment %d", segment.index)
            return
        logger.debug("Segment %d done (%d/%d)", segment.index, snapshot.completed, snapshot.total)
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                logger.warning("Progress callback %r failed: %s", callback, e)


def transcribe_file(
    source: Path,
    locale: str | None = None,
    allow_online_fallback: bool | None = None,
    on_progress: ProgressCallback | None = None,
    *,
    config: TranscriptionConfig | None = None,
    recognizer: Recognizer | None = None,
    exporter: MediaExporter | None = None,
    temp_dir: Path | None = None,
) -> str:
    """Transcribe an audio file in fixed-length segments.

    Args:
        source: Audio file to transcribe
        locale: Recognition locale (default "ko-KR")
        allow_online_fallback: Permit online retry of failed on-device results
        on_progress: Called with a ProgressSnapshot after each segment

    Returns:
        The merged transcript

    Raises:
        LongscribeError: If the job fails for any reason
    """
    job = TranscriptionJob(
        source,
        locale,
        allow_online_fallback,
        config=config,
        recognizer=recognizer,
        exporter=exporter,
        temp_dir=temp_dir,
    )
    if on_progress is not None:
        job.subscribe(on_progress)
    return job.run()
