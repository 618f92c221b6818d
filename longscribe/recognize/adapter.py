"""
longscribe.recognize.adapter - One recognition call per segment artifact.

Wraps the callback-driven recognizer into a call that resolves exactly
once, and applies the fallback policy: when an on-device attempt errors
or returns empty text, retry once online if the caller allows it.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from pathlib import Path

from longscribe.exceptions import EmptyTranscriptError, RecognitionFailedError, TranscriptionCancelledError
from longscribe.extract.artifacts import SegmentArtifact
from longscribe.recognize.base import RecognitionEvent, RecognitionRequest, Recognizer

logger = logging.getLogger(__name__)


class SingleResolution:
    """Collapses a stream of recognition events into one result.

    Non-final events are ignored. The first final event or error wins;
    anything delivered afterwards is dropped.
    """

    def __init__(self) -> None:
        self._future: Future[str] = Future()
        self._lock = threading.Lock()

    @property
    def resolved(self) -> bool:
        return self._future.done()

    def deliver(self, event: RecognitionEvent) -> None:
        if event.error is None and not event.is_final:
            return
        with self._lock:
            if self._future.done():
                return
            if event.error is not None:
                self._future.set_exception(event.error)
            else:
                self._future.set_result(event.text.strip())

    def wait(self, timeout: float | None = None) -> str:
        return self._future.result(timeout)


class RecognitionAdapter:
    """Recognizes one artifact with the on-device -> online fallback policy."""

    def __init__(
        self,
        recognizer: Recognizer,
        locale: str,
        request_timeout: float | None = 300.0,
    ) -> None:
        self.recognizer = recognizer
        self.locale = locale
        self.request_timeout = request_timeout

    def recognize(
        self,
        artifact: SegmentArtifact,
        prefer_on_device: bool,
        allow_online_fallback: bool,
    ) -> str:
        """Recognize an artifact and return its stripped, non-empty text.

        Raises:
            RecognitionFailedError: If the last attempt errored
            EmptyTranscriptError: If the last attempt produced no text
            TranscriptionCancelledError: If a request was cancelled before
                it resolved; no online retry is made
        """
        index = artifact.segment.index if artifact.segment else None

        text, error, aborted = self._attempt(artifact.path, force_on_device=prefer_on_device)

        if aborted:
            raise TranscriptionCancelledError(f"Recognition of segment {index} was cancelled") from error
        if (error is not None or not text) and prefer_on_device and allow_online_fallback:
            reason = error if error is not None else "empty result"
            logger.info("Segment %s: on-device recognition failed (%s), retrying online", index, reason)
            text, error, aborted = self._attempt(artifact.path, force_on_device=False)
            if aborted:
                raise TranscriptionCancelledError(f"Recognition of segment {index} was cancelled") from error

        if error is not None:
            raise RecognitionFailedError(str(error) or type(error).__name__, index) from error
        if not text:
            raise EmptyTranscriptError(segment_index=index)
        return text

    def _attempt(
        self, audio_path: Path, force_on_device: bool
    ) -> tuple[str, BaseException | None, bool]:
        """Run one request on its own thread and wait for it to resolve.

        Returns (text, error, aborted). aborted is True when the request
        was cancelled from outside (not by the timeout) before it resolved.
        """
        request = RecognitionRequest(
            audio_path=audio_path,
            locale=self.locale,
            force_on_device=force_on_device,
        )
        resolution = SingleResolution()

        def run() -> None:
            try:
                self.recognizer.recognize(request, resolution.deliver)
            except Exception as e:
                resolution.deliver(RecognitionEvent(error=e))

        worker = threading.Thread(target=run, name=f"recognize-{audio_path.stem}", daemon=True)
        worker.start()

        try:
            return resolution.wait(self.request_timeout), None, False
        except Exception as e:
            if not resolution.resolved:
                request.cancel()
                logger.warning("Recognition of %s timed out, request cancelled", audio_path.name)
                return "", TimeoutError(f"Recognition timed out after {self.request_timeout}s"), False
            return "", e, request.is_cancelled
