"""
Test configuration and shared fixtures.

FakeExporter and FakeRecognizer stand in for ffmpeg and the speech
engines so the pipeline can be exercised without media tools or models.
"""

from __future__ import annotations

import re
import threading
import time
from pathlib import Path

import pytest

from longscribe.config import TranscriptionConfig
from longscribe.exceptions import ExportFailedError
from longscribe.recognize.base import EventHandler, RecognitionEvent, RecognitionRequest

_SEGMENT_NAME = re.compile(r"segment_(\d+)_")


def segment_index_of(path: Path) -> int:
    match = _SEGMENT_NAME.search(path.name)
    assert match, f"not a segment artifact: {path}"
    return int(match.group(1))


class FakeExporter:
    """Writes small placeholder files instead of running ffmpeg."""

    def __init__(
        self,
        duration: float = 95.0,
        segment_length: float = 30.0,
        fail_segments: set[int] | None = None,
        fail_prepass: bool = False,
        encodings: set[str] | None = None,
    ) -> None:
        self.duration = duration
        self.segment_length = segment_length
        self.fail_segments = fail_segments or set()
        self.fail_prepass = fail_prepass
        self.encodings = encodings if encodings is not None else {"wav", "m4a", "flac"}
        self.calls: list[tuple[Path, Path, tuple[float, float] | None, str]] = []
        self.probed: list[Path] = []
        self.created: list[Path] = []
        self._lock = threading.Lock()

    def supports(self, encoding: str) -> bool:
        return encoding in self.encodings

    def probe_duration(self, source: Path) -> float:
        self.probed.append(source)
        return self.duration

    def export(
        self,
        source: Path,
        destination: Path,
        time_range: tuple[float, float] | None = None,
        encoding: str = "wav",
    ) -> Path:
        with self._lock:
            self.calls.append((source, destination, time_range, encoding))
            self.created.append(destination)
        destination.write_bytes(b"partial")
        if time_range is None and self.fail_prepass:
            raise ExportFailedError("transcode failed")
        if time_range is not None:
            index = round(time_range[0] / self.segment_length)
            if index in self.fail_segments:
                raise ExportFailedError(f"cannot export {index}")
        destination.write_bytes(b"audio")
        return destination

    @property
    def segment_calls(self) -> list[tuple[Path, Path, tuple[float, float] | None, str]]:
        return [call for call in self.calls if call[2] is not None]


class FakeRecognizer:
    """Scripted recognizer.

    results maps a segment index, or an (index, force_on_device) pair, to
    the text to return or an exception to deliver. Unscripted segments
    return "text<index>". Each successful request emits a partial event
    before the final one.
    """

    def __init__(
        self,
        results: dict | None = None,
        delays: dict[int, float] | None = None,
        delay: float = 0.0,
        on_device: bool = True,
        authorized: bool = True,
        available: bool = True,
    ) -> None:
        self.results = results or {}
        self.delays = delays or {}
        self.delay = delay
        self.on_device = on_device
        self.authorized = authorized
        self.available = available
        self.calls: list[tuple[int, bool]] = []
        self.seen_existing: list[bool] = []
        self.active = 0
        self.max_active = 0
        self.cancel_all_calls = 0
        self._lock = threading.Lock()

    def is_authorized(self) -> bool:
        return self.authorized

    def is_available(self) -> bool:
        return self.available

    def supports_on_device(self) -> bool:
        return self.on_device

    def cancel_all(self) -> None:
        self.cancel_all_calls += 1

    def recognize(self, request: RecognitionRequest, handler: EventHandler) -> None:
        index = segment_index_of(request.audio_path)
        with self._lock:
            self.calls.append((index, request.force_on_device))
            self.seen_existing.append(request.audio_path.exists())
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(self.delays.get(index, self.delay))
            if (index, request.force_on_device) in self.results:
                result = self.results[(index, request.force_on_device)]
            else:
                result = self.results.get(index, f"text{index}")
        finally:
            with self._lock:
                self.active -= 1

        if isinstance(result, BaseException):
            handler(RecognitionEvent(error=result))
            return
        handler(RecognitionEvent(text=result[:1]))
        handler(RecognitionEvent(text=f" {result} ", is_final=True))

    def calls_for(self, index: int) -> list[tuple[int, bool]]:
        return [call for call in self.calls if call[0] == index]


@pytest.fixture
def audio_file(tmp_path: Path) -> Path:
    """A speech-friendly source file (skips the transcode pre-pass)."""
    path = tmp_path / "meeting.wav"
    path.write_bytes(b"RIFF fake wav")
    return path


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    """Parent directory for job temp dirs, so leftovers can be inspected."""
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def config() -> TranscriptionConfig:
    return TranscriptionConfig(concurrency=4, segment_length=30.0, request_timeout=5.0)


def leftover_files(work_dir: Path) -> list[Path]:
    return [p for p in work_dir.rglob("*")]
