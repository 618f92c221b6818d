"""Tests for longscribe.recognize.adapter module."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest
from conftest import FakeRecognizer

from longscribe.exceptions import EmptyTranscriptError, RecognitionFailedError, TranscriptionCancelledError
from longscribe.extract.artifacts import SegmentArtifact
from longscribe.recognize.adapter import RecognitionAdapter, SingleResolution
from longscribe.recognize.base import RecognitionEvent, RecognitionRequest
from longscribe.segment.segmenter import Segment


@pytest.fixture
def artifact(tmp_path: Path) -> SegmentArtifact:
    path = tmp_path / "segment_0000_abcd1234.wav"
    path.write_bytes(b"audio")
    return SegmentArtifact(path, Segment(0, 0.0, 30.0))


class TestSingleResolution:
    def test_ignores_partial_events(self) -> None:
        resolution = SingleResolution()
        resolution.deliver(RecognitionEvent(text="hel"))
        assert not resolution.resolved

        resolution.deliver(RecognitionEvent(text=" hello \n", is_final=True))
        assert resolution.wait(0) == "hello"

    def test_first_final_wins(self) -> None:
        resolution = SingleResolution()
        resolution.deliver(RecognitionEvent(text="first", is_final=True))
        resolution.deliver(RecognitionEvent(text="second", is_final=True))
        resolution.deliver(RecognitionEvent(error=RuntimeError("late")))
        assert resolution.wait(0) == "first"

    def test_error_resolves(self) -> None:
        resolution = SingleResolution()
        resolution.deliver(RecognitionEvent(error=RuntimeError("no speech")))
        resolution.deliver(RecognitionEvent(text="ignored", is_final=True))
        with pytest.raises(RuntimeError, match="no speech"):
            resolution.wait(0)

    def test_resolves_from_other_thread(self) -> None:
        resolution = SingleResolution()
        timer = threading.Timer(0.05, resolution.deliver, [RecognitionEvent(text="later", is_final=True)])
        timer.start()
        assert resolution.wait(2) == "later"

    def test_concurrent_deliveries_resolve_once(self) -> None:
        resolution = SingleResolution()
        threads = [
            threading.Thread(target=resolution.deliver, args=(RecognitionEvent(text=str(i), is_final=True),))
            for i in range(20)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert resolution.wait(0) in {str(i) for i in range(20)}


class TestRecognitionAdapter:
    def test_success_on_device(self, artifact: SegmentArtifact) -> None:
        recognizer = FakeRecognizer(results={0: "hello"})
        adapter = RecognitionAdapter(recognizer, "ko-KR")

        assert adapter.recognize(artifact, True, True) == "hello"
        assert recognizer.calls == [(0, True)]

    def test_empty_on_device_retries_online(self, artifact: SegmentArtifact) -> None:
        recognizer = FakeRecognizer(results={(0, True): "", (0, False): "hello"})
        adapter = RecognitionAdapter(recognizer, "ko-KR")

        assert adapter.recognize(artifact, True, True) == "hello"
        assert recognizer.calls == [(0, True), (0, False)]

    def test_error_on_device_retries_online_exactly_once(self, artifact: SegmentArtifact) -> None:
        recognizer = FakeRecognizer(
            results={(0, True): RuntimeError("on-device"), (0, False): RuntimeError("online")}
        )
        adapter = RecognitionAdapter(recognizer, "ko-KR")

        with pytest.raises(RecognitionFailedError, match="online") as excinfo:
            adapter.recognize(artifact, True, True)

        assert recognizer.calls == [(0, True), (0, False)]
        assert excinfo.value.segment_index == 0
        assert isinstance(excinfo.value.__cause__, RuntimeError)

    def test_fallback_disabled_fails_without_retry(self, artifact: SegmentArtifact) -> None:
        recognizer = FakeRecognizer(results={(0, True): RuntimeError("on-device")})
        adapter = RecognitionAdapter(recognizer, "ko-KR")

        with pytest.raises(RecognitionFailedError):
            adapter.recognize(artifact, True, False)
        assert recognizer.calls == [(0, True)]

    def test_fallback_disabled_empty_is_empty_transcript(self, artifact: SegmentArtifact) -> None:
        recognizer = FakeRecognizer(results={(0, True): "   "})
        adapter = RecognitionAdapter(recognizer, "ko-KR")

        with pytest.raises(EmptyTranscriptError) as excinfo:
            adapter.recognize(artifact, True, False)
        assert excinfo.value.segment_index == 0
        assert recognizer.calls == [(0, True)]

    def test_online_first_attempt_never_retries(self, artifact: SegmentArtifact) -> None:
        recognizer = FakeRecognizer(results={(0, False): RuntimeError("online")}, on_device=False)
        adapter = RecognitionAdapter(recognizer, "ko-KR")

        with pytest.raises(RecognitionFailedError):
            adapter.recognize(artifact, False, True)
        assert recognizer.calls == [(0, False)]

    def test_retry_empty_after_error_is_empty_transcript(self, artifact: SegmentArtifact) -> None:
        recognizer = FakeRecognizer(results={(0, True): RuntimeError("on-device"), (0, False): ""})
        adapter = RecognitionAdapter(recognizer, "ko-KR")

        with pytest.raises(EmptyTranscriptError):
            adapter.recognize(artifact, True, True)

    def test_raising_recognizer_counts_as_error(self, artifact: SegmentArtifact) -> None:
        class RaisingRecognizer(FakeRecognizer):
            def recognize(self, request, handler) -> None:  # type: ignore[no-untyped-def]
                raise OSError("engine crashed")

        with pytest.raises(RecognitionFailedError, match="engine crashed"):
            RecognitionAdapter(RaisingRecognizer(), "ko-KR").recognize(artifact, True, False)

    def test_timeout_cancels_request(self, artifact: SegmentArtifact) -> None:
        requests: list[RecognitionRequest] = []

        class SilentRecognizer(FakeRecognizer):
            def recognize(self, request, handler) -> None:  # type: ignore[no-untyped-def]
                requests.append(request)
                handler(RecognitionEvent(text="partial only"))

        adapter = RecognitionAdapter(SilentRecognizer(), "ko-KR", request_timeout=0.05)

        with pytest.raises(RecognitionFailedError, match="timed out"):
            adapter.recognize(artifact, True, False)
        assert requests[0].is_cancelled

    def test_request_carries_locale(self, artifact: SegmentArtifact) -> None:
        requests: list[RecognitionRequest] = []

        class RecordingRecognizer(FakeRecognizer):
            def recognize(self, request, handler) -> None:  # type: ignore[no-untyped-def]
                requests.append(request)
                handler(RecognitionEvent(text="ok", is_final=True))

        RecognitionAdapter(RecordingRecognizer(), "en-US").recognize(artifact, True, True)

        assert requests[0].locale == "en-US"
        assert requests[0].language == "en"
        assert requests[0].audio_path == artifact.path

    def test_timeout_applies_to_blocking_recognizer(self, artifact: SegmentArtifact) -> None:
        requests: list[RecognitionRequest] = []

        class BlockingRecognizer(FakeRecognizer):
            def recognize(self, request, handler) -> None:  # type: ignore[no-untyped-def]
                requests.append(request)
                request.cancelled.wait(1.0)
                handler(RecognitionEvent(text="late", is_final=True))

        adapter = RecognitionAdapter(BlockingRecognizer(), "ko-KR", request_timeout=0.05)

        started = time.monotonic()
        with pytest.raises(RecognitionFailedError, match="timed out"):
            adapter.recognize(artifact, True, False)

        assert time.monotonic() - started < 0.5
        assert requests[0].is_cancelled

    def test_timed_out_on_device_request_falls_back_online(self, artifact: SegmentArtifact) -> None:
        class SlowOnDeviceRecognizer(FakeRecognizer):
            def recognize(self, request, handler) -> None:  # type: ignore[no-untyped-def]
                if request.force_on_device:
                    request.cancelled.wait(1.0)
                    return
                super().recognize(request, handler)

        recognizer = SlowOnDeviceRecognizer(results={(0, False): "online text"})
        adapter = RecognitionAdapter(recognizer, "ko-KR", request_timeout=0.05)

        assert adapter.recognize(artifact, True, True) == "online text"
        assert recognizer.calls == [(0, False)]

    def test_cancelled_on_device_request_is_not_retried_online(self, artifact: SegmentArtifact) -> None:
        class CancelledRecognizer(FakeRecognizer):
            def recognize(self, request, handler) -> None:  # type: ignore[no-untyped-def]
                self.calls.append((0, request.force_on_device))
                request.cancel()
                handler(RecognitionEvent(error=TranscriptionCancelledError("Recognition cancelled")))

        recognizer = CancelledRecognizer()

        with pytest.raises(TranscriptionCancelledError):
            RecognitionAdapter(recognizer, "ko-KR").recognize(artifact, True, True)
        assert recognizer.calls == [(0, True)]
