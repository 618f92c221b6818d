"""
longscribe.recognize.engines - Recognizer backends.

Uses faster-whisper for on-device recognition and AssemblyAI for the
online path. HybridRecognizer routes each request by its on-device flag.
"""

from __future__ import annotations

import importlib.util
import logging
import threading
import time
from typing import Any

import httpx

from longscribe.config import TranscriptionConfig
from longscribe.exceptions import (
    CapabilityUnavailableError,
    DependencyError,
    TranscriptionCancelledError,
)
from longscribe.recognize.base import EventHandler, RecognitionEvent, RecognitionRequest

logger = logging.getLogger(__name__)


class WhisperEngine:
    """On-device recognition with faster-whisper.

    Emits one non-final event per decoded segment carrying the text so
    far, then a final event with the complete text.
    """

    on_device = True

    def __init__(
        self,
        model: str = "medium",
        device: str = "auto",
        compute_type: str = "default",
        num_workers: int = 1,
    ) -> None:
        self.model = model
        self.device = device
        self.compute_type = compute_type
        self.num_workers = num_workers
        self._model: Any = None
        self._load_lock = threading.Lock()

    def is_authorized(self) -> bool:
        return True

    def is_available(self) -> bool:
        return importlib.util.find_spec("faster_whisper") is not None

    def _load_model(self) -> Any:
        with self._load_lock:
            if self._model is None:
                try:
                    from faster_whisper import WhisperModel
                except ImportError as e:
                    raise DependencyError(
                        "faster-whisper",
                        "not installed",
                        "Install with: pip install faster-whisper",
                    ) from e
                logger.debug("Loading whisper model %s on %s", self.model, self.device)
                self._model = WhisperModel(
                    self.model,
                    device=self.device,
                    compute_type=self.compute_type,
                    num_workers=self.num_workers,
                )
            return self._model

    def recognize(self, request: RecognitionRequest, handler: EventHandler) -> None:
        try:
            model = self._load_model()
            segments, _info = model.transcribe(
                str(request.audio_path),
                language=request.language or None,
            )
            parts: list[str] = []
            for segment in segments:
                if request.is_cancelled:
                    handler(RecognitionEvent(error=TranscriptionCancelledError("Recognition cancelled")))
                    return
                text = segment.text.strip()
                if text:
                    parts.append(text)
                    handler(RecognitionEvent(text=" ".join(parts)))
            handler(RecognitionEvent(text=" ".join(parts), is_final=True))
        except Exception as e:
            handler(RecognitionEvent(error=e))


class AssemblyAIEngine:
    """Online recognition through the AssemblyAI upload/transcript API."""

    on_device = False

    def __init__(
        self,
        api_key: str | None,
        poll_interval_seconds: float = 3.0,
        timeout_seconds: float = 600.0,
        max_wait_seconds: float = 3600.0,
        base_url: str = "https://api.assemblyai.com/v2",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.poll_interval_seconds = poll_interval_seconds
        self.timeout_seconds = timeout_seconds
        self.max_wait_seconds = max_wait_seconds
        self.base_url = base_url
        self.transport = transport

    def is_authorized(self) -> bool:
        return bool(self.api_key)

    def is_available(self) -> bool:
        return bool(self.api_key)

    def recognize(self, request: RecognitionRequest, handler: EventHandler) -> None:
        try:
            text = self._transcribe(request)
        except Exception as e:
            handler(RecognitionEvent(error=e))
            return
        handler(RecognitionEvent(text=text, is_final=True))

    def _transcribe(self, request: RecognitionRequest) -> str:
        if not request.audio_path.exists():
            raise RuntimeError(f"Audio file not found: {request.audio_path}")

        headers = {"authorization": self.api_key or ""}
        with httpx.Client(timeout=self.timeout_seconds, transport=self.transport) as client:
            audio_url = self._upload_audio(client, headers, request)
            transcript_id = self._start_transcript(client, headers, audio_url, request.language)
            payload = self._poll_transcript(client, headers, transcript_id, request)

        return str(payload.get("text") or "").strip()

    def _upload_audio(
        self,
        client: httpx.Client,
        headers: dict[str, str],
        request: RecognitionRequest,
    ) -> str:
        with request.audio_path.open("rb") as audio_stream:
            response = client.post(f"{self.base_url}/upload", headers=headers, content=audio_stream)
        if response.status_code >= 400:
            raise RuntimeError(
                f"AssemblyAI upload failed ({response.status_code}): {response.text[:400]}"
            )

        uploaded = response.json().get("upload_url")
        if not uploaded:
            raise RuntimeError("AssemblyAI upload response missing upload_url")
        return str(uploaded)

    def _start_transcript(
        self,
        client: httpx.Client,
        headers: dict[str, str],
        audio_url: str,
        language: str,
    ) -> str:
        request_payload: dict[str, Any] = {
            "audio_url": audio_url,
            "punctuate": True,
            "format_text": True,
        }
        if language:
            request_payload["language_code"] = language
        response = client.post(f"{self.base_url}/transcript", headers=headers, json=request_payload)
        if response.status_code >= 400:
            raise RuntimeError(
                f"AssemblyAI transcript create failed ({response.status_code}): {response.text[:400]}"
            )

        transcript_id = response.json().get("id")
        if not transcript_id:
            raise RuntimeError("AssemblyAI transcript response missing id")
        return str(transcript_id)

    def _poll_transcript(
        self,
        client: httpx.Client,
        headers: dict[str, str],
        transcript_id: str,
        request: RecognitionRequest,
    ) -> dict[str, Any]:
        transcript_url = f"{self.base_url}/transcript/{transcript_id}"
        started = time.monotonic()
        while True:
            response = client.get(transcript_url, headers=headers)
            if response.status_code >= 400:
                raise RuntimeError(
                    f"AssemblyAI transcript poll failed ({response.status_code}): {response.text[:400]}"
                )

            payload = response.json()
            status = str(payload.get("status") or "").lower()
            if status == "completed":
                return dict(payload)
            if status == "error":
                raise RuntimeError(str(payload.get("error") or "AssemblyAI reported error status"))

            if time.monotonic() - started >= self.max_wait_seconds:
                raise RuntimeError("AssemblyAI transcription polling timed out")

            if request.cancelled.wait(self.poll_interval_seconds):
                raise TranscriptionCancelledError("Recognition cancelled")


class HybridRecognizer:
    """Routes on-device requests to a local engine and the rest online.

    Without an online engine, online requests are served locally too.
    """

    def __init__(self, local: Any = None, online: Any = None) -> None:
        self.local = local
        self.online = online
        self._requests: dict[int, RecognitionRequest] = {}
        self._lock = threading.Lock()

    @property
    def engines(self) -> list[Any]:
        return [engine for engine in (self.local, self.online) if engine is not None]

    def is_authorized(self) -> bool:
        return any(engine.is_authorized() for engine in self.engines)

    def is_available(self) -> bool:
        return any(engine.is_available() for engine in self.engines)

    def supports_on_device(self) -> bool:
        return self.local is not None and self.local.is_available()

    def recognize(self, request: RecognitionRequest, handler: EventHandler) -> None:
        if request.force_on_device:
            engine = self.local
        else:
            engine = self.online or self.local
        if engine is None:
            handler(RecognitionEvent(error=CapabilityUnavailableError("No recognition engine configured")))
            return

        key = id(request)
        with self._lock:
            self._requests[key] = request
        try:
            engine.recognize(request, handler)
        finally:
            with self._lock:
                self._requests.pop(key, None)

    def cancel_all(self) -> None:
        with self._lock:
            requests = list(self._requests.values())
        for request in requests:
            request.cancel()
        if requests:
            logger.debug("Cancelled %d active recognition request(s)", len(requests))


def build_recognizer(config: TranscriptionConfig) -> HybridRecognizer:
    """Assemble the recognizer described by a configuration."""
    local = WhisperEngine(
        model=config.whisper_model,
        device=config.whisper_device,
        num_workers=config.concurrency,
    )
    online = None
    if config.online_backend == "assemblyai":
        api_key = config.resolve_api_key()
        if api_key:
            online = AssemblyAIEngine(api_key)
        else:
            logger.debug("No AssemblyAI API key configured, online requests run locally")
    return HybridRecognizer(local=local, online=online)
