"""
longscribe.recognize.base - Recognizer capability contract.

Recognizers are callback driven: a request may deliver any number of
non-final events before a final one (or an error). Callers that need a
single answer wrap the handler, see recognize.adapter.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True)
class RecognitionEvent:
    text: str = ""
    is_final: bool = False
    error: BaseException | None = None


@dataclass
class RecognitionRequest:
    audio_path: Path
    locale: str
    force_on_device: bool
    cancelled: threading.Event = field(default_factory=threading.Event)

    @property
    def language(self) -> str:
        """Two-letter language code derived from the locale ("ko-KR" -> "ko")."""
        return self.locale.replace("_", "-").split("-")[0].lower()

    def cancel(self) -> None:
        self.cancelled.set()

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled.is_set()


EventHandler = Callable[[RecognitionEvent], None]


class Recognizer(Protocol):
    def is_authorized(self) -> bool: ...

    def is_available(self) -> bool: ...

    def supports_on_device(self) -> bool: ...

    def recognize(self, request: RecognitionRequest, handler: EventHandler) -> None:
        """Start recognition. The handler may be called before or after this returns."""
        ...

    def cancel_all(self) -> None: ...
