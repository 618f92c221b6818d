"""
longscribe.exceptions - Custom exception classes.

All Longscribe-specific exceptions inherit from LongscribeError. A job
always terminates with at most one of these.
"""


class LongscribeError(Exception):
    """Base exception for all Longscribe errors."""

    pass


class ConfigError(LongscribeError):
    """Configuration loading or validation error."""

    pass


class SourceNotFoundError(LongscribeError):
    """Source audio file does not exist."""

    pass


class PermissionDeniedError(LongscribeError):
    """Recognizer refused authorization."""

    pass


class CapabilityUnavailableError(LongscribeError):
    """Recognizer cannot be used right now."""

    pass


class InvalidDurationError(LongscribeError):
    """Audio duration is missing, zero or negative."""

    pass


class SegmentError(LongscribeError):
    """Failure tied to a single segment."""

    def __init__(self, message: str, segment_index: int | None = None):
        self.segment_index = segment_index
        self.message = message
        if segment_index is not None:
            message = f"segment {segment_index}: {message}"
        super().__init__(message)


class ExportFailedError(SegmentError):
    """Media export of a segment (or the whole file) failed."""

    pass


class RecognitionFailedError(SegmentError):
    """Recognizer returned an error after exhausting fallback."""

    pass


class EmptyTranscriptError(SegmentError):
    """Recognition succeeded but produced no usable text."""

    def __init__(
        self,
        message: str = "Transcription result is empty",
        segment_index: int | None = None,
    ):
        super().__init__(message, segment_index)


class TranscriptionCancelledError(LongscribeError):
    """Job was cancelled by the caller."""

    pass


class DependencyError(LongscribeError):
    """Required dependency missing or misconfigured."""

    def __init__(self, dependency: str, message: str, install_hint: str | None = None):
        self.dependency = dependency
        self.message = message
        self.install_hint = install_hint
        super().__init__(f"{dependency}: {message}")
