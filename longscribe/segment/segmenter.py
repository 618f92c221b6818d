"""
longscribe.segment.segmenter - Segment boundary computation.

Windows are contiguous, non-overlapping and cover [0, total) exactly;
the last window is truncated to the remainder.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from longscribe.exceptions import InvalidDurationError

# Float noise below this ratio does not produce an extra trailing window.
_COUNT_TOLERANCE = 1e-9


@dataclass(frozen=True)
class Segment:
    index: int
    start: float
    duration: float

    @property
    def end(self) -> float:
        return self.start + self.duration


def segment_count(total_duration: float, segment_length: float) -> int:
    """Number of windows needed to cover total_duration."""
    return max(1, math.ceil(total_duration / segment_length - _COUNT_TOLERANCE))


def compute_segments(total_duration: float, segment_length: float) -> list[Segment]:
    """Split a duration into fixed-length segments.

    Args:
        total_duration: Audio duration in seconds
        segment_length: Window length in seconds

    Returns:
        Segments ordered by index, starting at 0

    Raises:
        InvalidDurationError: If total_duration is not a positive finite number
        ValueError: If segment_length is not positive
    """
    if not segment_length > 0 or not math.isfinite(segment_length):
        raise ValueError(f"segment_length must be positive, got {segment_length}")
    if not total_duration > 0 or not math.isfinite(total_duration):
        raise InvalidDurationError(f"Could not determine audio duration ({total_duration})")

    segments = []
    for i in range(segment_count(total_duration, segment_length)):
        start = i * segment_length
        duration = min(segment_length, total_duration - start)
        segments.append(Segment(index=i, start=start, duration=duration))
    return segments
