"""Tests for longscribe.segment.segmenter module."""

from __future__ import annotations

import math

import pytest

from longscribe.exceptions import InvalidDurationError
from longscribe.segment.segmenter import Segment, compute_segments, segment_count


class TestComputeSegments:
    def test_remainder_segment(self) -> None:
        segments = compute_segments(95.0, 30.0)
        assert [s.duration for s in segments] == [30.0, 30.0, 30.0, 5.0]
        assert [s.start for s in segments] == [0.0, 30.0, 60.0, 90.0]

    def test_exact_multiple(self) -> None:
        segments = compute_segments(90.0, 30.0)
        assert len(segments) == 3
        assert segments[-1].duration == 30.0

    def test_shorter_than_one_segment(self) -> None:
        segments = compute_segments(12.5, 30.0)
        assert segments == [Segment(index=0, start=0.0, duration=12.5)]

    def test_indices_contiguous_from_zero(self) -> None:
        segments = compute_segments(301.0, 30.0)
        assert [s.index for s in segments] == list(range(11))

    @pytest.mark.parametrize(
        ("duration", "length"),
        [(95.0, 30.0), (40.0, 30.0), (1.0, 0.3), (3600.5, 30.0), (0.7, 0.1), (59.999, 60.0)],
    )
    def test_contiguous_cover(self, duration: float, length: float) -> None:
        segments = compute_segments(duration, length)

        assert len(segments) == math.ceil(duration / length - 1e-9)
        assert segments[0].start == 0.0
        for previous, current in zip(segments, segments[1:]):
            assert current.start == pytest.approx(previous.end)
        assert segments[-1].end == pytest.approx(duration)
        assert all(0 < s.duration <= length for s in segments)

    def test_float_noise_does_not_add_window(self) -> None:
        # 0.3 / 0.1 is 2.9999999999999996 in binary floating point
        assert segment_count(0.3, 0.1) == 3
        assert len(compute_segments(0.3, 0.1)) == 3

    @pytest.mark.parametrize("duration", [0.0, -1.0, float("nan"), float("inf")])
    def test_invalid_duration_raises(self, duration: float) -> None:
        with pytest.raises(InvalidDurationError):
            compute_segments(duration, 30.0)

    @pytest.mark.parametrize("length", [0.0, -30.0])
    def test_invalid_segment_length_raises(self, length: float) -> None:
        with pytest.raises(ValueError):
            compute_segments(95.0, length)


class TestSegment:
    def test_end(self) -> None:
        assert Segment(index=3, start=90.0, duration=5.0).end == 95.0

    def test_immutable(self) -> None:
        segment = Segment(index=0, start=0.0, duration=30.0)
        with pytest.raises(AttributeError):
            segment.start = 1.0  # type: ignore[misc]
