"""
longscribe.segment - Fixed-length segmentation of a recording.

Pipeline Stage 1: turn a total duration into ordered (start, duration)
windows that are exported and transcribed independently.
"""

from __future__ import annotations
