"""
Longscribe - chunked transcription of long audio recordings.

Splits a recording into fixed-length segments, transcribes them in
parallel through a speech recognizer with on-device → online fallback,
and reassembles the text in original order: segmentation → segment
export → parallel recognition → merge.
"""

__version__ = "0.1.0"
