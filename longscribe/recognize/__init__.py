"""
longscribe.recognize - Speech recognition for exported segments.

Pipeline Stage 3: recognize each segment artifact, preferring on-device
recognition (faster-whisper) with a single online retry (AssemblyAI)
when the local attempt errors or comes back empty.
"""

from __future__ import annotations
