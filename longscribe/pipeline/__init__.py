"""
longscribe.pipeline - Job orchestration.

Pipeline Stage 4: bounded parallel scheduling of export and recognition
work, first-failure-wins bookkeeping, ordered merge, and cleanup.
"""

from __future__ import annotations
