"""
longscribe.extract - Audio export for segmented transcription.

Pipeline Stage 2: optionally normalize the whole source file, then cut
one independently decodable audio file per segment. Every file created
here is temporary and owned by the job that requested it.
"""

from __future__ import annotations
