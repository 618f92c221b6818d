"""
longscribe.pipeline.merge - Ordered assembly of segment texts.
"""

from __future__ import annotations

from longscribe.exceptions import EmptyTranscriptError
from longscribe.pipeline.scheduler import OutcomeTable

SEPARATOR = " "


def merge_outcomes(table: OutcomeTable, segment_count: int | None = None) -> str:
    """Join segment texts by segment index.

    Raises:
        LongscribeError: The first failure recorded in the table, unchanged
        EmptyTranscriptError: If every segment text is empty
    """
    failure = table.failure
    if failure is not None:
        raise failure

    transcript = SEPARATOR.join(table.texts_in_order(segment_count)).strip()
    if not transcript:
        raise EmptyTranscriptError()
    return transcript
