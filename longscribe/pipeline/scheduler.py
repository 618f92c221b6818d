"""
longscribe.pipeline.scheduler - Bounded parallel execution per segment.

The OutcomeTable is the only state shared between workers. All of its
mutations happen under one lock; the failure slot is written at most
once and, once set, stops any further admissions.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, TypeVar

from longscribe.exceptions import LongscribeError, RecognitionFailedError
from longscribe.segment.segmenter import Segment

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CONCURRENCY = 4


@dataclass(frozen=True)
class ProgressSnapshot:
    total: int
    completed: int
    current_index: int

    @property
    def percentage(self) -> float:
        return self.completed / self.total if self.total > 0 else 0.0


class OutcomeTable:
    """Per-segment texts, completion count and the first recorded failure."""

    def __init__(self, total: int) -> None:
        self.total = total
        self._texts: dict[int, str] = {}
        self._completed = 0
        self._failure: LongscribeError | None = None
        self._lock = threading.Lock()

    @property
    def failed(self) -> bool:
        with self._lock:
            return self._failure is not None

    @property
    def failure(self) -> LongscribeError | None:
        with self._lock:
            return self._failure

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    def record_success(self, index: int, text: str) -> ProgressSnapshot | None:
        """Store a segment's text.

        Returns the progress snapshot to publish, or None when the result
        is discarded because the job is already failing or the segment
        already has an outcome.
        """
        with self._lock:
            if self._failure is not None or index in self._texts:
                return None
            self._texts[index] = text
            self._completed += 1
            return ProgressSnapshot(self.total, self._completed, index)

    def record_failure(self, error: LongscribeError) -> bool:
        """Set the failure slot if it is empty. Returns True for the first writer only."""
        with self._lock:
            if self._failure is not None:
                return False
            self._failure = error
            return True

    def texts_in_order(self, count: int | None = None) -> list[str]:
        count = self.total if count is None else count
        with self._lock:
            return [self._texts[i] for i in range(count) if i in self._texts]


class ParallelScheduler:
    """Runs one work item per segment with at most `concurrency` in flight."""

    def __init__(self, concurrency: int = DEFAULT_CONCURRENCY, name: str = "longscribe") -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.concurrency = concurrency
        self.name = name

    def run(
        self,
        segments: Sequence[Segment],
        work: Callable[[Segment], T],
        table: OutcomeTable,
        on_success: Callable[[Segment, T], Any] | None = None,
    ) -> int:
        """Run work for each segment in index order.

        Admission blocks while `concurrency` calls are in flight and stops
        for good once the table records a failure. Returns after every
        admitted call has finished.

        Returns:
            Number of segments admitted
        """
        semaphore = threading.BoundedSemaphore(self.concurrency)
        admitted = 0

        with ThreadPoolExecutor(
            max_workers=self.concurrency,
            thread_name_prefix=self.name,
        ) as pool:
            for segment in segments:
                semaphore.acquire()
                if table.failed:
                    semaphore.release()
                    logger.debug("Job is failing, not admitting segment %d onwards", segment.index)
                    break
                try:
                    pool.submit(self._run_one, semaphore, segment, work, table, on_success)
                except BaseException:
                    semaphore.release()
                    raise
                admitted += 1

        return admitted

    @staticmethod
    def _run_one(
        semaphore: threading.BoundedSemaphore,
        segment: Segment,
        work: Callable[[Segment], T],
        table: OutcomeTable,
        on_success: Callable[[Segment, T], Any] | None,
    ) -> None:
        try:
            result = work(segment)
            if on_success is not None:
                on_success(segment, result)
        except LongscribeError as e:
            if table.record_failure(e):
                logger.debug("Segment %d failed first: %s", segment.index, e)
        except Exception as e:
            error = RecognitionFailedError(str(e) or type(e).__name__, segment.index)
            error.__cause__ = e
            if table.record_failure(error):
                logger.debug("Segment %d failed first: %s", segment.index, e)
        finally:
            semaphore.release()
