"""
longscribe.extract.artifacts - Temporary audio files and their cleanup.

Each artifact registers its own removal on the owning store's ExitStack
the moment it is created, so closing the store deletes every file
exactly once regardless of how the job ended.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
import uuid
from contextlib import ExitStack
from pathlib import Path

from longscribe.segment.segmenter import Segment

logger = logging.getLogger(__name__)


class SegmentArtifact:
    """A temporary audio file produced for one segment (or the pre-pass)."""

    def __init__(self, path: Path, segment: Segment | None = None) -> None:
        self.path = path
        self.segment = segment
        self._lock = threading.Lock()
        self._discarded = False

    @property
    def discarded(self) -> bool:
        return self._discarded

    def discard(self) -> bool:
        """Delete the file once. Returns False if it was already discarded.

        A file that was never written is not an error; neither is a
        failing unlink, which is logged and swallowed.
        """
        with self._lock:
            if self._discarded:
                return False
            self._discarded = True
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.debug("Could not remove %s: %s", self.path, e)
        return True

    def __repr__(self) -> str:
        index = self.segment.index if self.segment else None
        return f"SegmentArtifact(index={index}, path={str(self.path)!r})"


class ArtifactStore:
    """Job-scoped temporary directory holding all artifacts of one job."""

    def __init__(self, root: Path | None = None, prefix: str = "longscribe-") -> None:
        self.root = root
        self.prefix = prefix
        self.directory: Path | None = None
        self.artifacts: list[SegmentArtifact] = []
        self._stack = ExitStack()
        self._lock = threading.Lock()

    def open(self) -> ArtifactStore:
        self._ensure_directory()
        return self

    def _ensure_directory(self) -> Path:
        with self._lock:
            if self.directory is None:
                if self.root is not None:
                    self.root.mkdir(parents=True, exist_ok=True)
                self.directory = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.root))
                self._stack.callback(self._remove_directory)
            return self.directory

    def create(self, segment: Segment | None, suffix: str, stem: str = "segment") -> SegmentArtifact:
        """Reserve a unique path in the store and register its cleanup."""
        directory = self._ensure_directory()
        suffix = suffix.lstrip(".")
        if segment is not None:
            name = f"{stem}_{segment.index:04d}_{uuid.uuid4().hex[:8]}.{suffix}"
        else:
            name = f"{stem}_{uuid.uuid4().hex[:8]}.{suffix}"
        artifact = SegmentArtifact(directory / name, segment)
        with self._lock:
            self.artifacts.append(artifact)
            self._stack.callback(artifact.discard)
        return artifact

    def close(self) -> None:
        """Discard every artifact, then the directory. Safe to call twice."""
        self._stack.close()

    def _remove_directory(self) -> None:
        if self.directory is not None:
            shutil.rmtree(self.directory, ignore_errors=True)

    def __enter__(self) -> ArtifactStore:
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()
