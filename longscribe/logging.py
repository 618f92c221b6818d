"""
longscribe.logging - Centralized logging configuration.

Segments are exported and recognized on pool threads, so records carry
the thread name to tell concurrent segments apart.
"""

from __future__ import annotations

import logging

logger = logging.getLogger("longscribe")

LOG_FORMAT = "%(levelname)s [%(threadName)s] %(name)s: %(message)s"


def configure_logging(verbose: bool = False) -> None:
    """Configure logging for the longscribe package.

    Args:
        verbose: If True, enable DEBUG level logging; otherwise WARNING level
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # httpx logs every AssemblyAI poll at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
