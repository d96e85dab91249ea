"""
ringtrace Utilities
Timing and temporary-directory helpers shared by the recorder.
"""

import logging
import shutil
import tempfile
import time
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


def get_monotonic_ns() -> int:
    """Get monotonic clock time in nanoseconds."""
    return time.monotonic_ns()


def ns_to_us(ns: int) -> float:
    """Convert nanoseconds to microseconds."""
    return ns / 1_000


def make_temp_dir(prefix: str = "ringtrace-", suffix: str = ".tmp") -> Path:
    """Create a fresh private temporary directory."""
    path = Path(tempfile.mkdtemp(prefix=prefix, suffix=suffix))
    logger.debug(f"Created temp dir {path}")
    return path


def remove_tree(path: Union[str, Path]) -> None:
    """Remove a directory tree; a missing directory is not an error."""
    path = Path(path)
    if not path.exists():
        return
    shutil.rmtree(path)
    logger.debug(f"Removed temp dir {path}")
