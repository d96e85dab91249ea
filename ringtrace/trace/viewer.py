"""
Viewer hand-off.
Opens a recorded (or still recording) trace in an interactive timeline viewer.
"""

import logging
import subprocess
import webbrowser
from pathlib import Path
from typing import Callable, List, Optional, Union

logger = logging.getLogger(__name__)

PERFETTO_URL = "https://ui.perfetto.dev"

Viewer = Callable[[Path], None]


def open_in_perfetto(trace_path: Union[str, Path]) -> None:
    """
    Open the Perfetto UI in a browser.

    Note: the UI cannot load local files by URL; the trace must be
    drag-dropped or opened from the UI's file menu.
    """
    trace_path = Path(trace_path).resolve()

    logger.info(f"Open {PERFETTO_URL} and load: {trace_path}")
    webbrowser.open(PERFETTO_URL)


def run_viewer_command(command: List[str], trace_path: Union[str, Path]) -> int:
    """Run an external viewer with the trace path appended; waits for it to exit."""
    argv = list(command) + [str(Path(trace_path))]
    logger.info(f"Starting viewer: {' '.join(argv)}")
    try:
        result = subprocess.run(argv)
    except OSError as e:
        logger.error(f"Viewer failed to start: {e}")
        return 127

    if result.returncode != 0:
        logger.warning(f"Viewer exited with status {result.returncode}")
    return result.returncode


def make_viewer(command: Optional[List[str]] = None) -> Viewer:
    """Return the viewer callback for ``command`` (Perfetto UI when empty)."""
    if command:
        return lambda path: run_viewer_command(command, path)
    return open_in_perfetto
