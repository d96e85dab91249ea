"""
Recording Session
Runs an instrumented child process and records its runtime events to a trace.

Three threads take part in a recording:

- the waiter blocks on the child and sets ``child_exited`` when it is gone;
- the poller opens the child's event cursor (retrying until the child has
  created its buffer), then reads and translates events every ``1/freq``
  seconds. Once it sees ``child_exited`` it does exactly one more read and
  stops. It is the only thread touching the translator and the writer;
- the calling thread optionally hands the trace to a viewer, then waits.

Whatever happens, the child is terminated if still running, the trace is
closed and the temporary event directory is removed before ``run`` returns.
"""

import logging
import subprocess
import threading
from contextlib import ExitStack
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from ringtrace.core.config import RecorderConfig
from ringtrace.core.errors import CursorUnavailableError, SpawnError
from ringtrace.core.utils import get_monotonic_ns, make_temp_dir, remove_tree
from ringtrace.events.source import EventCursor, FileEventCursor, child_environment, open_cursor
from ringtrace.recorder.translator import EventTranslator
from ringtrace.trace.viewer import Viewer
from ringtrace.trace.writer import ChromeTraceWriter, TraceWriter

logger = logging.getLogger(__name__)

CursorOpener = Callable[[Path, int], EventCursor]

JOIN_POLL_S = 0.1


class SessionState(str, Enum):
    """Lifecycle of a recording session."""
    SPAWNING = "spawning"
    WAITING_FOR_CURSOR = "waiting_for_cursor"
    POLLING = "polling"
    DRAINING = "draining"
    CLOSED = "closed"


@dataclass
class RecordingResult:
    """Outcome of a finished recording."""
    tracefile: Path
    pid: int
    returncode: Optional[int]
    events: int
    lost_events: int
    rings: int
    fibers: int
    duration_s: float
    cancelled: bool = False


class RecordingSession:
    """
    One recording of one child process.

    Args:
        argv: Command to run
        config: Recorder configuration
        viewer: Called with the trace path once the child produced events
            (or after ``config.viewer_timeout``), while recording continues
        cursor_opener: Opens the event cursor for (directory, pid)
    """

    def __init__(
        self,
        argv: Sequence[str],
        config: Optional[RecorderConfig] = None,
        viewer: Optional[Viewer] = None,
        cursor_opener: CursorOpener = open_cursor,
    ):
        if not argv:
            raise SpawnError("No command given", argv=list(argv))

        self.argv: List[str] = list(argv)
        self.config = config or RecorderConfig()
        self.viewer = viewer
        self.cursor_opener = cursor_opener

        self.state = SessionState.SPAWNING
        self.tmp_dir: Optional[Path] = None
        self.tracefile: Optional[Path] = None
        self.child: Optional[subprocess.Popen] = None
        self.translator: Optional[EventTranslator] = None
        self.events_read = 0

        self.child_exited = threading.Event()
        self._stop = threading.Event()
        self._first_events = threading.Event()
        self._poll_error: Optional[BaseException] = None
        self._writer: Optional[TraceWriter] = None
        self._waiter: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Abort the recording from any thread; ``run`` cleans up and returns."""
        logger.info("Recording cancelled")
        self._stop.set()

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def run(self) -> RecordingResult:
        """Record until the child exits (or the session is cancelled)."""
        t0_ns = get_monotonic_ns()

        try:
            with ExitStack() as stack:
                self.tmp_dir = make_temp_dir(prefix=self.config.temp_prefix)
                stack.callback(remove_tree, self.tmp_dir)

                self.tracefile = self.config.tracefile or self.tmp_dir / "trace.json"
                self._writer = stack.enter_context(ChromeTraceWriter(self.tracefile))
                logger.info(f"Recording to {self.tracefile}")

                self.child = self._spawn()
                stack.callback(self._reap_child)

                self._writer.set_process_name(self.child.pid, Path(self.argv[0]).name)
                self.translator = EventTranslator(self._writer, pid=self.child.pid)

                self._waiter = threading.Thread(
                    target=self._wait_child, name="ringtrace-wait", daemon=True
                )
                self._waiter.start()

                poller = threading.Thread(
                    target=self._poll_main, name="ringtrace-poll", daemon=True
                )
                poller.start()
                stack.callback(self._stop_poller, poller)

                if self.viewer is not None:
                    # Give the child a moment to produce something worth showing
                    self._first_events.wait(self.config.viewer_timeout)
                    self.viewer(self.tracefile)

                self._join(poller)

                if self._poll_error is not None:
                    raise self._poll_error

                result = self._result(t0_ns)
        finally:
            self.state = SessionState.CLOSED

        logger.info(
            f"Recorded {result.events} events from pid {result.pid} "
            f"({result.rings} rings, {result.fibers} fibers) in {result.duration_s:.2f}s"
        )
        return result

    # ------------------------------------------------------------------
    # Child process
    # ------------------------------------------------------------------

    def _spawn(self) -> subprocess.Popen:
        self.state = SessionState.SPAWNING
        env = child_environment(self.tmp_dir)
        logger.debug(f"Spawning {self.argv}")
        try:
            child = subprocess.Popen(self.argv, env=env)
        except OSError as e:
            raise SpawnError(f"Cannot start {self.argv[0]}: {e}", argv=self.argv) from e
        logger.info(f"Started child pid {child.pid}: {' '.join(self.argv)}")
        return child

    def _wait_child(self) -> None:
        try:
            returncode = self.child.wait()
            logger.info(f"Child {self.child.pid} exited with status {returncode}")
        finally:
            self.child_exited.set()

    def _reap_child(self) -> None:
        child = self.child
        if child.poll() is None:
            logger.warning(f"Terminating child {child.pid}")
            child.terminate()
            try:
                child.wait(timeout=self.config.terminate_timeout)
            except subprocess.TimeoutExpired:
                logger.warning(f"Child {child.pid} ignored SIGTERM, killing")
                child.kill()
                child.wait()
        if self._waiter is not None:
            self._waiter.join()

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _poll_main(self) -> None:
        try:
            cursor = self._wait_for_cursor()
            if cursor is None:
                return
            with cursor:
                self._poll(cursor)
        except Exception as e:
            logger.debug(f"Polling failed: {e!r}")
            self._poll_error = e
        finally:
            self._first_events.set()

    def _wait_for_cursor(self) -> Optional[EventCursor]:
        self.state = SessionState.WAITING_FOR_CURSOR
        deadline = None
        if self.config.cursor_timeout is not None:
            deadline = get_monotonic_ns() + int(self.config.cursor_timeout * 1e9)

        while True:
            if self._stop.wait(self.config.cursor_retry_delay):
                return None
            exited = self.child_exited.is_set()
            try:
                return self.cursor_opener(self.tmp_dir, self.child.pid)
            except CursorUnavailableError as e:
                if exited:
                    # The buffer can no longer appear
                    logger.warning(f"Child {self.child.pid} exited without creating its event buffer")
                    return None
                if deadline is not None and get_monotonic_ns() >= deadline:
                    raise
                logger.warning(f"{e} (will retry)")

    def _poll(self, cursor: EventCursor) -> None:
        self.state = SessionState.POLLING
        callbacks = self.translator.callbacks()

        while True:
            stop = self.child_exited.is_set()
            if stop:
                self.state = SessionState.DRAINING

            count = cursor.read(callbacks)
            self.events_read += count
            self._writer.flush()
            if count:
                self._first_events.set()

            if stop:
                return
            if self._stop.wait(self.config.delay):
                return

    def _stop_poller(self, poller: threading.Thread) -> None:
        if poller.is_alive():
            self._stop.set()
        poller.join()

    def _join(self, thread: threading.Thread) -> None:
        # Timed joins keep the calling thread responsive to KeyboardInterrupt
        while thread.is_alive():
            thread.join(JOIN_POLL_S)

    def _result(self, t0_ns: int) -> RecordingResult:
        summary = self.translator.registry.summary()
        return RecordingResult(
            tracefile=self.tracefile,
            pid=self.child.pid,
            returncode=self.child.poll(),
            events=self.translator.events_seen,
            lost_events=self.translator.events_lost,
            rings=summary["rings"],
            fibers=summary["fibers"],
            duration_s=(get_monotonic_ns() - t0_ns) / 1e9,
            cancelled=self.cancelled,
        )


def record(
    argv: Sequence[str],
    config: Optional[RecorderConfig] = None,
    viewer: Optional[Viewer] = None,
) -> RecordingResult:
    """Record ``argv`` with ``config``; see :class:`RecordingSession`."""
    return RecordingSession(argv, config=config, viewer=viewer).run()


def convert_events(
    events_file: Union[str, Path],
    tracefile: Union[str, Path],
    pid: Optional[int] = None,
) -> RecordingResult:
    """
    Translate a preserved event file into a trace in one pass.

    Args:
        events_file: ``<pid>.events`` file left behind by a traced process
        tracefile: Output trace path
        pid: Process id to attribute records to (default: from the file name)
    """
    t0_ns = get_monotonic_ns()
    tracefile = Path(tracefile)

    with FileEventCursor(events_file) as cursor:
        if pid is None:
            pid = cursor.pid if cursor.pid is not None else 0
        with ChromeTraceWriter(tracefile, process_name=Path(events_file).name, pid=pid) as writer:
            translator = EventTranslator(writer, pid=pid)
            cursor.read(translator.callbacks())

    summary = translator.registry.summary()
    events = translator.events_seen
    logger.info(f"Converted {events} events from {events_file} to {tracefile}")
    return RecordingResult(
        tracefile=tracefile,
        pid=pid,
        returncode=None,
        events=events,
        lost_events=translator.events_lost,
        rings=summary["rings"],
        fibers=summary["fibers"],
        duration_s=(get_monotonic_ns() - t0_ns) / 1e9,
    )
