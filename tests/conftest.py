"""
ringtrace Test Configuration and Fixtures
=========================================
Shared fixtures and configuration for all tests.
"""

import json
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator, Iterable, List, Optional, Tuple

import pytest

from ringtrace.events.schema import RawEvent
from ringtrace.recorder.translator import EventTranslator
from ringtrace.trace.ids import TraceThread
from ringtrace.trace.writer import TraceWriter

TEST_PID = 4242


# =============================================================================
# Recording writer
# =============================================================================

class RecordingWriter(TraceWriter):
    """Trace writer that keeps every call as a tuple, for assertions."""

    def __init__(self):
        self.records: List[Tuple[Any, ...]] = []
        self.flushes = 0
        self.closed = False

    def register_thread(self, thread, name, args=None):
        self.records.append(("register_thread", thread, name, dict(args or {})))

    def duration_begin(self, thread, name, category, ts, args=None):
        self.records.append(("duration_begin", thread, name, category, ts, dict(args or {})))

    def duration_end(self, thread, name, category, ts, args=None):
        self.records.append(("duration_end", thread, name, category, ts, dict(args or {})))

    def instant_event(self, thread, name, category, ts, args=None):
        self.records.append(("instant_event", thread, name, category, ts, dict(args or {})))

    def wakeup(self, cpu, ts, thread):
        self.records.append(("wakeup", cpu, ts, thread))

    def name_object(self, thread, name, object_id, ts=0):
        self.records.append(("name_object", thread, name, object_id, ts))

    def flush(self):
        self.flushes += 1

    def close(self):
        self.closed = True

    def kinds(self) -> List[str]:
        return [r[0] for r in self.records]

    def threads(self) -> List[Optional[TraceThread]]:
        """Thread each record is placed on."""
        out = []
        for r in self.records:
            if r[0] == "wakeup":
                out.append(r[3])
            else:
                out.append(r[1])
        return out


def translate(events: Iterable[Tuple[int, int, RawEvent]], pid: int = TEST_PID
              ) -> Tuple[EventTranslator, RecordingWriter]:
    """Run (ring, ts, event) triples through a fresh translator."""
    writer = RecordingWriter()
    translator = EventTranslator(writer, pid=pid)
    for ring_id, ts, event in events:
        translator.handle(ring_id, ts, event)
    return translator, writer


def write_events(path: Path, records: Iterable[Dict[str, Any]]) -> Path:
    """Write event records as JSON lines."""
    with open(path, "a") as f:
        for record in records:
            f.write(json.dumps(record) + "\n")
    return path


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    path = Path(tempfile.mkdtemp(prefix="ringtrace_test_"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def recording_writer() -> RecordingWriter:
    return RecordingWriter()


@pytest.fixture
def sample_records() -> List[Dict[str, Any]]:
    """A short fiber lifecycle on two rings, as written by a traced process."""
    return [
        {"ring": 0, "ts": 1000, "kind": "create_cc", "id": 0, "type": "root"},
        {"ring": 0, "ts": 1100, "kind": "create_fiber", "fiber": 1, "cc": 0},
        {"ring": 0, "ts": 1200, "kind": "name", "id": 1, "name": "main"},
        {"ring": 0, "ts": 1300, "kind": "enter_span", "name": "load"},
        {"ring": 0, "ts": 1400, "kind": "exit_span"},
        {"ring": 0, "ts": 1500, "kind": "suspend", "op": "read"},
        {"ring": 1, "ts": 1550, "kind": "gc", "phase": "begin", "name": "minor"},
        {"ring": 1, "ts": 1580, "kind": "gc", "phase": "end", "name": "minor"},
        {"ring": 0, "ts": 1600, "kind": "ring_idle", "phase": "begin"},
        {"ring": 0, "ts": 1700, "kind": "ring_idle", "phase": "end"},
        {"ring": 0, "ts": 1800, "kind": "scheduled", "fiber": 1},
        {"ring": 0, "ts": 1900, "kind": "log", "message": "done"},
        {"ring": 0, "ts": 2000, "kind": "exit_fiber", "fiber": 1},
        {"ring": 0, "ts": 2100, "kind": "exit_cc"},
    ]


@pytest.fixture
def python_child():
    """argv prefix that runs a Python snippet in a child process."""
    return [sys.executable, "-c"]


# =============================================================================
# Test Markers
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow running")
    config.addinivalue_line("markers", "integration: marks integration tests")
