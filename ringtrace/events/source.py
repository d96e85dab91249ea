"""
Runtime Event Source
Reads the events an instrumented process appends to its event buffer.

The traced process is started with ``RINGTRACE_EVENTS_DIR`` pointing at a
private directory and writes one JSON object per line to
``<dir>/<pid>.events``::

    {"ring": 0, "ts": 1200, "kind": "scheduled", "fiber": 1}

A cursor remembers how far it has read, so repeated ``read`` calls deliver
each event exactly once and in order.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

from ringtrace.core.errors import CursorUnavailableError, EventDecodeError
from ringtrace.events.schema import (
    EventsLost,
    FiberCreated,
    FiberExited,
    GcPhase,
    Logged,
    Named,
    ObjectCreated,
    Phase,
    RawEvent,
    RingIdling,
    Scheduled,
    ScopeClosed,
    ScopeOpened,
    SpanEntered,
    SpanExited,
    Suspending,
    UnknownEvent,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Instrumentation environment
# ============================================================================

ENV_EVENTS_START = "RINGTRACE_EVENTS_START"
ENV_EVENTS_DIR = "RINGTRACE_EVENTS_DIR"
ENV_EVENTS_PRESERVE = "RINGTRACE_EVENTS_PRESERVE"

EVENTS_SUFFIX = ".events"


def instrumentation_env(directory: Union[str, Path]) -> Dict[str, str]:
    """Variables that make a child emit its events into ``directory`` and keep them after exit."""
    return {
        ENV_EVENTS_START: "1",
        ENV_EVENTS_DIR: str(directory),
        ENV_EVENTS_PRESERVE: "1",
    }


def child_environment(directory: Union[str, Path]) -> Dict[str, str]:
    """The operator's environment plus the instrumentation variables."""
    env = os.environ.copy()
    env.update(instrumentation_env(directory))
    return env


def events_path(directory: Union[str, Path], pid: int) -> Path:
    return Path(directory) / f"{pid}{EVENTS_SUFFIX}"


# ============================================================================
# Decoding
# ============================================================================

def _int(record: Dict[str, Any], key: str) -> int:
    value = record[key]
    # bool is an int subclass; floats would be truncated
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    return value


def _phase(record: Dict[str, Any]) -> Phase:
    try:
        return Phase(record["phase"])
    except ValueError as e:
        raise EventDecodeError(f"Invalid phase {record['phase']!r}") from e


_DECODERS: Dict[str, Callable[[Dict[str, Any]], RawEvent]] = {
    "scheduled": lambda r: Scheduled(_int(r, "fiber")),
    "create_fiber": lambda r: FiberCreated(_int(r, "fiber"), _int(r, "cc")),
    "create_cc": lambda r: ScopeOpened(_int(r, "id"), str(r["type"])),
    "create_obj": lambda r: ObjectCreated(_int(r, "id"), str(r["type"])),
    "exit_fiber": lambda r: FiberExited(_int(r, "fiber")),
    "name": lambda r: Named(_int(r, "id"), str(r["name"])),
    "suspend": lambda r: Suspending(str(r["op"])),
    "enter_span": lambda r: SpanEntered(str(r["name"])),
    "exit_span": lambda r: SpanExited(),
    "exit_cc": lambda r: ScopeClosed(),
    "log": lambda r: Logged(str(r["message"])),
    "ring_idle": lambda r: RingIdling(_phase(r)),
    "gc": lambda r: GcPhase(_phase(r), str(r["name"])),
    "lost": lambda r: EventsLost(_int(r, "count")),
}


def decode_event(record: Dict[str, Any]) -> Tuple[int, int, RawEvent]:
    """
    Decode one event record into ``(ring_id, ts, event)``.

    Unknown kinds decode to :class:`UnknownEvent`; missing or mistyped fields
    raise :class:`EventDecodeError`.
    """
    if not isinstance(record, dict):
        raise EventDecodeError(f"Event record must be an object, got {type(record).__name__}")

    try:
        ring_id = _int(record, "ring")
        ts = _int(record, "ts")
        kind = str(record["kind"])
    except (KeyError, TypeError, ValueError) as e:
        raise EventDecodeError(f"Bad event header in {record!r}: {e}") from e

    decoder = _DECODERS.get(kind)
    if decoder is None:
        fields = {k: v for k, v in record.items() if k not in ("ring", "ts", "kind")}
        return ring_id, ts, UnknownEvent(kind, fields)

    try:
        return ring_id, ts, decoder(record)
    except (KeyError, TypeError, ValueError) as e:
        raise EventDecodeError(f"Bad {kind!r} event {record!r}: {e}") from e


# ============================================================================
# Cursors
# ============================================================================

@dataclass
class EventCallbacks:
    """Receivers for the events delivered by :meth:`EventCursor.read`."""
    on_event: Callable[[int, int, RawEvent], None]
    on_lost: Callable[[int, int], None]


class EventCursor(ABC):
    """Read position in the event stream of one process."""

    @abstractmethod
    def read(self, callbacks: EventCallbacks) -> int:
        """
        Deliver every event available right now, in order.

        Returns:
            Number of records consumed (lost-event reports included)
        """
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def __enter__(self) -> "EventCursor":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class FileEventCursor(EventCursor):
    """Cursor over a JSON-lines event file that may still be growing."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        try:
            self._file = open(self.path, "rb")
        except FileNotFoundError as e:
            raise CursorUnavailableError(
                f"No event buffer at {self.path}", path=str(self.path)
            ) from e
        self._partial = b""
        self.records_read = 0
        self.malformed = 0

    @property
    def pid(self) -> Optional[int]:
        """Pid encoded in the file name, if any."""
        stem = self.path.name[: -len(EVENTS_SUFFIX)] if self.path.name.endswith(EVENTS_SUFFIX) else ""
        return int(stem) if stem.isdigit() else None

    def read(self, callbacks: EventCallbacks) -> int:
        if self._file is None:
            raise ValueError("read on closed cursor")

        chunk = self._file.read()
        if not chunk:
            return 0

        data = self._partial + chunk
        lines = data.split(b"\n")
        # The last element is empty or an incomplete line still being written
        self._partial = lines.pop()

        count = 0
        for line in lines:
            line = line.strip()
            if not line:
                continue
            try:
                ring_id, ts, event = decode_event(json.loads(line))
            except (ValueError, EventDecodeError) as e:
                self.malformed += 1
                logger.warning(f"Skipping malformed event in {self.path.name}: {e}")
                continue

            if isinstance(event, EventsLost):
                callbacks.on_lost(ring_id, event.count)
            else:
                callbacks.on_event(ring_id, ts, event)
            count += 1

        self.records_read += count
        return count

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            if self._partial:
                logger.warning(f"Discarding incomplete trailing event in {self.path.name}")


def open_cursor(directory: Union[str, Path], pid: int) -> FileEventCursor:
    """
    Open the event stream of process ``pid`` inside ``directory``.

    Raises:
        CursorUnavailableError: the process has not created its buffer yet
    """
    return FileEventCursor(events_path(directory, pid))
