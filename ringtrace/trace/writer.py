"""
Trace Writer
Writes trace records in the Chrome Trace Event Format read by the Perfetto UI.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import IO, Any, Dict, Mapping, Optional, Union

from ringtrace.core.errors import TraceWriterError
from ringtrace.core.utils import ns_to_us
from ringtrace.trace.ids import Pointer, TraceThread

logger = logging.getLogger(__name__)

Args = Mapping[str, Union[int, str, Pointer]]


# ============================================================================
# Writer Interface
# ============================================================================

class TraceWriter(ABC):
    """
    Sink for trace records.

    Every record is placed on a ``TraceThread`` (process id, flat thread id).
    Timestamps are nanoseconds.
    """

    @abstractmethod
    def register_thread(self, thread: TraceThread, name: str,
                        args: Optional[Args] = None) -> None:
        pass

    @abstractmethod
    def duration_begin(self, thread: TraceThread, name: str, category: str,
                       ts: int, args: Optional[Args] = None) -> None:
        pass

    @abstractmethod
    def duration_end(self, thread: TraceThread, name: str, category: str,
                     ts: int, args: Optional[Args] = None) -> None:
        pass

    @abstractmethod
    def instant_event(self, thread: TraceThread, name: str, category: str,
                      ts: int, args: Optional[Args] = None) -> None:
        pass

    @abstractmethod
    def wakeup(self, cpu: int, ts: int, thread: TraceThread) -> None:
        """Mark ``thread`` as woken on execution context ``cpu``."""
        pass

    @abstractmethod
    def name_object(self, thread: TraceThread, name: str, object_id: int,
                    ts: int = 0) -> None:
        pass

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self) -> "TraceWriter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


# ============================================================================
# Chrome Trace Event Format
# ============================================================================

class TraceEventPhase(str, Enum):
    """Trace event phases used by ringtrace."""
    BEGIN = "B"
    END = "E"
    INSTANT = "i"
    OBJECT_CREATED = "N"
    METADATA = "M"


@dataclass
class TraceEvent:
    """Single trace event."""
    name: str
    ph: TraceEventPhase
    pid: int
    tid: int
    cat: Optional[str] = None
    ts: Optional[float] = None  # Microseconds
    args: Dict[str, Any] = field(default_factory=dict)

    # Optional fields
    id: Optional[str] = None  # Object id
    s: Optional[str] = None  # Instant scope

    def to_dict(self) -> Dict[str, Any]:
        """Convert to trace JSON format."""
        d = {
            "name": self.name,
            "ph": self.ph.value if isinstance(self.ph, TraceEventPhase) else self.ph,
            "pid": self.pid,
            "tid": self.tid,
        }

        if self.cat is not None:
            d["cat"] = self.cat

        if self.ts is not None:
            d["ts"] = self.ts

        if self.args:
            d["args"] = self.args

        if self.id is not None:
            d["id"] = self.id

        if self.s:
            d["s"] = self.s

        return d


def format_args(args: Optional[Args]) -> Dict[str, Any]:
    """Render argument values; pointers become hex strings."""
    if not args:
        return {}
    return {
        key: hex(value) if isinstance(value, Pointer) else value
        for key, value in args.items()
    }


_JSON_OPEN = b"[\n"
_JSON_NEXT = b",\n"
_JSON_CLOSE = b"]\n"


class ChromeTraceWriter(TraceWriter):
    """
    Streams trace events into a JSON array file.

    The file is rewritten in place so it is a complete JSON document after
    every record: the closing bracket is overwritten by each new event and
    written again after it. A viewer can therefore open the trace while the
    recording is still running.
    """

    def __init__(
        self,
        stream: Union[str, Path, IO[bytes]],
        *,
        process_name: Optional[str] = None,
        pid: Optional[int] = None,
    ):
        self.events_written = 0
        self._closed = False

        try:
            if isinstance(stream, (str, Path)):
                self.path: Optional[Path] = Path(stream)
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._stream = self.path.open("wb+")
                self._own_stream = True
            else:
                self.path = None
                self._stream = stream
                self._own_stream = False

            self._stream.write(_JSON_OPEN + _JSON_CLOSE)
            self._stream.flush()
        except OSError as e:
            raise TraceWriterError(f"Cannot open trace output {stream}: {e}") from e

        if process_name is not None and pid is not None:
            self.set_process_name(pid, process_name)

    # ------------------------------------------------------------------
    # Low-level helpers
    # ------------------------------------------------------------------

    def _write_raw(self, json_event: bytes) -> None:
        if self._closed:
            raise TraceWriterError("Write to closed trace writer")
        try:
            self._stream.seek(-len(_JSON_CLOSE), os.SEEK_END)
            if self.events_written > 0:
                json_event = _JSON_NEXT + json_event
            self._stream.write(json_event + _JSON_CLOSE)
        except OSError as e:
            raise TraceWriterError(f"Failed to write trace event: {e}") from e

    def emit(self, event: TraceEvent) -> None:
        """Serialize ``event`` and append it to the trace."""
        json_event = json.dumps(
            event.to_dict(), separators=(",", ":")
        ).encode("utf-8")
        self._write_raw(json_event)
        self.events_written += 1

    def flush(self) -> None:
        if self._closed:
            return
        try:
            self._stream.flush()
        except OSError as e:
            raise TraceWriterError(f"Failed to flush trace: {e}") from e

    def close(self) -> None:
        if self._closed:
            return
        try:
            self._stream.flush()
            if self._own_stream:
                self._stream.close()
        except OSError as e:
            raise TraceWriterError(f"Failed to close trace: {e}") from e
        finally:
            self._closed = True
        logger.debug(f"Trace closed: {self.path or 'stream'} ({self.events_written} events)")

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def set_process_name(self, pid: int, name: str) -> None:
        self.emit(TraceEvent(
            name="process_name",
            ph=TraceEventPhase.METADATA,
            pid=pid,
            tid=0,
            args={"name": name},
        ))

    def register_thread(self, thread: TraceThread, name: str,
                        args: Optional[Args] = None) -> None:
        self.emit(TraceEvent(
            name="thread_name",
            ph=TraceEventPhase.METADATA,
            pid=thread.pid,
            tid=thread.tid,
            args={"name": name, **format_args(args)},
        ))

    def duration_begin(self, thread: TraceThread, name: str, category: str,
                       ts: int, args: Optional[Args] = None) -> None:
        self.emit(TraceEvent(
            name=name,
            cat=category,
            ph=TraceEventPhase.BEGIN,
            ts=ns_to_us(ts),
            pid=thread.pid,
            tid=thread.tid,
            args=format_args(args),
        ))

    def duration_end(self, thread: TraceThread, name: str, category: str,
                     ts: int, args: Optional[Args] = None) -> None:
        self.emit(TraceEvent(
            name=name,
            cat=category,
            ph=TraceEventPhase.END,
            ts=ns_to_us(ts),
            pid=thread.pid,
            tid=thread.tid,
            args=format_args(args),
        ))

    def instant_event(self, thread: TraceThread, name: str, category: str,
                      ts: int, args: Optional[Args] = None) -> None:
        self.emit(TraceEvent(
            name=name,
            cat=category,
            ph=TraceEventPhase.INSTANT,
            ts=ns_to_us(ts),
            pid=thread.pid,
            tid=thread.tid,
            args=format_args(args),
            s="t",  # Thread scope
        ))

    def wakeup(self, cpu: int, ts: int, thread: TraceThread) -> None:
        # The JSON format has no scheduler records; a thread-scoped instant
        # on the woken thread carries the same information.
        self.emit(TraceEvent(
            name="wakeup",
            cat="sched",
            ph=TraceEventPhase.INSTANT,
            ts=ns_to_us(ts),
            pid=thread.pid,
            tid=thread.tid,
            args={"cpu": cpu},
            s="t",
        ))

    def name_object(self, thread: TraceThread, name: str, object_id: int,
                    ts: int = 0) -> None:
        self.emit(TraceEvent(
            name=name,
            cat="object",
            ph=TraceEventPhase.OBJECT_CREATED,
            ts=ns_to_us(ts),
            pid=thread.pid,
            tid=thread.tid,
            id=hex(object_id),
        ))
